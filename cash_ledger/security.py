from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from cash_ledger.config import get_settings

# El token lo emite el proveedor de identidad externo; aquí solo se valida
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Usuario que firma aperturas, cierres y movimientos."""
    user_id: Optional[str] = None
    user_name: Optional[str] = None


def system_identity() -> Identity:
    return Identity(user_id=None, user_name=get_settings().default_user_name)


def decode_identity(token: str) -> Identity:
    settings = get_settings()
    payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    user_id = payload.get("sub")
    if user_id is None:
        raise JWTError("Token sin 'sub'")
    return Identity(user_id=str(user_id), user_name=payload.get("name") or str(user_id))


async def get_current_identity(token: Optional[str] = Depends(oauth2_scheme)) -> Identity:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Credenciales no válidas",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        if get_settings().auth_required:
            raise credentials_exception
        return system_identity()
    try:
        return decode_identity(token)
    except JWTError:
        raise credentials_exception
