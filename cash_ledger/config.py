# cash_ledger/config.py
"""Configuración central del motor de cajas (variables CASH_LEDGER_*)."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CASH_LEDGER_",
        env_file=".env",
        extra="ignore",
    )

    # Base de datos (SQLite por defecto, cualquier URL de SQLAlchemy sirve)
    database_url: str = "sqlite:///./cash_ledger.db"

    # Identidad: el proveedor externo emite el JWT, aquí solo se decodifica
    auth_required: bool = True
    jwt_secret_key: str = "cash_ledger_secret_key_change_me_in_prod"
    jwt_algorithm: str = "HS256"
    default_user_name: str = "Sistema"

    # Caché local de la caja chica abierta (None = solo en memoria)
    cache_path: Optional[str] = None

    # Cierre de mes programado
    scheduler_enabled: bool = True
    month_close_hour: int = Field(default=0, ge=0, le=23)
    month_close_minute: int = Field(default=5, ge=0, le=59)

    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
