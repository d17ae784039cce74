import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CACHE_KEY = "open_petty_cash_register_id"


class OpenRegisterCache:
    """
    Atajo local con el id de la caja chica abierta. Es solo una pista:
    quien lo lea debe revalidarlo contra la base y limpiarlo si no sirve.
    Sin `path` vive en memoria; con `path` se guarda en un JSON.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._value: Optional[int] = None

    def get(self) -> Optional[int]:
        if self.path is None:
            return self._value
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            value = data.get(CACHE_KEY)
            return int(value) if value is not None else None
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Caché de caja chica ilegible en %s: %s", self.path, e)
            self.clear()
            return None

    def set(self, register_id: int) -> None:
        self._value = register_id
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps({CACHE_KEY: register_id}), encoding="utf-8")

    def clear(self) -> None:
        self._value = None
        if self.path is not None and self.path.exists():
            self.path.unlink()
