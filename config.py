from decimal import Decimal

from pydantic import PrivateAttr
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "MCA Back Office API"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./mca_backoffice.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Broker commission applied when a deal has no broker rate on file
    default_commission_rate: Decimal = Decimal("0.10")
    # PATCH may set approvedAmount/factorRate/termDays independently when True
    allow_partial_offer_fields: bool = False
    # Re-opening a DECLINED/DEAD deal wipes its previous offer when True
    clear_offer_on_reopen: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    _is_sqlite: bool = PrivateAttr(default=False)
    _is_postgresql: bool = PrivateAttr(default=False)

    def model_post_init(self, __context: object) -> None:
        _scheme = self.database_url.split(":")[0].lower()
        object.__setattr__(self, "_is_sqlite", "sqlite" in _scheme)
        object.__setattr__(self, "_is_postgresql", "postgresql" in _scheme)

    @property
    def is_sqlite(self) -> bool:
        return self._is_sqlite

    @property
    def is_postgresql(self) -> bool:
        return self._is_postgresql


settings = Settings()
