from decimal import Decimal
from functools import lru_cache
from typing import List, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # APP
    APP_NAME: str = "Retail Dashboard API"
    ENV: str = "development"
    DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: Optional[str] = None

    # Fonte dos registros: API REST do banco hospedado ou SQL direto
    RECORD_SOURCE: Literal["rest", "sql"] = "rest"
    DATA_API_URL: Optional[str] = None
    DATA_API_KEY: Optional[str] = None
    DATABASE_URL: Optional[str] = None

    # Fan-out das consultas
    FETCH_TIMEOUT_SECONDS: float = 10.0
    FETCH_RETRIES: int = 2

    # Regras de negócio
    BUSINESS_TIMEZONE: str = "America/Asuncion"
    MONTHLY_GOAL: Decimal = Decimal("50000000")

    # JWT (somente leitura do contexto do usuário)
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"

    # CORS (aceita string separada por vírgulas no .env)
    CORS_ORIGINS: Optional[str] = None

    # CACHE HTTP
    CACHE_MAX_AGE: int = 30
    CACHE_SWR: int = 60

    @field_validator("JWT_SECRET")
    @classmethod
    def _jwt_min_length(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) < 32:
            raise ValueError("JWT secret deve ter pelo menos 32 caracteres.")
        return v

    @field_validator("BUSINESS_TIMEZONE")
    @classmethod
    def _known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Fuso horário desconhecido: {v}") from exc
        return v

    @field_validator("MONTHLY_GOAL")
    @classmethod
    def _goal_not_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("MONTHLY_GOAL não pode ser negativa.")
        return v

    @property
    def CORS_ORIGINS_LIST(self) -> List[str]:
        v = self.CORS_ORIGINS
        if not v:
            return []
        return [s.strip() for s in v.split(",") if s.strip()]

    @property
    def business_tz(self) -> ZoneInfo:
        return ZoneInfo(self.BUSINESS_TIMEZONE)

    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignora chaves extras no .env
    )

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
