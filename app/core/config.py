from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    db_echo: bool = Field(False, alias="DB_ECHO")
    db_pool_recycle: int = Field(300, alias="DB_POOL_RECYCLE")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # With over-payment disabled, payments may exceed the total by at most this much.
    ledger_amount_tolerance: Decimal = Field(Decimal("0.01"), alias="LEDGER_AMOUNT_TOLERANCE")
    ledger_allow_overpayment: bool = Field(True, alias="LEDGER_ALLOW_OVERPAYMENT")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
