from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Any, ClassVar
from decimal import Decimal
import json
from pathlib import Path
import os


_DEFAULT_IMAGE_PREFIXES = [
    "data:image/jpeg;base64,",
    "data:image/jpg;base64,",
    "data:image/png;base64,",
    "data:image/webp;base64,",
    "data:image/heic;base64,",
]


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # JWT verification (tokens are issued by the auth service)
    SECRET_KEY: str = "fallback_secret_for_dev_only"
    ALGORITHM: str = "HS256"

    # Database URL
    # Use an absolute path so running the app from different directories
    # (e.g., repo root or backend/) always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'cleaning.db'}"

    # CORS origins
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:19006"]
    CORS_ALLOW_ALL: bool = False

    LOG_LEVEL: str = "INFO"

    # Fernet key for user/address/narrative fields. When empty a key is derived
    # from SECRET_KEY, which is only acceptable for local development.
    PII_ENCRYPTION_KEY: str = ""

    # Home size dispute policy
    DISPUTE_RESPONSE_WINDOW_HOURS: int = 24
    # Background expiry sweep cadence; 0 disables the loop (lazy sweeps still run)
    DISPUTE_EXPIRY_SWEEP_SECONDS: int = 900
    DISPUTE_ACCEPTED_IMAGE_PREFIXES: list[str] = list(_DEFAULT_IMAGE_PREFIXES)

    # Platform pricing policy (dollars)
    PRICING_BASE_PRICE: Decimal = Decimal("150")
    PRICING_EXTRA_BED_BATH_FEE: Decimal = Decimal("50")
    PRICING_HALF_BATH_FEE: Decimal = Decimal("25")

    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=os.getenv(
            "ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")
        ),
        case_sensitive=True,
    )

    @field_validator("CORS_ORIGINS", "DISPUTE_ACCEPTED_IMAGE_PREFIXES", mode="before")
    def split_list(cls, v: Any) -> list[str]:
        """Parse comma-separated or JSON list values from environment."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("PII_ENCRYPTION_KEY", "SECRET_KEY", "LOG_LEVEL", mode="before")
    def strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @model_validator(mode="after")
    def allow_all_if_requested(cls, values: "Settings") -> "Settings":
        if values.CORS_ALLOW_ALL:
            values.CORS_ORIGINS = ["*"]
        return values

    @model_validator(mode="after")
    def check_pricing_policy(cls, values: "Settings") -> "Settings":
        # A half bath priced above a full bath would make prices non-monotonic
        if values.PRICING_HALF_BATH_FEE > values.PRICING_EXTRA_BED_BATH_FEE:
            raise ValueError("PRICING_HALF_BATH_FEE must not exceed PRICING_EXTRA_BED_BATH_FEE")
        if values.DISPUTE_RESPONSE_WINDOW_HOURS <= 0:
            raise ValueError("DISPUTE_RESPONSE_WINDOW_HOURS must be positive")
        return values


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
