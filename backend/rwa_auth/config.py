from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite+aiosqlite:///./rwa_auth.db"
    REDIS_URL: str = ""
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Wallet challenge
    APP_NAME: str = "Mantle RWA Platform"
    CHALLENGE_TTL_SECONDS: int = 300
    CHALLENGE_RETENTION_SECONDS: int = 600

    # Comma separated wallets allowed to sign in as ADMIN
    APPROVED_ADMIN_WALLETS: str = ""

    # Persist refresh token ids so they can be rotated and revoked
    TRACK_SESSIONS: bool = True

    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def convert_database_url(cls, v):
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @property
    def approved_admins(self) -> frozenset:
        return frozenset(
            addr.strip().lower() for addr in self.APPROVED_ADMIN_WALLETS.split(",") if addr.strip()
        )

    @property
    def cors_origins(self) -> list:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()] or ["http://localhost:3000"]

settings = Settings()
