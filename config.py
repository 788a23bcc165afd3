import os
import secrets
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv(override=False)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


@dataclass
class Settings:
    environment: str = "development"

    # Security configuration
    secret_key: str = field(default_factory=lambda: secrets.token_urlsafe(32))
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 24 * 60
    bcrypt_rounds: int = 12

    # Rate limiting
    rate_limit_window_minutes: int = 15
    rate_limit_max_requests: int = 100
    auth_rate_limit_max_requests: int = 5

    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:3001"]
    )
    allowed_hosts: List[str] = field(
        default_factory=lambda: ["localhost", "127.0.0.1", "testserver"]
    )

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @property
    def rate_limit_enabled(self) -> bool:
        return self.environment != "test"

    @property
    def api_rate_limit(self) -> str:
        return f"{self.rate_limit_max_requests}/{self.rate_limit_window_minutes} minutes"

    @property
    def auth_rate_limit(self) -> str:
        return f"{self.auth_rate_limit_max_requests}/{self.rate_limit_window_minutes} minutes"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            environment=os.getenv("APP_ENV", defaults.environment),
            secret_key=os.getenv("JWT_SECRET") or defaults.secret_key,
            algorithm=os.getenv("JWT_ALGORITHM", defaults.algorithm),
            access_token_expire_minutes=_env_int(
                "ACCESS_TOKEN_EXPIRE_MINUTES", defaults.access_token_expire_minutes
            ),
            bcrypt_rounds=_env_int("BCRYPT_ROUNDS", defaults.bcrypt_rounds),
            rate_limit_window_minutes=_env_int(
                "RATE_LIMIT_WINDOW_MINUTES", defaults.rate_limit_window_minutes
            ),
            rate_limit_max_requests=_env_int(
                "RATE_LIMIT_MAX_REQUESTS", defaults.rate_limit_max_requests
            ),
            auth_rate_limit_max_requests=_env_int(
                "AUTH_RATE_LIMIT_MAX_REQUESTS", defaults.auth_rate_limit_max_requests
            ),
            cors_origins=_env_list("CORS_ORIGINS", defaults.cors_origins),
            allowed_hosts=_env_list("ALLOWED_HOSTS", defaults.allowed_hosts),
            host=os.getenv("HOST", defaults.host),
            port=_env_int("PORT", defaults.port),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )
