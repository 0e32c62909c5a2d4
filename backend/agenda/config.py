"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent

_INSECURE_SECRET = "change_me_for_prod"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: str) -> list:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    ALLOW_INSECURE_JWT: bool
    INSTITUTIONAL_DOMAIN: str
    FEDERATED_JWKS_URL: str
    FEDERATED_AUDIENCE: str
    FEDERATED_ISSUERS: list
    FEDERATED_VERIFY_SIGNATURE: bool
    RATE_LIMIT_MAX_REQUESTS: int
    RATE_LIMIT_WINDOW_SECONDS: int
    ALLOW_DEV_CORS: bool
    CORS_ORIGINS: list
    LOG_LEVEL: str

    def __init__(self, **overrides):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'agenda.db'}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", _INSECURE_SECRET)
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.ALLOW_INSECURE_JWT = _env_bool("ALLOW_INSECURE_JWT", "false")
        self.INSTITUTIONAL_DOMAIN = os.getenv("INSTITUTIONAL_DOMAIN", "uml.edu.ni").lower().lstrip("@")
        self.FEDERATED_JWKS_URL = os.getenv("FEDERATED_JWKS_URL", "https://www.googleapis.com/oauth2/v3/certs")
        self.FEDERATED_AUDIENCE = os.getenv("FEDERATED_AUDIENCE", "")
        self.FEDERATED_ISSUERS = _env_list("FEDERATED_ISSUERS", "accounts.google.com,https://accounts.google.com")
        self.FEDERATED_VERIFY_SIGNATURE = _env_bool("FEDERATED_VERIFY_SIGNATURE", "true")
        self.RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
        self.RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", str(15 * 60)))  # 15 minutes
        self.ALLOW_DEV_CORS = _env_bool("ALLOW_DEV_CORS", "true")
        self.CORS_ORIGINS = _env_list("CORS_ORIGINS", "http://localhost:3000")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"unknown setting: {key}")
            setattr(self, key, value)
        self._validate()

    @property
    def is_production(self) -> bool:
        return self.ENV in ("prod", "production")

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == _INSECURE_SECRET:
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.ENV != "dev" and not self.FEDERATED_VERIFY_SIGNATURE:
            raise RuntimeError("FEDERATED_VERIFY_SIGNATURE can only be disabled in the dev environment")
        if self.JWT_EXPIRE_HOURS <= 0:
            raise RuntimeError("JWT_EXPIRE_HOURS must be positive")


settings = Settings()
