import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

# backend/.env.local, same place the old backend kept its env file
ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


def _int(env: Mapping[str, str], key: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


@dataclass
class Settings:
    database_uri: str = "mongodb://localhost:27017/natours"
    database_name: str = "natours"
    tours_collection: str = "tours"
    backend: str = "mongo"  # mongo | memory
    default_limit: int = 100
    max_limit: Optional[int] = None
    log_level: str = "INFO"
    environment: str = "production"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    server_selection_timeout_ms: int = 5000
    host: str = "127.0.0.1"
    port: int = 3000

    @property
    def development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        if env is None:
            env = os.environ

        uri = env.get("DATABASE", cls.database_uri)
        password = env.get("DATABASE_PASSWORD")
        if "<PASSWORD>" in uri:
            if not password:
                raise ConfigError("DATABASE contains <PASSWORD> but DATABASE_PASSWORD is not set")
            uri = uri.replace("<PASSWORD>", password)

        backend = env.get("TOURS_BACKEND", "mongo").strip().lower()
        if backend not in ("mongo", "memory"):
            raise ConfigError(f"TOURS_BACKEND must be 'mongo' or 'memory', got {backend!r}")

        default_limit = _int(env, "QUERY_DEFAULT_LIMIT", 100)
        max_limit = _int(env, "QUERY_MAX_LIMIT", None)
        if default_limit < 1:
            raise ConfigError("QUERY_DEFAULT_LIMIT must be >= 1")
        if max_limit is not None and max_limit < 1:
            raise ConfigError("QUERY_MAX_LIMIT must be >= 1")

        origins = [o.strip() for o in env.get("CORS_ORIGINS", "*").split(",") if o.strip()]

        return cls(
            database_uri=uri,
            database_name=env.get("DATABASE_NAME", cls.database_name),
            tours_collection=env.get("TOURS_COLLECTION", cls.tours_collection),
            backend=backend,
            default_limit=default_limit,
            max_limit=max_limit,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            environment=env.get("APP_ENV") or env.get("NODE_ENV") or "production",
            cors_origins=origins or ["*"],
            server_selection_timeout_ms=_int(env, "SERVER_SELECTION_TIMEOUT_MS", 5000),
            host=env.get("HOST", "127.0.0.1"),
            port=_int(env, "PORT", 3000),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    if ENV_PATH.exists():
        load_dotenv(ENV_PATH)
    return Settings.from_env()
