"""
config.py
---------

Runtime configuration read from environment variables. ``create_app``
accepts a mapping of overrides on top of these values, which is how the
tests point the app at a temporary database or force guest mode.
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    SECRET_KEY: str = "dev-secret"
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_ACCESS_TOKEN: str = ""
    SUPABASE_VERBOSE: bool = False
    USER_ID: Optional[str] = None
    USER_EMAIL: str = ""
    USER_NAME: str = ""
    DB_PATH: Optional[str] = None
    GUEST: bool = False
    CONNECT_DELAY: float = 2.0
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 5004

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            SECRET_KEY=os.getenv("SECRET_KEY", "dev-secret"),
            SUPABASE_URL=os.getenv("SUPABASE_URL", ""),
            SUPABASE_ANON_KEY=os.getenv("SUPABASE_ANON_KEY", ""),
            SUPABASE_ACCESS_TOKEN=os.getenv("SUPABASE_ACCESS_TOKEN", ""),
            SUPABASE_VERBOSE=_env_bool("SUPABASE_VERBOSE"),
            USER_ID=os.getenv("TJ_USER_ID") or None,
            USER_EMAIL=os.getenv("TJ_USER_EMAIL", ""),
            USER_NAME=os.getenv("TJ_USER_NAME", ""),
            DB_PATH=os.getenv("TJ_DB") or None,
            GUEST=_env_bool("TJ_GUEST"),
            CONNECT_DELAY=float(os.getenv("TJ_CONNECT_DELAY", "2.0")),
            LOG_LEVEL=os.getenv("TJ_LOG_LEVEL", "INFO").upper(),
            HOST=os.getenv("TJ_HOST", "0.0.0.0"),
            PORT=int(os.getenv("TJ_PORT", "5004")),
        )

    def override(self, values: Optional[Mapping[str, Any]]) -> "Config":
        if not values:
            return self
        known = {f.name for f in fields(self)}
        unknown = set(values) - known
        if unknown:
            raise KeyError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return replace(self, **dict(values))

    @property
    def remote_enabled(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_ANON_KEY)
