"""
session.py
----------

The signed-in identity (or lack of one) and the one-time choice of
persistence provider that follows from it. Authentication itself happens
elsewhere; this module only consumes its result.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import Config
from .database import SQLiteProvider
from .models import Profile
from .providers import InMemoryProvider, PersistenceProvider
from .supabase_client import RemoteProvider, SupabaseClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    user_id: Optional[str]
    access_token: Optional[str] = None
    is_guest: bool = False

    @classmethod
    def guest(cls) -> "Session":
        return cls(user_id=None, access_token=None, is_guest=True)

    @classmethod
    def from_config(cls, config: Config) -> "Session":
        """Guest unless a user id is configured and guest mode is not forced."""
        if config.GUEST or not config.USER_ID:
            return cls.guest()
        return cls(user_id=config.USER_ID, access_token=config.SUPABASE_ACCESS_TOKEN or None)


def select_provider(session: Session, config: Config) -> PersistenceProvider:
    """Pick the persistence provider for this session.

    Guests always get the in-memory fixtures. Signed-in users use the
    hosted store when it is configured, otherwise a local SQLite file.
    """
    if session.is_guest:
        logger.info("Guest session: using in-memory sample data")
        return InMemoryProvider()

    if config.remote_enabled:
        logger.info("Using hosted store at %s", config.SUPABASE_URL)
        client = SupabaseClient(
            config.SUPABASE_URL,
            config.SUPABASE_ANON_KEY,
            access_token=session.access_token,
            verbose=config.SUPABASE_VERBOSE,
        )
        return RemoteProvider(client)

    if config.DB_PATH:
        logger.info("Using local database %s", config.DB_PATH)
        provider = SQLiteProvider(config.DB_PATH)
        if provider.get_profile(session.user_id) is None:
            provider.upsert_profile(
                Profile(id=session.user_id, email=config.USER_EMAIL, full_name=config.USER_NAME)
            )
        return provider

    raise ValueError("Signed-in session needs SUPABASE_URL/SUPABASE_ANON_KEY or TJ_DB")
