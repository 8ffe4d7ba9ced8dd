"""Trade journal: trade log, portfolio analytics and broker records."""

from .app import create_app

__all__ = ["create_app"]
