"""
errors.py
---------

Exception types shared by the persistence providers, the portfolio store
and the web layer.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


class JournalError(Exception):
    """Base class for trade journal errors."""


@dataclass(eq=False)
class PersistenceError(JournalError):
    status_code: int
    code: Optional[str]
    message: str
    payload: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        code_str = f" [{self.code}]" if self.code else ""
        return f"{type(self).__name__}{code_str}: {self.message} (status {self.status_code})"


class SupabaseError(PersistenceError):
    """Raised by the hosted store client for HTTP and network failures."""


class BrokerValidationError(JournalError):
    """Raised when a broker connection request fails the credential check."""


class StoreBusyError(JournalError):
    """Raised when a mutation starts while another one is still running."""
