# supabase_client.py
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import requests

from .errors import SupabaseError
from .models import Broker, Profile, Trade, updates_to_row
from .providers import PersistenceProvider

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
BROKER_LISTING_COLUMNS = "id,name,is_active,created_at"

ParamsType = Optional[Union[Sequence[Tuple[str, Any]], Dict[str, Any]]]


class SupabaseClient:
    """
    Thin PostgREST client for the hosted store:
    - ``apikey`` header carries the project's anon key
    - bearer token is the signed-in user's access token (falls back to the anon key)
    - filters are passed as ordered (column, "op.value") tuples
    - every non-2xx reply and every transport failure becomes a SupabaseError
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        access_token: Optional[str] = None,
        user_agent: str = "TradeJournal/1.0",
        verbose: bool = False,
        session: Optional[requests.Session] = None,
    ):
        if not url or not anon_key:
            raise ValueError("Missing Supabase URL or anon key")
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.verbose = verbose
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": user_agent,
            "apikey": anon_key,
            "Authorization": f"Bearer {access_token or anon_key}",
        })

    # ---------- logging ----------
    def _log(self, msg: str) -> None:
        if self.verbose:
            logger.debug("[SupabaseClient] %s", msg)

    # ---------- transport ----------
    def _request(
        self,
        method: str,
        table: str,
        params: ParamsType = None,
        payload: Optional[Union[Dict[str, Any], List[Dict[str, Any]]]] = None,
        prefer: Optional[str] = None,
    ) -> Any:
        url = f"{self.base_url}/{table}"
        headers = {"Prefer": prefer} if prefer else None
        self._log(f"REQUEST {method.upper()} /{table} params={params}")

        try:
            r = self.session.request(
                method.upper(), url, params=params, json=payload, headers=headers, timeout=DEFAULT_TIMEOUT
            )
        except requests.Timeout as e:
            logger.warning("Timeout calling /%s", table)
            raise SupabaseError(0, "timeout", f"Timeout calling /{table}") from e
        except requests.ConnectionError as e:
            logger.warning("Network error calling /%s: %s", table, e)
            raise SupabaseError(0, "connection_error", f"Network error calling /{table}") from e
        except requests.RequestException as e:
            raise SupabaseError(0, "unknown_error", f"Unexpected error calling /{table}: {e}") from e

        self._log(f"RESPONSE {r.status_code} for /{table}")

        if r.status_code >= 400:
            try:
                detail = r.json()
            except ValueError:
                detail = {"text": r.text}
            code = detail.get("code") if isinstance(detail, dict) else None
            msg = detail.get("message") if isinstance(detail, dict) else None
            raise SupabaseError(r.status_code, code, msg or "HTTP error", detail)

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise SupabaseError(r.status_code, "bad_json", "Response not JSON", {"text": r.text[:200]}) from e

    # ---------- verbs ----------
    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Sequence[Tuple[str, str]]] = None,
        order: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params: List[Tuple[str, Any]] = [("select", columns)]
        params.extend(filters or [])
        if order:
            params.append(("order", order))
        data = self._request("GET", table, params=params)
        return data or []

    def insert(self, table: str, row: Mapping[str, Any]) -> List[Dict[str, Any]]:
        data = self._request("POST", table, payload=dict(row), prefer="return=representation")
        return data or []

    def update(
        self, table: str, values: Mapping[str, Any], filters: Sequence[Tuple[str, str]]
    ) -> List[Dict[str, Any]]:
        data = self._request(
            "PATCH", table, params=list(filters), payload=dict(values), prefer="return=representation"
        )
        return data or []


def eq(column: str, value: Any) -> Tuple[str, str]:
    return column, f"eq.{value}"


class RemoteProvider(PersistenceProvider):
    """Persistence against the hosted store's ``trades``/``brokers``/``profiles`` tables."""

    name = "remote"

    def __init__(self, client: SupabaseClient):
        self.client = client

    def list_trades(self, user_id: Optional[str]) -> List[Trade]:
        rows = self.client.select(
            "trades", filters=[eq("user_id", user_id)], order="created_at.desc"
        )
        return [Trade.from_row(r) for r in rows]

    def list_brokers(self, user_id: Optional[str]) -> List[Broker]:
        rows = self.client.select(
            "brokers", columns=BROKER_LISTING_COLUMNS, filters=[eq("user_id", user_id)]
        )
        return [Broker.from_row(r) for r in rows]

    def insert_trade(self, trade: Trade) -> None:
        self.client.insert("trades", trade.to_row())

    def update_trade(self, trade_id: str, updates: Mapping[str, Any]) -> None:
        rows = self.client.update("trades", updates_to_row(updates), [eq("id", trade_id)])
        if not rows:
            raise SupabaseError(404, "not_found", f"Trade {trade_id} not found")

    def insert_broker(self, broker: Broker) -> None:
        self.client.insert("brokers", broker.to_row())

    def get_profile(self, user_id: Optional[str]) -> Optional[Profile]:
        rows = self.client.select("profiles", filters=[eq("id", user_id)])
        return Profile.from_row(rows[0]) if rows else None

    def close(self) -> None:
        self.client.session.close()

