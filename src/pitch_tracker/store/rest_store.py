"""PostgREST store: the hosted Postgres tables behind a Supabase-style REST endpoint.

Query shapes map onto PostgREST operators:
    eq      -> column=eq.value
    in      -> column=in.("a","b")
    is_null -> column=is.null
    gte/lt  -> column=gte.value / column=lt.value
"""

import logging
from typing import Any, Optional, Sequence

import httpx

from pitch_tracker.errors import (
    ForeignKeyViolation,
    StructuralSchemaMismatch,
    TrackerError,
    TransientQueryFailure,
)

from .base import BaseStore, Filter, check_identifier, normalize_value

logger = logging.getLogger(__name__)

# Postgres / PostgREST codes for a relation, column or embedded resource that does not exist
STRUCTURAL_CODES = frozenset({"42P01", "42703", "PGRST200", "PGRST204", "PGRST205"})
FOREIGN_KEY_CODE = "23503"


def _quote(value: Any) -> str:
    text = str(normalize_value(value))
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def filter_params(filters: Sequence[Filter]) -> list[tuple[str, str]]:
    """Translate filters into PostgREST query parameters."""
    params: list[tuple[str, str]] = []
    for f in filters:
        if f.op == "eq":
            params.append((f.column, f"eq.{normalize_value(f.value)}"))
        elif f.op == "in":
            params.append((f.column, "in.(" + ",".join(_quote(v) for v in f.value) + ")"))
        elif f.op == "is_null":
            params.append((f.column, "is.null"))
        elif f.op in ("gte", "lt"):
            params.append((f.column, f"{f.op}.{normalize_value(f.value)}"))
        else:
            raise ValueError(f"Unsupported filter op: {f.op}")
    return params


class RestStore(BaseStore):
    """
    Store backed by a PostgREST endpoint ({api_url}/rest/v1/{relation}).
    Uses the anon/service key as apikey and the session access token when given.
    """

    name = "rest"

    REST_PATH = "/rest/v1/"

    def __init__(
        self,
        api_url: str,
        api_key: str,
        *,
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
    ):
        self._base_url = api_url.rstrip("/") + self.REST_PATH
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Accept": "application/json",
        }

    def with_access_token(self, access_token: str) -> "RestStore":
        """Same endpoint and client, requests authorized as the signed-in user."""
        clone = RestStore.__new__(RestStore)
        clone._base_url = self._base_url
        clone._owns_client = False
        clone._client = self._client
        clone._headers = {**self._headers, "Authorization": f"Bearer {access_token}"}
        return clone

    def _error_for(self, relation: str, response: httpx.Response) -> TrackerError:
        """Map a PostgREST error response onto the store error taxonomy."""
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        code = str(body.get("code") or "")
        message = body.get("message") or response.text or f"HTTP {response.status_code}"
        if code in STRUCTURAL_CODES:
            return StructuralSchemaMismatch(relation, f"{code} {message}")
        if code == FOREIGN_KEY_CODE:
            return ForeignKeyViolation(relation, message)
        if response.status_code >= 500 or response.status_code in (408, 429):
            return TransientQueryFailure(relation, f"HTTP {response.status_code}: {message}")
        return TrackerError(f"{relation}: HTTP {response.status_code} {code} {message}".strip())

    async def _request(self, method: str, relation: str, **kwargs: Any) -> httpx.Response:
        url = self._base_url + check_identifier(relation)
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            raise TransientQueryFailure(relation, str(e)) from e
        if response.status_code >= 400:
            error = self._error_for(relation, response)
            logger.debug("%s %s -> %s", method, relation, error)
            raise error
        return response

    def _decode(self, relation: str, response: httpx.Response) -> Any:
        """JSON body of a successful response. Anything else (a proxy error page) is transient."""
        try:
            return response.json()
        except ValueError as e:
            logger.warning("Non-JSON %s response for %s: %.80r", response.status_code, relation, response.text)
            raise TransientQueryFailure(relation, f"undecodable response body: {e}") from e

    async def select(
        self,
        relation: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        if any(f.matches_nothing for f in filters):
            return []
        params = [("select", "*"), *filter_params(filters)]
        if order_by:
            params.append(("order", f"{check_identifier(order_by)}.{'desc' if descending else 'asc'}"))
        if limit is not None:
            params.append(("limit", str(int(limit))))
        response = await self._request("GET", relation, params=params)
        data = self._decode(relation, response)
        return data if isinstance(data, list) else []

    async def insert(self, relation: str, row: dict[str, Any]) -> dict[str, Any]:
        payload = {check_identifier(k): normalize_value(v) for k, v in row.items()}
        response = await self._request(
            "POST",
            relation,
            json=payload,
            headers={"Prefer": "return=representation", "Content-Type": "application/json"},
        )
        data = self._decode(relation, response) if response.content else []
        if isinstance(data, list) and data:
            return data[0]
        return payload

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
