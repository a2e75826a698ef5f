"""Identity provider boundary. Credential storage and email delivery stay with the provider."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from pitch_tracker.errors import AuthError
from pitch_tracker.models.identity import AuthSession, RawIdentity

logger = logging.getLogger(__name__)


class IdentityProvider(ABC):
    """
    Standard interface for the external auth service.
    Every call either succeeds or raises AuthError.
    """

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Password sign-in; returns the new session."""
        pass

    @abstractmethod
    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> Optional[AuthSession]:
        """
        Create an account carrying metadata (name, role, organization_id).
        Returns None when the provider requires email confirmation first.
        """
        pass

    @abstractmethod
    async def sign_out(self, session: AuthSession) -> None:
        """Revoke the session's tokens."""
        pass


def identity_from_user(user: dict[str, Any]) -> RawIdentity:
    """RawIdentity from a GoTrue user object."""
    if not user or not user.get("id"):
        raise AuthError("Provider response has no user id")
    return RawIdentity(
        id=str(user["id"]),
        email=user.get("email"),
        metadata=dict(user.get("user_metadata") or {}),
    )


class GoTrueIdentityProvider(IdentityProvider):
    """Supabase Auth (GoTrue) over its REST API."""

    AUTH_PATH = "/auth/v1"

    def __init__(
        self,
        api_url: str,
        api_key: str,
        *,
        redirect_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
    ):
        self._base_url = api_url.rstrip("/") + self.AUTH_PATH
        self._api_key = api_key
        self._redirect_url = redirect_url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self, access_token: Optional[str] = None) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {access_token or self._api_key}",
            "Content-Type": "application/json",
        }

    async def _post(
        self,
        path: str,
        *,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        access_token: Optional[str] = None,
    ) -> dict[str, Any]:
        try:
            resp = await self._client.post(
                self._base_url + path,
                json=json,
                params=params,
                headers=self._headers(access_token),
            )
        except httpx.RequestError as e:
            raise AuthError(f"Auth service unreachable: {e}") from e
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            message = (
                body.get("error_description") or body.get("msg") or body.get("message")
                if isinstance(body, dict)
                else None
            )
            logger.warning("Auth call %s failed: HTTP %s", path, resp.status_code)
            raise AuthError(message or f"HTTP {resp.status_code}")
        if not resp.content:
            return {}
        return resp.json()

    def _session_from(self, payload: dict[str, Any]) -> AuthSession:
        return AuthSession(
            identity=identity_from_user(payload.get("user") or {}),
            access_token=payload.get("access_token"),
            refresh_token=payload.get("refresh_token"),
        )

    async def sign_in(self, email: str, password: str) -> AuthSession:
        payload = await self._post(
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return self._session_from(payload)

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> Optional[AuthSession]:
        params = {"redirect_to": self._redirect_url} if self._redirect_url else None
        payload = await self._post(
            "/signup",
            params=params,
            json={"email": email, "password": password, "data": metadata},
        )
        if payload.get("access_token"):
            return self._session_from(payload)
        logger.info("Sign-up for %s awaits email confirmation", email)
        return None

    async def sign_out(self, session: AuthSession) -> None:
        if not session.access_token:
            return
        await self._post("/logout", access_token=session.access_token)

    async def aclose(self) -> None:
        await self._client.aclose()
