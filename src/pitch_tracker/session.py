"""Session store and the single-writer context that owns the resolved profile."""

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Optional

from pitch_tracker.models.identity import AuthSession, RawIdentity
from pitch_tracker.models.profile import Profile, Role
from pitch_tracker.policy import classify
from pitch_tracker.resolver import ProfileResolver

if TYPE_CHECKING:
    from pitch_tracker.auth import IdentityProvider

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional[AuthSession]], None]
ProfileListener = Callable[[Optional[Profile]], None]


def _notify(listeners: list, value: object, what: str) -> None:
    for listener in list(listeners):
        try:
            listener(value)
        except Exception:
            logger.exception("%s listener failed", what)


class SessionStore:
    """Current authenticated session. Notifies listeners on sign-in and sign-out."""

    def __init__(self) -> None:
        self._session: Optional[AuthSession] = None
        self._listeners: list[SessionListener] = []

    @property
    def session(self) -> Optional[AuthSession]:
        return self._session

    @property
    def identity(self) -> Optional[RawIdentity]:
        return self._session.identity if self._session else None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def set_session(self, session: Optional[AuthSession]) -> None:
        self._session = session
        logger.info(
            "Session %s", f"started for {session.identity.id}" if session else "cleared"
        )
        _notify(self._listeners, session, "Session")

    def clear(self) -> None:
        self.set_session(None)

    async def sign_in(self, provider: "IdentityProvider", email: str, password: str) -> AuthSession:
        """Authenticate with the provider and make the result the current session."""
        session = await provider.sign_in(email, password)
        self.set_session(session)
        return session

    async def sign_out(self, provider: "IdentityProvider") -> None:
        """Revoke at the provider when possible; the local session is cleared regardless."""
        session = self._session
        try:
            if session is not None:
                await provider.sign_out(session)
        finally:
            self.clear()


class SessionContext:
    """
    Owns the Profile for the current session. Only this class writes it:
    each session change starts a resolution tagged with a generation number,
    and a result is applied only if no newer change happened meanwhile and
    the context is still open. Readers get the latest frozen Profile.
    """

    def __init__(self, sessions: SessionStore, resolver: ProfileResolver):
        self.sessions = sessions
        self.resolver = resolver
        self._profile: Optional[Profile] = None
        self._generation = 0
        self._pending: Optional[asyncio.Task] = None
        self._listeners: list[ProfileListener] = []
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed = False

    @property
    def profile(self) -> Optional[Profile]:
        return self._profile

    @property
    def role(self) -> Role:
        return classify(self._profile)

    @property
    def resolving(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def subscribe(self, listener: ProfileListener) -> Callable[[], None]:
        """Register listener for profile replacements; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def start(self) -> "SessionContext":
        """Follow the session store. Must be called with a running event loop."""
        if self._unsubscribe is None:
            self._unsubscribe = self.sessions.subscribe(self._on_session)
            if self.sessions.session is not None:
                self._on_session(self.sessions.session)
        return self

    def _on_session(self, session: Optional[AuthSession]) -> None:
        if self._closed:
            return
        self._generation += 1
        if session is None:
            self._pending = None
            self._apply(self._generation, None)
            return
        self._pending = asyncio.get_running_loop().create_task(
            self._resolve(self._generation, session.identity)
        )

    async def _resolve(self, generation: int, identity: RawIdentity) -> Optional[Profile]:
        profile = await self.resolver.resolve_or_none(identity)
        self._apply(generation, profile)
        return profile

    def _apply(self, generation: int, profile: Optional[Profile]) -> None:
        if self._closed or generation != self._generation:
            logger.debug("Discarding stale resolution (generation %d)", generation)
            return
        if profile is None and self.sessions.session is not None:
            logger.warning("Signed-in identity %s has no profile", self.sessions.session.identity.id)
        self._profile = profile
        _notify(self._listeners, profile, "Profile")

    async def wait_resolved(self) -> Optional[Profile]:
        """Wait for the in-flight resolution, if any, and return the current profile."""
        pending = self._pending
        if pending is not None and not pending.done():
            await asyncio.shield(pending)
        return self._profile

    async def refresh(self) -> Optional[Profile]:
        """Re-resolve the current identity, e.g. after the create-scope flow repaired rows."""
        self._on_session(self.sessions.session)
        return await self.wait_resolved()

    def close(self) -> None:
        """Stop following the session. In-flight resolutions are discarded when they land."""
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()
