"""Error taxonomy shared by the store adapters, resolver, recorder and dashboard."""


class TrackerError(Exception):
    """Base class for pitch-tracker errors."""


class NotFound(TrackerError):
    """Identity resolved to no profile after every strategy and the metadata fallback."""

    def __init__(self, identity_id: str):
        super().__init__(f"No profile found for identity {identity_id}")
        self.identity_id = identity_id


class ActorUnresolved(TrackerError):
    """Activity event recorded against an actor with no known profile."""

    def __init__(self, actor_id: str | None, reason: str = "unknown actor"):
        super().__init__(f"Cannot record event for {actor_id!r}: {reason}")
        self.actor_id = actor_id
        self.reason = reason


class StructuralSchemaMismatch(TrackerError):
    """Expected relation or column is absent from the backing store."""

    def __init__(self, relation: str, detail: str = ""):
        msg = f"Relation {relation!r} unavailable"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.relation = relation
        self.detail = detail


class TransientQueryFailure(TrackerError):
    """Network or backend hiccup; safe to retry for reads, surfaced for writes."""

    def __init__(self, relation: str, detail: str = ""):
        msg = f"Query on {relation!r} failed"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.relation = relation
        self.detail = detail


class ForeignKeyViolation(TrackerError):
    """Insert rejected by a foreign-key constraint in the backing store."""

    def __init__(self, relation: str, detail: str = ""):
        super().__init__(f"Foreign key violation on {relation!r}: {detail}".rstrip(": "))
        self.relation = relation
        self.detail = detail


class AuthError(TrackerError):
    """Identity provider rejected a sign-in, sign-up or sign-out call."""


class DegradedAggregate(UserWarning):
    """
    Notice attached to a dashboard state when a refresh failed and the last
    good snapshot was kept. Carried on the state, never raised.
    """

    def __init__(self, sequence: int, cause: BaseException):
        super().__init__(f"Refresh #{sequence} failed, showing last known snapshot: {cause}")
        self.sequence = sequence
        self.cause = cause
