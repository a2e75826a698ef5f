"""Raw identities and sessions issued by the identity provider."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class RawIdentity(BaseModel):
    """
    Opaque authenticated-session identity from the auth service.
    metadata holds whatever the user supplied at sign-up (name, role, organization).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Auth user id")
    email: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def hint(self, *keys: str) -> Optional[str]:
        """First non-empty metadata value among keys, as a stripped string."""
        for key in keys:
            value = self.metadata.get(key)
            if value is None:
                continue
            text = str(value).strip()
            if text:
                return text
        return None


class AuthSession(BaseModel):
    """Authenticated identity plus the raw credentials the provider handed out."""

    model_config = ConfigDict(frozen=True)

    identity: RawIdentity
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
