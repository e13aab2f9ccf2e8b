"""Identity of the caller, as carried by the bearer token."""

from pydantic import BaseModel, Field


class Requester(BaseModel):
    """Authenticated caller of the API."""

    user_id: str = Field(..., min_length=1, max_length=128, description="Stable requester reference")
    email: str | None = Field(None, description="Contact address for notifications")
    roles: list[str] = Field(default_factory=list, description="Granted roles")

    @property
    def is_admin(self) -> bool:
        """Return True if the requester may perform admin actions."""
        return "admin" in self.roles
