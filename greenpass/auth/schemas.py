"""Auth domain schemas."""

from dataclasses import dataclass

from pydantic import BaseModel


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as asserted by the identity provider."""

    subject_id: str
    email: str | None = None
    display_name: str | None = None


class AuthLogout(BaseModel):
    message: str = "Logged out"
