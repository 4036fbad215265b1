"""Authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    All durations are in their natural units (hours for sessions and
    invites) to make configuration intuitive.
    """

    # Session settings
    session_expiry_hours: int = Field(
        default=2160,  # 90 days
        description="Session lifetime in hours",
        ge=1,
        le=2160,
    )
    session_extend_on_activity: bool = Field(
        default=True,
        description="Whether to extend session expiry on activity",
    )

    # Barber invites
    invite_expiry_hours: int = Field(
        default=72,
        description="How long a barber invite token remains valid",
        ge=1,
        le=720,
    )
