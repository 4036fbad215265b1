"""Barber invite tokens.

An admin issues an invite for an existing barber profile; the invitee
presents the token when their identity is provisioned. Tokens live in
Valkey with TTL matching invite expiry and are single use.
"""

import secrets
from datetime import datetime, timedelta
from uuid import UUID

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import InvalidTokenError
from auth.types import InviteValidation
from utils.timezone import now_utc, parse_iso


class InviteManager:
    """Issue, validate and consume barber invite tokens."""

    KEY_PREFIX = "invite:barber:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._config = config

    def _key(self, token: str) -> str:
        return f"{self.KEY_PREFIX}{token}"

    def issue(self, barber_id: UUID, created_by: UUID) -> tuple[str, datetime]:
        """
        Issue an invite token for a barber profile.

        Returns:
            (token, expires_at)
        """
        token = secrets.token_hex(32)
        expires_at = now_utc() + timedelta(hours=self._config.invite_expiry_hours)

        self._valkey.set_json(
            self._key(token),
            {
                "barber_id": str(barber_id),
                "created_by": str(created_by),
                "expires_at": expires_at.isoformat(),
            },
            expire_seconds=self._config.invite_expiry_hours * 3600,
        )

        return token, expires_at

    def validate(self, token: str) -> InviteValidation:
        """
        Check a token without consuming it.

        Unknown, used and expired tokens are all reported as invalid.
        """
        data = self._valkey.get_json(self._key(token))
        if data is None:
            return InviteValidation(valid=False)

        if now_utc() > parse_iso(data["expires_at"]):
            return InviteValidation(valid=False)

        return InviteValidation(valid=True, owner_id=UUID(data["barber_id"]))

    def consume(self, token: str) -> UUID:
        """
        Validate and invalidate a token in one step.

        Returns:
            The barber id the invite was issued for

        Raises:
            InvalidTokenError: If the token is unknown, used or expired
        """
        data = self._valkey.take_json(self._key(token))
        if data is None:
            raise InvalidTokenError("Invite token is invalid or already used")

        if now_utc() > parse_iso(data["expires_at"]):
            raise InvalidTokenError("Invite token has expired")

        return UUID(data["barber_id"])
