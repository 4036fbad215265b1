"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    InvalidTokenError,
    SessionExpiredError,
)
from auth.types import (
    Session,
    InviteValidation,
)
from auth.config import AuthConfig
from auth.session import SessionManager
from auth.invites import InviteManager
from auth.security_middleware import AuthMiddleware
