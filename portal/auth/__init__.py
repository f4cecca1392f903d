"""Identity resolution for the portal."""

from .claims import DisplayHint, display_hint, peek_claims
from .context import AuthChanged, AuthContext
from .roles import CHECKER_ROLES, Role, has_checker_capability, parse_roles
from .sessions import CustomSession, Identity, LoginResult, SessionKind, SsoSession

__all__ = [
    "AuthChanged",
    "AuthContext",
    "CHECKER_ROLES",
    "CustomSession",
    "DisplayHint",
    "Identity",
    "LoginResult",
    "Role",
    "SessionKind",
    "SsoSession",
    "display_hint",
    "has_checker_capability",
    "parse_roles",
    "peek_claims",
]
