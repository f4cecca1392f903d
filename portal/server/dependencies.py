from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from portal.auth.roles import CHECKER_ROLES, Role

from .ratelimit import FixedWindowRateLimiter
from .reports import ReportJobService
from .tickets import TicketService


class User:
    """Authenticated caller of the reference server."""

    def __init__(self, user_id: str, username: str, roles: tuple[Role, ...], display_name: str | None = None):
        self.user_id = user_id
        self.username = username
        self.roles = roles
        self.display_name = display_name

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    @property
    def is_checker(self) -> bool:
        return any(role in CHECKER_ROLES for role in self.roles)


@dataclass(frozen=True, slots=True)
class DevAccount:
    user_id: str
    username: str
    password: str
    token: str
    roles: tuple[Role, ...]
    display_name: str


# Development accounts; a deployment puts a real identity provider in front.
DEV_ACCOUNTS: tuple[DevAccount, ...] = (
    DevAccount("u-100", "maker", "maker-pass", "maker-token", (Role.MAKER, Role.VIEWER), "Mia Maker"),
    DevAccount("u-101", "maker2", "maker2-pass", "maker2-token", (Role.MAKER, Role.VIEWER), "Max Maker"),
    DevAccount("u-200", "checker", "checker-pass", "checker-token", (Role.CHECKER, Role.VIEWER), "Chen Checker"),
    DevAccount("u-201", "checker2", "checker2-pass", "checker2-token", (Role.CHECKER, Role.VIEWER), "Cara Checker"),
    DevAccount("u-900", "admin", "admin-pass", "admin-token", (Role.ADMIN, Role.MAKER, Role.CHECKER, Role.VIEWER), "Ada Admin"),
    DevAccount("u-300", "viewer", "viewer-pass", "viewer-token", (Role.VIEWER,), "Vic Viewer"),
)

_BY_TOKEN = {account.token: account for account in DEV_ACCOUNTS}
_BY_USERNAME = {account.username: account for account in DEV_ACCOUNTS}

bearer_scheme = HTTPBearer(auto_error=False)


def _to_user(account: DevAccount) -> User:
    return User(account.user_id, account.username, account.roles, account.display_name)


def authenticate_credentials(username: str, password: str) -> DevAccount | None:
    account = _BY_USERNAME.get(username)
    if account is None or account.password != password:
        return None
    return account


def resolve_user_from_token(token: str | None) -> User:
    """Return the user owning ``token``; a missing or unknown token is a 401."""

    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    account = _BY_TOKEN.get(token)
    if account is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return _to_user(account)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
) -> User:
    cached = getattr(request.state, "user", None)
    if isinstance(cached, User):
        return cached

    token = credentials.credentials if credentials is not None else None
    user = resolve_user_from_token(token)
    request.state.user = user
    return user


def role_required(*roles: Role) -> Callable[[User], User]:
    """Dependency factory ensuring the current user holds one of ``roles``."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not any(user.has_role(role) for role in roles):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]

require_viewer = role_required(Role.VIEWER, Role.MAKER, Role.CHECKER, Role.ADMIN)
ViewerUser = Annotated[User, Depends(require_viewer)]

require_maker = role_required(Role.MAKER, Role.ADMIN)
MakerUser = Annotated[User, Depends(require_maker)]


async def get_ticket_service(request: Request) -> TicketService:
    service = getattr(request.app.state, "ticket_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return service


async def get_report_service(request: Request) -> ReportJobService:
    service = getattr(request.app.state, "report_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Report service is not configured")
    return service


async def get_status_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.status_limiter
