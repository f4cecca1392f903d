from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Closed set of roles understood by the portal."""

    ADMIN = "admin"
    CHECKER = "checker"
    MAKER = "maker"
    VIEWER = "viewer"


CHECKER_ROLES: frozenset[Role] = frozenset({Role.CHECKER, Role.ADMIN})

_ROLE_PREFIX = "role_"


def _normalise(raw: str) -> str:
    value = raw.strip().lower()
    if value.startswith(_ROLE_PREFIX):
        value = value[len(_ROLE_PREFIX) :]
    return value


def parse_roles(raw_roles: Iterable[str], *, legacy_substring_match: bool = False) -> frozenset[Role]:
    """Map identity-provider role strings onto :class:`Role`.

    Matching is exact after lower-casing and dropping a ``ROLE_`` prefix, so
    ``administrative-assistant`` is not an admin. ``legacy_substring_match``
    restores the old behaviour where any role *containing* a role name grants it.
    """

    by_value = {role.value: role for role in Role}
    roles: set[Role] = set()
    for raw in raw_roles:
        value = _normalise(raw)
        if value in by_value:
            roles.add(by_value[value])
            continue
        if legacy_substring_match:
            matched = {role for name, role in by_value.items() if name in value}
            if matched:
                logger.warning("Role %r granted %s through substring matching", raw, sorted(r.value for r in matched))
                roles.update(matched)
                continue
        logger.debug("Ignoring unknown role %r", raw)
    return frozenset(roles)


def has_checker_capability(roles: Iterable[Role]) -> bool:
    return any(role in CHECKER_ROLES for role in roles)
