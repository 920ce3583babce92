"""Static capability tables for team roles and guest share permissions."""

from __future__ import annotations

# purpose: single source of truth for the allow/deny matrix of team roles and share tokens
# status: active

TEAM_ROLES: tuple[str, ...] = ("viewer", "member", "admin", "owner")
GUEST_PERMISSIONS: tuple[str, ...] = ("view", "comment", "approve")

ACTIONS: frozenset[str] = frozenset(
    {
        "project.create",
        "project.edit",
        "project.delete",
        "project.view",
        "asset.upload",
        "asset.edit",
        "asset.delete",
        "asset.view",
        "asset.download",
        "comment.create",
        "comment.edit",
        "comment.resolve",
        "comment.delete",
        "approval.create",
        "approval.decide",
        "approval.edit",
        "approval.notify",
        "share.create",
        "share.revoke",
        "version.upload",
        "version.delete",
        "team.manage",
        "team.invite",
        "webhook.manage",
        "analytics.view",
    }
)

_VIEWER = frozenset({"project.view", "asset.view", "comment.create"})

_MEMBER = _VIEWER | {
    "asset.upload",
    "asset.edit",
    "asset.download",
    "comment.resolve",
    "approval.decide",
    "approval.notify",
    "share.create",
    "version.upload",
}

_ADMIN = _MEMBER | {
    "project.create",
    "project.edit",
    "comment.edit",
    "approval.create",
    "approval.edit",
    "share.revoke",
    "team.invite",
    "analytics.view",
}

_ROLE_ACTIONS: dict[str, frozenset[str]] = {
    "viewer": _VIEWER,
    "member": frozenset(_MEMBER),
    "admin": frozenset(_ADMIN),
    "owner": ACTIONS,
}

_GUEST_ACTIONS: dict[str, frozenset[str]] = {
    "view": frozenset({"asset.view"}),
    "comment": frozenset({"asset.view", "comment.create"}),
    "approve": frozenset({"asset.view", "comment.create", "approval.decide"}),
}


def allows(role: str | None, action: str) -> bool:
    """Return whether a team role grants ``action``. Unknown roles grant nothing."""

    return action in _ROLE_ACTIONS.get((role or "").lower(), frozenset())


def allows_as_guest(permission: str | None, action: str) -> bool:
    return action in _GUEST_ACTIONS.get((permission or "").lower(), frozenset())


def is_at_least(role: str, minimum: str) -> bool:
    """Compare two team roles on the viewer < member < admin < owner ladder."""

    if role not in TEAM_ROLES or minimum not in TEAM_ROLES:
        return False
    return TEAM_ROLES.index(role) >= TEAM_ROLES.index(minimum)


def permitted_actions(role: str) -> list[str]:
    return sorted(_ROLE_ACTIONS.get(role, frozenset()))


def guest_actions(permission: str) -> list[str]:
    return sorted(_GUEST_ACTIONS.get(permission, frozenset()))
