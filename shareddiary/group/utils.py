"""Utility functions for the group blueprint."""

from __future__ import annotations

import secrets
import string
from typing import TYPE_CHECKING

from shareddiary.constants import (
    GROUP_ID_LENGTH,
    GROUP_ID_PREFIX,
    ROLE_ADMIN,
    STATUS_ADMIN,
    STATUS_APPROVED,
    STATUS_PENDING,
)

if TYPE_CHECKING:
    from .models import Group, Member

GROUP_ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_group_id() -> str:
    """Return a shareable group id such as ``DG-7KQ2ZD``."""
    suffix = "".join(secrets.choice(GROUP_ID_ALPHABET) for _ in range(GROUP_ID_LENGTH))
    return f"{GROUP_ID_PREFIX}{suffix}"


def find_member(members: list[Member], uid: str) -> Member | None:
    """Return the member entry for ``uid``, if any."""
    for member in members:
        if member.get("uid") == uid:
            return member
    return None


def split_members(
    members: list[Member],
) -> tuple[list[Member], list[Member]]:
    """Split member entries into (approved, pending) lists, keeping their order."""
    approved = [m for m in members if m.get("approved")]
    pending = [m for m in members if not m.get("approved")]
    return approved, pending


def member_status(group_data: Group | None, uid: str) -> str:
    """Resolve a user's standing in a group: admin, approved or pending.

    A missing group, or a user absent from its member list, counts as pending.
    """
    if not group_data:
        return STATUS_PENDING
    member = find_member(group_data.get("members", []), uid)
    if member is None:
        return STATUS_PENDING
    if member.get("role") == ROLE_ADMIN:
        return STATUS_ADMIN
    if member.get("approved"):
        return STATUS_APPROVED
    return STATUS_PENDING
