"""Data models for the group blueprint."""

from __future__ import annotations

from typing import Any, TypedDict

from shareddiary.core.types import FirestoreDocument


class Member(TypedDict, total=False):
    """A member entry embedded in a group document."""

    uid: str
    name: str
    email: str
    role: str
    approved: bool
    joinedAt: Any


class Group(FirestoreDocument, total=False):
    """A group document in Firestore."""

    name: str
    adminId: str
    members: list[Member]
    memberUIDs: list[str]
