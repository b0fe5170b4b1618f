"""Data models for user profiles."""

from __future__ import annotations

from shareddiary.core.types import FirestoreDocument


class User(FirestoreDocument, total=False):
    """A user profile document in Firestore."""

    name: str
    email: str
    groupIds: list[str]
    # Older profiles carry a single group id instead of a list
    groupId: str
    uid: str
