"""Data models for diary entries."""

from __future__ import annotations

from shareddiary.core.types import FirestoreDocument


class DiaryEntry(FirestoreDocument, total=False):
    """An entry in a group's ``entries`` subcollection.

    ``user`` is the author's display name at the time of writing.
    ``createdAt`` is None until the server timestamp has been applied.
    """

    text: str
    mood: str
    user: str
    uid: str
