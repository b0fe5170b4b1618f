"""Service layer for diary entries."""

from __future__ import annotations

import datetime
import logging
import threading
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from shareddiary.constants import (
    DEFAULT_MOOD,
    DIARY_ENTRIES_COLLECTION,
    ENTRIES_SUBCOLLECTION,
    MOODS,
    SORT_NEWEST_FIRST,
    SORT_OLDEST_FIRST,
)
from shareddiary.errors import ValidationError
from shareddiary.group.services import GroupService
from shareddiary.user.services import UserService

from .models import DiaryEntry

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.collection import CollectionReference

logger = logging.getLogger(__name__)

UTC = datetime.timezone.utc


def _as_aware(value: datetime.datetime) -> datetime.datetime:
    """Firestore timestamps are UTC; treat naive datetimes the same way."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class EntryService:
    """Service class for diary entry operations."""

    @staticmethod
    def entries_ref(db: Client, group_id: str) -> CollectionReference:
        return (
            db.collection(DIARY_ENTRIES_COLLECTION)
            .document(group_id)
            .collection(ENTRIES_SUBCOLLECTION)
        )

    @staticmethod
    def entry_from_snapshot(snapshot: DocumentSnapshot) -> DiaryEntry:
        data = snapshot.to_dict() or {}
        entry: DiaryEntry = {
            "id": snapshot.id,
            "text": data.get("text", ""),
            "mood": data.get("mood") or DEFAULT_MOOD,
            "user": data.get("user") or UserService.display_name(None),
            "uid": data.get("uid", ""),
            "createdAt": data.get("createdAt"),
        }
        return entry

    @staticmethod
    def add_entry(
        db: Client,
        group_id: str,
        user_id: str | None,
        text: str | None,
        mood: str | None = DEFAULT_MOOD,
    ) -> str:
        """Write a new entry for an approved member and return its id."""
        text = (text or "").strip()
        if not text:
            raise ValidationError("Write something before saving your entry.")
        mood = mood or DEFAULT_MOOD
        if mood not in MOODS:
            raise ValidationError(f"Unknown mood: {mood}")

        GroupService.require_approved_member(db, group_id, user_id)
        author = UserService.display_name(UserService.get_user_by_id(db, user_id))

        _, entry_ref = EntryService.entries_ref(db, group_id).add(
            {
                "text": text,
                "mood": mood,
                "user": author,
                "uid": user_id,
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )
        return entry_ref.id

    @staticmethod
    def list_entries(db: Client, group_id: str) -> list[DiaryEntry]:
        """Fetch all entries of a group once, newest first."""
        query = EntryService.entries_ref(db, group_id).order_by(
            "createdAt", direction=firestore.Query.DESCENDING
        )
        return [EntryService.entry_from_snapshot(doc) for doc in query.stream()]

    @staticmethod
    def watch_entries(db: Client, group_id: str) -> EntryFeed:
        """Start a live subscription to a group's entries."""
        return EntryFeed(db, group_id).start()

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    @staticmethod
    def entry_time(
        entry: DiaryEntry, now: datetime.datetime | None = None
    ) -> datetime.datetime:
        """Return the entry's timestamp; a pending server write counts as now."""
        created_at = entry.get("createdAt")
        if isinstance(created_at, datetime.datetime):
            return _as_aware(created_at)
        return _as_aware(now) if now else datetime.datetime.now(UTC)

    @staticmethod
    def local_date(
        entry: DiaryEntry,
        tz: datetime.tzinfo | None = None,
        now: datetime.datetime | None = None,
    ) -> str:
        """Return the entry's calendar date as YYYY-MM-DD in the given zone."""
        created_at = EntryService.entry_time(entry, now)
        return created_at.astimezone(tz or UTC).date().isoformat()

    @staticmethod
    def sort_entries(
        entries: list[DiaryEntry],
        sort: str = SORT_NEWEST_FIRST,
        now: datetime.datetime | None = None,
    ) -> list[DiaryEntry]:
        if sort not in (SORT_NEWEST_FIRST, SORT_OLDEST_FIRST):
            raise ValidationError(f"Unknown sort order: {sort}")
        now = now or datetime.datetime.now(UTC)
        return sorted(
            entries,
            key=lambda entry: EntryService.entry_time(entry, now),
            reverse=sort == SORT_NEWEST_FIRST,
        )

    @staticmethod
    def filter_entries(
        entries: list[DiaryEntry],
        author: str | None = None,
        mood: str | None = None,
        date: str | None = None,
        sort: str | None = SORT_NEWEST_FIRST,
        tz: datetime.tzinfo | None = None,
        now: datetime.datetime | None = None,
    ) -> list[DiaryEntry]:
        """Filter by author name, mood and local date, then sort by time.

        Empty filter values are ignored.
        """
        if mood and mood not in MOODS:
            raise ValidationError(f"Unknown mood: {mood}")
        if date:
            try:
                datetime.date.fromisoformat(date)
            except ValueError as e:
                raise ValidationError("Dates must look like YYYY-MM-DD.") from e

        now = now or datetime.datetime.now(UTC)
        filtered = [
            entry
            for entry in entries
            if (not author or entry.get("user") == author)
            and (not mood or entry.get("mood") == mood)
            and (not date or EntryService.local_date(entry, tz, now) == date)
        ]
        return EntryService.sort_entries(filtered, sort or SORT_NEWEST_FIRST, now)

    @staticmethod
    def group_by_date(
        entries: list[DiaryEntry],
        tz: datetime.tzinfo | None = None,
        now: datetime.datetime | None = None,
    ) -> list[tuple[str, list[DiaryEntry]]]:
        """Bucket entries by local date.

        Buckets appear in the order of their first entry, so the caller's sort
        order carries over to both the days and the entries inside them.
        """
        now = now or datetime.datetime.now(UTC)
        buckets: dict[str, list[DiaryEntry]] = {}
        for entry in entries:
            buckets.setdefault(EntryService.local_date(entry, tz, now), []).append(entry)
        return list(buckets.items())

    @staticmethod
    def author_names(entries: list[DiaryEntry]) -> list[str]:
        """Return the distinct author names, alphabetically."""
        return sorted({entry["user"] for entry in entries if entry.get("user")})

    @staticmethod
    def to_json(
        entry: DiaryEntry,
        tz: datetime.tzinfo | None = None,
        now: datetime.datetime | None = None,
    ) -> dict[str, Any]:
        """Return a JSON-serializable copy of an entry."""
        created_at = EntryService.entry_time(entry, now)
        return {
            "id": entry.get("id"),
            "text": entry.get("text"),
            "mood": entry.get("mood"),
            "user": entry.get("user"),
            "uid": entry.get("uid"),
            "createdAt": created_at.isoformat(),
            "pending": entry.get("createdAt") is None,
            "date": created_at.astimezone(tz or UTC).date().isoformat(),
        }


class EntryFeed:
    """Live view of a group's entries backed by a Firestore snapshot listener.

    The listener runs on a background thread owned by the SDK. Every delivery
    replaces the whole entry list; readers wait on ``wait_for_update``.
    """

    def __init__(self, db: Client, group_id: str):
        self.group_id = group_id
        self._query = EntryService.entries_ref(db, group_id).order_by(
            "createdAt", direction=firestore.Query.DESCENDING
        )
        self._changed = threading.Condition(threading.Lock())
        self._entries: list[DiaryEntry] | None = None
        self._version = 0
        self._watch = None

    def start(self) -> EntryFeed:
        self._watch = self._query.on_snapshot(self._on_snapshot)
        return self

    def _on_snapshot(self, docs, changes, read_time) -> None:
        entries = [EntryService.entry_from_snapshot(doc) for doc in docs]
        with self._changed:
            self._entries = entries
            self._version += 1
            version = self._version
            self._changed.notify_all()
        logger.debug(
            f"Group {self.group_id}: snapshot {version} with {len(entries)} entries"
        )

    @property
    def version(self) -> int:
        with self._changed:
            return self._version

    def latest(self) -> list[DiaryEntry] | None:
        """Return the most recent snapshot, or None before the first delivery."""
        with self._changed:
            return None if self._entries is None else list(self._entries)

    def wait_for_update(
        self, seen_version: int, timeout: float | None = None
    ) -> tuple[int, list[DiaryEntry] | None]:
        """Block until a snapshot newer than ``seen_version`` arrives.

        Returns ``(version, entries)``; on timeout the version is unchanged.
        """
        with self._changed:
            self._changed.wait_for(lambda: self._version > seen_version, timeout)
            entries = None if self._entries is None else list(self._entries)
            return self._version, entries

    def close(self) -> None:
        if self._watch is not None:
            self._watch.unsubscribe()
            self._watch = None
            logger.debug(f"Group {self.group_id}: live subscription closed")

    def __enter__(self) -> EntryFeed:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
