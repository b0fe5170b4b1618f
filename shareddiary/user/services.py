"""Service layer for user profile documents."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from shareddiary.constants import (
    ANONYMOUS_NAME,
    GROUPS_COLLECTION,
    UNKNOWN_EMAIL,
    USERS_COLLECTION,
)

from .models import User

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client


class UserService:
    """Service class for user profile operations."""

    @staticmethod
    def create_profile(db: Client, user_id: str, name: str, email: str) -> None:
        """Create the profile document for a newly signed-up user."""
        db.collection(USERS_COLLECTION).document(user_id).set(
            {
                "name": name,
                "email": email,
                "groupIds": [],
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )

    @staticmethod
    def get_user_by_id(db: Client, user_id: str) -> User | None:
        """Fetch a user profile by ID."""
        user_ref = db.collection(USERS_COLLECTION).document(user_id)
        user_doc = cast("DocumentSnapshot", user_ref.get())
        if not user_doc.exists:
            return None
        data = user_doc.to_dict()
        if data is None:
            return None
        data["id"] = user_id
        return data

    @staticmethod
    def display_name(user_data: User | None) -> str:
        """Return the name to show for a profile, or the anonymous fallback."""
        if not user_data:
            return ANONYMOUS_NAME
        return user_data.get("name") or ANONYMOUS_NAME

    @staticmethod
    def profile_snapshot(user_data: User | None) -> tuple[str, str]:
        """Return the (name, email) pair copied into group member entries."""
        email = (user_data or {}).get("email") or UNKNOWN_EMAIL
        return UserService.display_name(user_data), email

    @staticmethod
    def get_group_ids(user_data: User | None) -> list[str]:
        """Return the group ids listed on a profile."""
        if not user_data:
            return []
        group_ids = user_data.get("groupIds")
        if isinstance(group_ids, list):
            return list(group_ids)
        if user_data.get("groupId"):
            return [user_data["groupId"]]
        return []

    @staticmethod
    def get_user_groups(db: Client, user_id: str) -> list[dict[str, Any]]:
        """Resolve the groups listed on a user's profile.

        Ids whose group document no longer exists are skipped, so a dangling
        back-reference never shows up on the selection page.
        """
        user_data = UserService.get_user_by_id(db, user_id)
        groups = []
        for group_id in UserService.get_group_ids(user_data):
            group_doc = db.collection(GROUPS_COLLECTION).document(group_id).get()
            if not group_doc.exists:
                continue
            group_data = group_doc.to_dict() or {}
            groups.append(
                {
                    "id": group_id,
                    "name": group_data.get("name") or group_id,
                    "adminId": group_data.get("adminId"),
                }
            )
        return groups
