"""Service layer for the group membership lifecycle.

A group document owns its embedded member list. Each user profile keeps a
denormalized ``groupIds`` back-reference, so every operation that touches
both documents runs inside a single Firestore transaction.
"""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore
from flask import current_app

from shareddiary.constants import (
    DIARY_ENTRIES_COLLECTION,
    ENTRIES_SUBCOLLECTION,
    FIRESTORE_BATCH_LIMIT,
    GROUP_ID_MAX_ATTEMPTS,
    GROUPS_COLLECTION,
    ROLE_ADMIN,
    ROLE_MEMBER,
    STATUS_PENDING,
    USERS_COLLECTION,
)
from shareddiary.errors import (
    DuplicateResourceError,
    GroupNotFound,
    NotAuthenticatedError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from shareddiary.user.services import UserService

from .models import Group, Member
from .utils import find_member, generate_group_id, member_status, split_members

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class GroupService:
    """Service class for group-related operations."""

    @staticmethod
    def _group_ref(db: Client, group_id: str) -> DocumentReference:
        return db.collection(GROUPS_COLLECTION).document(group_id)

    @staticmethod
    def _user_ref(db: Client, user_id: str) -> DocumentReference:
        return db.collection(USERS_COLLECTION).document(user_id)

    @staticmethod
    def _run_in_transaction(db: Client, func: Any, *args: Any) -> Any:
        """Run ``func(transaction, *args)`` as a retried Firestore transaction."""
        return firestore.transactional(func)(db.transaction(), *args)

    @staticmethod
    def _read_admin_group(
        transaction: Transaction, group_ref: DocumentReference, admin_id: str
    ) -> Group:
        """Read a group inside a transaction and check that the actor is its admin."""
        snapshot = group_ref.get(transaction=transaction)
        if not snapshot.exists:
            raise GroupNotFound()
        group_data = snapshot.to_dict() or {}
        if group_data.get("adminId") != admin_id:
            raise PermissionDeniedError("Only the group admin can manage members.")
        return group_data

    @staticmethod
    def _with_group_id(user_snapshot: DocumentSnapshot, group_id: str) -> list[str]:
        user_data = user_snapshot.to_dict() if user_snapshot.exists else None
        group_ids = UserService.get_group_ids(user_data)
        if group_id not in group_ids:
            group_ids.append(group_id)
        return group_ids

    @staticmethod
    def _without_group_id(user_snapshot: DocumentSnapshot, group_id: str) -> list[str]:
        user_data = user_snapshot.to_dict() if user_snapshot.exists else None
        return [gid for gid in UserService.get_group_ids(user_data) if gid != group_id]

    @staticmethod
    def _write_group_ids(
        transaction: Transaction,
        user_ref: DocumentReference,
        user_snapshot: DocumentSnapshot,
        group_ids: list[str],
    ) -> None:
        if user_snapshot.exists:
            transaction.update(user_ref, {"groupIds": group_ids})
        else:
            transaction.set(user_ref, {"groupIds": group_ids}, merge=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def get_group(db: Client, group_id: str) -> Group:
        """Fetch a group document, raising GroupNotFound if it is absent."""
        snapshot = GroupService._group_ref(db, group_id).get()
        if not snapshot.exists:
            raise GroupNotFound()
        group_data = snapshot.to_dict() or {}
        group_data["id"] = snapshot.id
        return group_data

    @staticmethod
    def open_group(
        db: Client, group_id: str, user_id: str
    ) -> tuple[Group | None, str]:
        """Return the group and the user's status in it.

        A group that no longer exists opens in the pending state, as does a
        group the user has not been approved for.
        """
        try:
            group_data = GroupService.get_group(db, group_id)
        except GroupNotFound:
            return None, STATUS_PENDING
        return group_data, member_status(group_data, user_id)

    @staticmethod
    def require_approved_member(
        db: Client, group_id: str, user_id: str | None
    ) -> Group:
        """Return the group if the user is an approved member (or its admin)."""
        if not user_id:
            raise NotAuthenticatedError()
        group_data = GroupService.get_group(db, group_id)
        if member_status(group_data, user_id) == STATUS_PENDING:
            raise PermissionDeniedError("Your membership is waiting for approval.")
        return group_data

    @staticmethod
    def get_members(
        db: Client, group_id: str
    ) -> tuple[Group, list[Member], list[Member]]:
        """Return the group with its approved and pending members."""
        group_data = GroupService.get_group(db, group_id)
        approved, pending = split_members(group_data.get("members", []))
        return group_data, approved, pending

    @staticmethod
    def get_pending_members(
        db: Client, group_id: str, admin_id: str
    ) -> list[Member]:
        """Return the pending members of a group. Admin only."""
        group_data, _, pending = GroupService.get_members(db, group_id)
        if group_data.get("adminId") != admin_id:
            raise PermissionDeniedError("Only the group admin can review requests.")
        return pending

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @staticmethod
    def _create_group_transaction(
        transaction: Transaction,
        db: Client,
        group_id: str,
        user_id: str,
        name: str,
    ) -> bool:
        """Create the group unless the id is taken. Returns False on collision."""
        group_ref = GroupService._group_ref(db, group_id)
        user_ref = GroupService._user_ref(db, user_id)

        if group_ref.get(transaction=transaction).exists:
            return False
        user_snapshot = user_ref.get(transaction=transaction)
        user_data = user_snapshot.to_dict() if user_snapshot.exists else None
        display_name, email = UserService.profile_snapshot(user_data)

        transaction.set(
            group_ref,
            {
                "name": name,
                "adminId": user_id,
                "createdAt": firestore.SERVER_TIMESTAMP,
                # Server timestamps are not allowed inside arrays
                "members": [
                    {
                        "uid": user_id,
                        "name": display_name,
                        "email": email,
                        "role": ROLE_ADMIN,
                        "approved": True,
                        "joinedAt": _now(),
                    }
                ],
                "memberUIDs": [user_id],
            },
        )
        GroupService._write_group_ids(
            transaction,
            user_ref,
            user_snapshot,
            GroupService._with_group_id(user_snapshot, group_id),
        )
        return True

    @staticmethod
    def create_group(
        db: Client,
        user_id: str | None,
        name: str | None,
        max_attempts: int = GROUP_ID_MAX_ATTEMPTS,
    ) -> str:
        """Create a group with the user as its admin and return the new id."""
        if not user_id:
            raise NotAuthenticatedError()
        name = (name or "").strip()
        if not name:
            raise ValidationError("Enter a group name.")

        for _ in range(max_attempts):
            group_id = generate_group_id()
            created = GroupService._run_in_transaction(
                db, GroupService._create_group_transaction, db, group_id, user_id, name
            )
            if created:
                current_app.logger.info(f"User {user_id} created group {group_id}")
                return group_id
            current_app.logger.warning(
                f"Group id {group_id} already taken, generating another"
            )

        raise DuplicateResourceError("Could not generate a unique group ID.")

    # ------------------------------------------------------------------
    # Join / approve / reject / remove
    # ------------------------------------------------------------------

    @staticmethod
    def _join_group_transaction(
        transaction: Transaction, db: Client, group_id: str, user_id: str
    ) -> str:
        group_ref = GroupService._group_ref(db, group_id)
        user_ref = GroupService._user_ref(db, user_id)

        group_snapshot = group_ref.get(transaction=transaction)
        if not group_snapshot.exists:
            raise GroupNotFound("Group not found. Please check the Group ID.")
        user_snapshot = user_ref.get(transaction=transaction)

        group_data = group_snapshot.to_dict() or {}
        members = list(group_data.get("members", []))
        if find_member(members, user_id) is None:
            user_data = user_snapshot.to_dict() if user_snapshot.exists else None
            display_name, email = UserService.profile_snapshot(user_data)
            members.append(
                {
                    "uid": user_id,
                    "name": display_name,
                    "email": email,
                    "role": ROLE_MEMBER,
                    "approved": False,
                    "joinedAt": _now(),
                }
            )
            transaction.update(group_ref, {"members": members})
            group_data["members"] = members

        # The group shows up for the user while the request is pending
        GroupService._write_group_ids(
            transaction,
            user_ref,
            user_snapshot,
            GroupService._with_group_id(user_snapshot, group_id),
        )
        return member_status(group_data, user_id)

    @staticmethod
    def join_group(db: Client, group_id: str | None, user_id: str | None) -> str:
        """Request to join a group and return the user's resulting status."""
        if not user_id:
            raise NotAuthenticatedError()
        group_id = (group_id or "").strip()
        if not group_id:
            raise ValidationError("Enter a Group ID.")
        return GroupService._run_in_transaction(
            db, GroupService._join_group_transaction, db, group_id, user_id
        )

    @staticmethod
    def _approve_member_transaction(
        transaction: Transaction,
        db: Client,
        group_id: str,
        admin_id: str,
        member_uid: str,
    ) -> Member:
        group_ref = GroupService._group_ref(db, group_id)
        user_ref = GroupService._user_ref(db, member_uid)

        group_data = GroupService._read_admin_group(transaction, group_ref, admin_id)
        user_snapshot = user_ref.get(transaction=transaction)

        members = group_data.get("members", [])
        member = find_member(members, member_uid)
        if member is None:
            raise NotFoundError("Join request not found.")
        if member.get("approved"):
            return member

        approved_member = {**member, "approved": True}
        updated_members = [
            approved_member if m.get("uid") == member_uid else m for m in members
        ]
        member_uids = list(group_data.get("memberUIDs", []))
        if member_uid not in member_uids:
            member_uids.append(member_uid)

        transaction.update(
            group_ref, {"members": updated_members, "memberUIDs": member_uids}
        )
        GroupService._write_group_ids(
            transaction,
            user_ref,
            user_snapshot,
            GroupService._with_group_id(user_snapshot, group_id),
        )
        return approved_member

    @staticmethod
    def approve_member(
        db: Client, group_id: str, admin_id: str | None, member_uid: str
    ) -> Member:
        """Approve a pending member. Approving an approved member changes nothing."""
        if not admin_id:
            raise NotAuthenticatedError()
        return GroupService._run_in_transaction(
            db,
            GroupService._approve_member_transaction,
            db,
            group_id,
            admin_id,
            member_uid,
        )

    @staticmethod
    def _reject_member_transaction(
        transaction: Transaction,
        db: Client,
        group_id: str,
        admin_id: str,
        member_uid: str,
    ) -> Member:
        group_ref = GroupService._group_ref(db, group_id)
        user_ref = GroupService._user_ref(db, member_uid)

        group_data = GroupService._read_admin_group(transaction, group_ref, admin_id)
        user_snapshot = user_ref.get(transaction=transaction)

        members = group_data.get("members", [])
        member = find_member(members, member_uid)
        if member is None:
            raise NotFoundError("Join request not found.")
        if member.get("approved"):
            raise ValidationError("Only pending requests can be rejected.")

        transaction.update(
            group_ref,
            {"members": [m for m in members if m.get("uid") != member_uid]},
        )
        if user_snapshot.exists:
            transaction.update(
                user_ref,
                {"groupIds": GroupService._without_group_id(user_snapshot, group_id)},
            )
        return member

    @staticmethod
    def reject_member(
        db: Client, group_id: str, admin_id: str | None, member_uid: str
    ) -> Member:
        """Reject a pending member and drop the group from their profile."""
        if not admin_id:
            raise NotAuthenticatedError()
        return GroupService._run_in_transaction(
            db,
            GroupService._reject_member_transaction,
            db,
            group_id,
            admin_id,
            member_uid,
        )

    @staticmethod
    def _remove_member_transaction(
        transaction: Transaction,
        db: Client,
        group_id: str,
        admin_id: str,
        member_uid: str,
    ) -> Member:
        group_ref = GroupService._group_ref(db, group_id)
        user_ref = GroupService._user_ref(db, member_uid)

        group_data = GroupService._read_admin_group(transaction, group_ref, admin_id)
        user_snapshot = user_ref.get(transaction=transaction)

        members = group_data.get("members", [])
        member = find_member(members, member_uid)
        if member_uid == group_data.get("adminId") or (
            member is not None and member.get("role") == ROLE_ADMIN
        ):
            raise PermissionDeniedError("The group admin cannot be removed.")
        if member is None:
            raise NotFoundError("Member not found.")

        transaction.update(
            group_ref,
            {
                "members": [m for m in members if m.get("uid") != member_uid],
                "memberUIDs": [
                    uid
                    for uid in group_data.get("memberUIDs", [])
                    if uid != member_uid
                ],
            },
        )
        if user_snapshot.exists:
            transaction.update(
                user_ref,
                {"groupIds": GroupService._without_group_id(user_snapshot, group_id)},
            )
        return member

    @staticmethod
    def remove_member(
        db: Client, group_id: str, admin_id: str | None, member_uid: str
    ) -> Member:
        """Remove a member (approved or pending) from a group. Admin only."""
        if not admin_id:
            raise NotAuthenticatedError()
        return GroupService._run_in_transaction(
            db,
            GroupService._remove_member_transaction,
            db,
            group_id,
            admin_id,
            member_uid,
        )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    @staticmethod
    def _delete_entries(db: Client, group_id: str) -> None:
        """Delete a group's diary entries in batches."""
        entries_ref = (
            db.collection(DIARY_ENTRIES_COLLECTION)
            .document(group_id)
            .collection(ENTRIES_SUBCOLLECTION)
        )
        batch = db.batch()
        pending_writes = 0
        for entry_doc in entries_ref.stream():
            batch.delete(entry_doc.reference)
            pending_writes += 1
            if pending_writes >= FIRESTORE_BATCH_LIMIT:
                batch.commit()
                batch = db.batch()
                pending_writes = 0
        if pending_writes:
            batch.commit()

    @staticmethod
    def delete_group(db: Client, group_id: str, user_id: str | None) -> list[str]:
        """Delete a group. Admin only.

        The group id is retracted from every member's profile first. A failed
        retraction is logged and skipped; the uids that could not be updated
        are returned so the caller can report them.
        """
        if not user_id:
            raise NotAuthenticatedError()
        group_ref = GroupService._group_ref(db, group_id)
        snapshot = group_ref.get()
        if not snapshot.exists:
            raise GroupNotFound()
        group_data = snapshot.to_dict() or {}
        if group_data.get("adminId") != user_id:
            raise PermissionDeniedError("Only the group admin can delete this group.")

        failed = []
        for member in group_data.get("members", []):
            member_uid = member.get("uid")
            if not member_uid:
                continue
            try:
                GroupService._user_ref(db, member_uid).update(
                    {"groupIds": firestore.ArrayRemove([group_id])}
                )
            except Exception as e:
                current_app.logger.warning(
                    f"Could not remove group {group_id} from user {member_uid}: {e}"
                )
                failed.append(member_uid)

        GroupService._delete_entries(db, group_id)
        group_ref.delete()
        current_app.logger.info(f"User {user_id} deleted group {group_id}")
        return failed
