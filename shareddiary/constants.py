"""Global constants for the shareddiary application."""

# Collection names
USERS_COLLECTION = "user"
GROUPS_COLLECTION = "groups"
DIARY_ENTRIES_COLLECTION = "diaryEntries"
ENTRIES_SUBCOLLECTION = "entries"

# Session keys
SESSION_USER_ID = "user_id"
SESSION_LAST_GROUP_ID = "last_group_id"

# Group ids
GROUP_ID_PREFIX = "DG-"
GROUP_ID_LENGTH = 6
GROUP_ID_MAX_ATTEMPTS = 5

# Member roles and statuses
ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"
STATUS_ADMIN = "admin"
STATUS_APPROVED = "approved"
STATUS_PENDING = "pending"

# Profile fallbacks
ANONYMOUS_NAME = "Anonymous"
UNKNOWN_EMAIL = "unknown@example.com"

# Diary moods
MOODS = ["😊", "😢", "😡", "✨", "❤️", "😴"]
DEFAULT_MOOD = "✨"

# Diary sort orders
SORT_NEWEST_FIRST = "desc"
SORT_OLDEST_FIRST = "asc"

# Email-related constants
SMTP_AUTH_ERROR_CODE = 534

# Firestore allows at most 500 writes per batch
FIRESTORE_BATCH_LIMIT = 400

# Seconds between keep-alive comments on the live entry stream
SSE_KEEPALIVE_SECONDS = 15
