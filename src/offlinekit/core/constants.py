"""offlinekit constants.

All magic numbers and storage names live here.
"""
from pathlib import Path

# Queue kinds (one JSONL file per identity/entity type/kind)
QUEUE_OFFLINE_MUTATIONS = "offline_mutations"
QUEUE_PENDING_UPDATES = "pending_updates"
QUEUE_PENDING_DELETIONS = "pending_deletions"
QUEUE_AUTO_SAVED_MIRROR = "auto_saved_mirror"

QUEUE_KINDS = (
    QUEUE_OFFLINE_MUTATIONS,
    QUEUE_PENDING_UPDATES,
    QUEUE_PENDING_DELETIONS,
    QUEUE_AUTO_SAVED_MIRROR,
)

# Kinds replayed by a sync pass, in drain order
REPLAY_QUEUE_KINDS = (
    QUEUE_OFFLINE_MUTATIONS,
    QUEUE_PENDING_UPDATES,
    QUEUE_PENDING_DELETIONS,
)

# Entity type -> remote collection
COLLECTIONS = {
    "content": "generated_content",
    "student": "students",
    "lesson_plan": "lesson_plans",
    "assessment": "assessments",
    "mark": "student_marks",
    "image": "generated_images",
}

# Local storage layout
DEFAULT_DATA_DIR = Path.home() / ".offlinekit"
STATE_FILENAME = "state.json"
SETTINGS_FILENAME = "settings.json"
QUEUE_SUFFIX = ".jsonl"
TOMBSTONE_PREFIX = ".purge-"
IDENTITY_DIGEST_LENGTH = 24

# Temporary ids
TEMP_ID_PREFIX = "tmp_"

# Remote store
DEFAULT_REMOTE_URL = "http://localhost:8080"
DEFAULT_REMOTE_TIMEOUT_SECONDS = 10.0
QUERY_LIMIT = 50

# Content items listed in stats()["recent_activity"]
RECENT_ACTIVITY_LIMIT = 5

# Connectivity probe
DEFAULT_PROBE_HOST = "localhost"
DEFAULT_PROBE_PORT = 8080
PROBE_TIMEOUT_SECONDS = 5.0

# Replay failure reasons
REASON_UNAVAILABLE = "unavailable"
REASON_NOT_FOUND = "not_found"
REASON_VALIDATION_FAILED = "validation_failed"
REASON_ERROR = "error"
