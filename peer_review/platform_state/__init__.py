from .client import PlatformSyncClient, SyncResult
from .errors import ConnectionFailed, HttpStatusError, MalformedPayload, SyncError
from .history import ensure_upload_history
from .models import PlatformState
from .normalizer import normalize_platform_state
from .store import SnapshotStore

__all__ = [
    "PlatformSyncClient",
    "SyncResult",
    "ConnectionFailed",
    "HttpStatusError",
    "MalformedPayload",
    "SyncError",
    "ensure_upload_history",
    "PlatformState",
    "normalize_platform_state",
    "SnapshotStore",
]
