"""Feature flags for offlinekit.

Flags are read at call time (features.FLAG), so tests and embedding
applications can flip them without rebuilding any object.
"""

# =============================================================================
# Sync commit
# =============================================================================

# Keep entries whose replay failed with `unavailable` for the next pass.
# Off: every snapshot entry is discarded after the pass, failed or not.
FEATURE_RETAIN_FAILED_REPLAYS = False

# Send updates/deletes that target a temporary id to the id the remote
# assigned when the matching create was replayed earlier in the same pass.
FEATURE_TEMP_ID_REMAP_ENABLED = True

# =============================================================================
# Connectivity
# =============================================================================

# Run a sync pass when the connectivity watcher sees offline -> online.
FEATURE_AUTO_SYNC_ON_RECONNECT = True
