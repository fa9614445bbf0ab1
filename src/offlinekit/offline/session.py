"""Session lifecycle: binds queue storage to the signed-in identity.

Every queue, merge and sync call takes the identity explicitly. This
module only decides which identity is active and purges storage when an
identity signs out or is replaced.
"""
import logging

from offlinekit.core.errors import NotAuthenticated
from offlinekit.core.receipt import emit_receipt

from .queue import PendingQueue, identity_digest

logger = logging.getLogger("offlinekit.session")


class SessionManager:
    """Tracks the active identity for one client."""

    def __init__(self, queue: PendingQueue):
        self.queue = queue
        self.active: str | None = None

    def on_sign_in(self, identity: str) -> None:
        """Record the active identity.

        Queues are created lazily on first append. A different identity
        still marked active is purged first, so its storage is gone before
        the new identity touches the queue.
        """
        if not identity:
            raise NotAuthenticated("Sign-in requires an identity")

        if self.active and self.active != identity:
            logger.info("New identity signed in without sign-out, purging previous scope")
            self.on_sign_out(self.active)

        self.active = identity
        emit_receipt("sign_in", {"tenant_id": identity_digest(identity)})

    def on_sign_out(self, identity: str | None = None) -> int:
        """Purge every storage key of an identity before returning.

        Args:
            identity: Identity to purge (defaults to the active one)

        Returns:
            Number of queue files removed
        """
        identity = identity or self.active
        if not identity:
            return 0

        removed = self.queue.purge(identity)
        if identity == self.active:
            self.active = None
        return removed

    def require_scope(self) -> str:
        """Active identity, or NotAuthenticated."""
        if not self.active:
            raise NotAuthenticated("User not authenticated")
        return self.active
