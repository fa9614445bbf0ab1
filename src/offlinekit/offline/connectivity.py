"""Connectivity signal.

is_connected() probes the store host over TCP. ConnectivityWatcher turns
a stream of online/offline readings into transitions and runs a callback
(normally a sync pass) when the store becomes reachable again.
"""
import asyncio
import logging
import socket
from typing import Awaitable, Callable, Optional

from offlinekit.config import features
from offlinekit.core.constants import DEFAULT_PROBE_HOST, DEFAULT_PROBE_PORT, PROBE_TIMEOUT_SECONDS
from offlinekit.core.receipt import emit_receipt

logger = logging.getLogger("offlinekit.connectivity")


def is_connected(
    host: str = DEFAULT_PROBE_HOST,
    port: int = DEFAULT_PROBE_PORT,
    timeout: float = PROBE_TIMEOUT_SECONDS
) -> bool:
    """Check if the remote store host is reachable.

    Args:
        host: Store host
        port: Store port
        timeout: Connection timeout in seconds

    Returns:
        True if a TCP connection could be opened
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(timeout)
        result = sock.connect_ex((host, port))
        sock.close()
        return result == 0
    except (socket.error, OSError):
        return False


class ConnectivityWatcher:
    """Online/offline state with a reconnect hook."""

    def __init__(
        self,
        on_restored: Optional[Callable[[], Awaitable]] = None,
        online: bool = True,
    ):
        self.online = online
        self.on_restored = on_restored
        self.transitions = 0

    async def update(self, online: bool):
        """Feed one reading.

        Returns:
            The on_restored result on an offline -> online transition that
            ran it, else None
        """
        was_online = self.online
        self.online = online
        if was_online == online:
            return None

        self.transitions += 1
        status = "online" if online else "offline"
        logger.info(f"Connectivity changed: {status}")
        emit_receipt("connectivity_change", {"status": status, "transitions": self.transitions})

        if online and self.on_restored and features.FEATURE_AUTO_SYNC_ON_RECONNECT:
            return await self.on_restored()
        return None

    async def probe(
        self,
        host: str = DEFAULT_PROBE_HOST,
        port: int = DEFAULT_PROBE_PORT,
        timeout: float = PROBE_TIMEOUT_SECONDS,
    ):
        """Probe the store host and feed the reading."""
        return await self.update(await asyncio.to_thread(is_connected, host, port, timeout))
