"""Client connection that delivers one fixed-size cron notification."""

from __future__ import annotations

import logging
import socket
from typing import Callable, Optional, Protocol

log = logging.getLogger(__name__)


class _Receiver(Protocol):
    def recv(self, bufsize: int) -> bytes: ...

    def fileno(self) -> int: ...

    def close(self) -> None: ...


NotificationHandler = Callable[[bytes], None]


class Socat:
    """Collects one notification of ``notification_size`` bytes from a socket.

    Once the notification is complete it is handed to ``on_notification`` and
    the connection counts as disconnected. A peer that closes early, or a
    receive error other than an interruption or a would-block condition, also
    disconnects it.
    """

    def __init__(
        self,
        sock: _Receiver,
        notification_size: int,
        on_notification: NotificationHandler,
    ) -> None:
        if notification_size <= 0:
            raise ValueError("notification size must be positive")
        self.socket = sock
        self.notification_size = notification_size
        self._on_notification = on_notification
        self._buffer = bytearray()
        self.disconnected = False
        self._handle = self._fileno()
        log.debug("Creating socat from UNIX domain socket (handle: %s)", self._handle)

    def _fileno(self) -> Optional[int]:
        try:
            return self.socket.fileno()
        except (OSError, ValueError):
            return None

    @property
    def remaining(self) -> int:
        """Number of bytes still missing from the notification."""
        return self.notification_size - len(self._buffer)

    @property
    def received(self) -> bytes:
        return bytes(self._buffer)

    def fileno(self) -> Optional[int]:
        return self._handle

    def feed(self, data: bytes) -> int:
        """Add received bytes; an empty chunk means the peer disconnected.

        Returns how many bytes of ``data`` were taken into the notification.
        """
        if self.disconnected:
            raise RuntimeError("socat is already disconnected")

        if not data:
            log.debug("Socat (handle: %s) disconnected by peer", self._handle)
            self.disconnected = True
            return 0

        taken = bytes(data[: self.remaining])
        self._buffer.extend(taken)

        if self.remaining > 0:
            return len(taken)

        self._on_notification(bytes(self._buffer))
        log.debug(
            "Socat (handle: %s) received complete request, disconnecting socat",
            self._handle,
        )
        self.disconnected = True
        return len(taken)

    def handle_receive(self) -> None:
        """Receive what is available from the socket and process it."""
        if self.disconnected:
            return
        try:
            data = self.socket.recv(self.remaining)
        except InterruptedError:
            log.debug(
                "Receiving from socat (handle: %s) was interrupted, retrying",
                self._handle,
            )
            return
        except (BlockingIOError, socket.timeout):
            log.debug(
                "Receiving from socat (handle: %s) would block, retrying",
                self._handle,
            )
            return
        except OSError as error:
            log.error(
                "Could not receive from socat (handle: %s), disconnecting socat: %s",
                self._handle,
                error,
            )
            self.disconnected = True
            return
        self.feed(data)

    def close(self) -> None:
        """Close the underlying socket."""
        self.socket.close()

    def __enter__(self) -> "Socat":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()