"""Sessions that hold external object references for a limited lifetime."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from redapid.string_object import ObjectError, OutOfRangeError

log = logging.getLogger(__name__)

SESSION_ID_ZERO = 0
SESSION_ID_MAX = 0xFFFF
SESSION_MAX_LIFETIME = 3600


class SessionLifetimeError(OutOfRangeError):
    """The requested lifetime exceeds the maximum session lifetime."""


@dataclass
class _Reference:
    obj: Any
    count: int


def _check_lifetime(lifetime: int) -> None:
    if lifetime < 0 or lifetime > SESSION_MAX_LIFETIME:
        log.warning(
            "Lifetime of %d second(s) exceeds maximum lifetime of session", lifetime
        )
        raise SessionLifetimeError(
            f"lifetime of {lifetime} second(s) exceeds maximum lifetime of session"
        )


class Session:
    """Tracks external references to objects and expires after its lifetime.

    A lifetime of zero leaves the expiry timer disarmed, so the session only
    ends when it is expired or closed explicitly.
    """

    def __init__(
        self,
        lifetime: int,
        session_id: int = SESSION_ID_ZERO,
        *,
        clock: Callable[[], float] = time.monotonic,
        on_expire: Optional[Callable[["Session"], None]] = None,
        on_release: Optional[Callable[[Any, int], None]] = None,
    ) -> None:
        _check_lifetime(lifetime)
        if not SESSION_ID_ZERO <= session_id <= SESSION_ID_MAX:
            raise ValueError(f"session id {session_id} out of range")
        self.id = session_id
        self._clock = clock
        self._on_expire = on_expire
        self._on_release = on_release
        self._references: dict[int, _Reference] = {}
        self._deadline = self._deadline_for(lifetime)
        self.expired = False
        self.closed = False
        log.debug("Created session (id: %d, lifetime: %d)", session_id, lifetime)

    def _deadline_for(self, lifetime: int) -> Optional[float]:
        return None if lifetime == 0 else self._clock() + lifetime

    def _check_active(self) -> None:
        if self.expired or self.closed:
            raise ObjectError(f"session (id: {self.id}) is no longer active")

    def _drop_references(self) -> None:
        while self._references:
            key = next(iter(self._references))
            reference = self._references.pop(key)
            if self._on_release is not None:
                self._on_release(reference.obj, reference.count)

    def keep_alive(self, lifetime: int) -> None:
        """Restart the expiry timer with a new lifetime in seconds."""
        _check_lifetime(lifetime)
        self._check_active()
        self._deadline = self._deadline_for(lifetime)
        log.debug(
            "Keeping session (id: %d) alive for %d more second(s)", self.id, lifetime
        )

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Report whether the session has expired, expiring it once its lifetime has ended."""
        if self.expired:
            return True
        if self.closed or self._deadline is None:
            return False
        if now is None:
            now = self._clock()
        if now >= self._deadline:
            log.debug("Lifetime of session (id: %d) ended, expiring it", self.id)
            self._expire()
        return self.expired

    def expire(self) -> None:
        """Expire the session before its lifetime has ended."""
        if self.expired or self.closed:
            return
        log.debug(
            "Expiring session (id: %d) before its lifetime would have ended", self.id
        )
        self._expire()

    def _expire(self) -> None:
        log.debug(
            "Expiring session (id: %d) with %d external reference(s)",
            self.id,
            self.external_reference_count(),
        )
        self._drop_references()
        self.expired = True
        self._deadline = None
        if self._on_expire is not None:
            self._on_expire(self)

    def add_external_reference(self, obj: Any) -> int:
        """Record one more reference to ``obj``; return its count in this session."""
        self._check_active()
        reference = self._references.setdefault(id(obj), _Reference(obj, 0))
        reference.count += 1
        return reference.count

    def remove_external_reference(self, obj: Any) -> int:
        """Drop one reference to ``obj``; return how many remain in this session."""
        reference = self._references.get(id(obj))
        if reference is None:
            raise ValueError(f"session (id: {self.id}) holds no reference to {obj!r}")
        reference.count -= 1
        if reference.count == 0:
            del self._references[id(obj)]
        return reference.count

    def external_reference_count(self) -> int:
        return sum(reference.count for reference in self._references.values())

    @property
    def references(self) -> list[tuple[Any, int]]:
        return [(reference.obj, reference.count) for reference in self._references.values()]

    def close(self) -> None:
        """Destroy the session, releasing any references it still tracks."""
        if self.closed:
            return
        count = self.external_reference_count()
        if count:
            log.warning(
                "Destroying session (id: %d) while it is still tracking %d "
                "external reference(s) to the following objects:",
                self.id,
                count,
            )
            for reference in self._references.values():
                log.warning("  %r", reference.obj)
        self._drop_references()
        self._deadline = None
        self.closed = True

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()