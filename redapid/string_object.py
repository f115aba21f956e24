"""Byte string objects with chunked access and lock counting."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Union

log = logging.getLogger(__name__)

MAX_LENGTH = 2**31 - 1
MAX_ALLOCATE_BUFFER_LENGTH = 58
MAX_SET_CHUNK_BUFFER_LENGTH = 58
MAX_GET_CHUNK_BUFFER_LENGTH = 63

BytesLike = Union[bytes, bytearray, memoryview, str]


class ObjectError(Exception):
    """Base error for operations on daemon objects."""


class ObjectLockedError(ObjectError):
    """The object is locked and cannot be modified."""


class OutOfRangeError(ObjectError, ValueError):
    """A length, offset or lifetime lies outside the permitted range."""


def _to_bytes(data: BytesLike) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def _until_nul(data: bytes) -> bytes:
    end = data.find(b"\0")
    return data if end < 0 else data[:end]


def _bounded(data: BytesLike, limit: int) -> bytes:
    """Return at most ``limit`` bytes of ``data``, stopping at the first NUL."""
    return _until_nul(_to_bytes(data)[:limit])


class StringObject:
    """A mutable byte string that can be locked against modification."""

    def __init__(self, data: BytesLike = b"", reserve: int = 0) -> None:
        content = _until_nul(_to_bytes(data))
        if len(content) > MAX_LENGTH or reserve > MAX_LENGTH:
            raise OutOfRangeError("length exceeds maximum length of string object")
        if reserve < 0:
            raise OutOfRangeError("reserve cannot be negative")
        self._buffer = bytearray(content)
        self.allocated = max(len(content), reserve) + 1
        self.lock_count = 0

    @classmethod
    def wrap(cls, text: BytesLike) -> "StringObject":
        """Create a string object holding ``text`` up to its first NUL byte."""
        return cls(text)

    @classmethod
    def allocate(cls, reserve: int, buffer: BytesLike) -> "StringObject":
        """Create a string object from a bounded initial buffer."""
        content = _bounded(buffer, MAX_ALLOCATE_BUFFER_LENGTH)
        if reserve > MAX_LENGTH:
            log.warning(
                "Cannot reserve %d bytes, exceeds maximum length of string object",
                reserve,
            )
            raise OutOfRangeError(
                f"cannot reserve {reserve} bytes, exceeds maximum length"
            )
        return cls(content, max(reserve, len(content)))

    @property
    def value(self) -> bytes:
        return bytes(self._buffer)

    @property
    def text(self) -> str:
        return self._buffer.decode("utf-8", errors="replace")

    @property
    def is_locked(self) -> bool:
        return self.lock_count > 0

    def __len__(self) -> int:
        return len(self._buffer)

    def __bytes__(self) -> bytes:
        return self.value

    def __repr__(self) -> str:
        return f"StringObject({self.value!r})"

    def _check_unlocked(self, action: str) -> None:
        if self.lock_count > 0:
            log.warning("Cannot %s locked string object", action)
            raise ObjectLockedError(f"cannot {action} locked string object")

    def _reserve(self, reserve: int) -> None:
        if reserve > MAX_LENGTH:
            raise OutOfRangeError(
                f"cannot reserve {reserve} bytes, exceeds maximum length"
            )
        needed = reserve + 1
        if needed > self.allocated:
            self.allocated = needed

    def truncate(self, length: int) -> None:
        """Shorten the string to ``length`` bytes; longer lengths are ignored."""
        self._check_unlocked("truncate")
        if length < 0:
            raise OutOfRangeError("length cannot be negative")
        if length < len(self._buffer):
            del self._buffer[length:]

    def get_length(self) -> int:
        return len(self._buffer)

    def set_chunk(self, offset: int, buffer: BytesLike) -> None:
        """Write a chunk at ``offset``, padding any gap before it with spaces."""
        self._check_unlocked("change")
        if offset < 0 or offset > MAX_LENGTH:
            raise OutOfRangeError(
                f"offset of {offset} byte(s) exceeds maximum length of string object"
            )
        chunk = _bounded(buffer, MAX_SET_CHUNK_BUFFER_LENGTH)
        end = offset + len(chunk)
        if end > MAX_LENGTH:
            raise OutOfRangeError(
                f"offset plus length of {end} byte(s) exceeds maximum length"
            )
        if not chunk:
            return
        if end > self.allocated:
            self._reserve(end)
        if offset > len(self._buffer):
            self._buffer.extend(b" " * (offset - len(self._buffer)))
        self._buffer[offset:end] = chunk
        log.debug("Setting %d byte(s) at offset %d of string object", len(chunk), offset)

    def get_chunk(self, offset: int) -> bytes:
        """Return up to 63 bytes starting at ``offset``."""
        if offset < 0 or offset > MAX_LENGTH:
            raise OutOfRangeError(
                f"offset of {offset} byte(s) exceeds maximum length of string object"
            )
        if offset > len(self._buffer):
            log.warning(
                "Offset of %d byte(s) exceeds string object length of %d byte(s)",
                offset,
                len(self._buffer),
            )
            raise OutOfRangeError(
                f"offset of {offset} byte(s) exceeds string length of "
                f"{len(self._buffer)} byte(s)"
            )
        return bytes(self._buffer[offset : offset + MAX_GET_CHUNK_BUFFER_LENGTH])

    def lock(self) -> None:
        self.lock_count += 1

    def unlock(self) -> None:
        if self.lock_count == 0:
            raise ObjectError("string object is not locked")
        self.lock_count -= 1

    @contextmanager
    def locked(self) -> Iterator["StringObject"]:
        """Hold a lock on the string for the duration of a ``with`` block."""
        self.lock()
        try:
            yield self
        finally:
            self.unlock()

    def signature(self) -> str:
        return f"length: {len(self._buffer)}, allocated: {self.allocated}"