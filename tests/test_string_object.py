import pytest

from redapid.string_object import (
    MAX_ALLOCATE_BUFFER_LENGTH,
    MAX_GET_CHUNK_BUFFER_LENGTH,
    MAX_LENGTH,
    MAX_SET_CHUNK_BUFFER_LENGTH,
    ObjectError,
    ObjectLockedError,
    OutOfRangeError,
    StringObject,
)


def test_wrap_round_trip():
    s = StringObject.wrap("/tmp/d1/d2")
    assert s.value == b"/tmp/d1/d2"
    assert s.get_length() == len("/tmp/d1/d2")
    assert s.text == "/tmp/d1/d2"


def test_wrap_stops_at_nul():
    s = StringObject.wrap(b"abc\0def")
    assert s.value == b"abc"


def test_allocate_bounds_buffer():
    data = b"A123456789B123456789C123456789D123456789E123456789F123456789G"
    s = StringObject.allocate(0, data)
    assert s.value == data[:MAX_ALLOCATE_BUFFER_LENGTH]
    assert len(s) == MAX_ALLOCATE_BUFFER_LENGTH


def test_allocate_reserve_affects_allocation():
    s = StringObject.allocate(100, b"blubb")
    assert s.value == b"blubb"
    assert s.allocated >= 101


def test_allocate_reserve_too_large():
    with pytest.raises(OutOfRangeError):
        StringObject.allocate(MAX_LENGTH + 1, b"")


def test_truncate_shortens_only():
    s = StringObject.wrap("whatever")
    s.truncate(100)
    assert s.value == b"whatever"
    s.truncate(4)
    assert s.value == b"what"


def test_truncate_locked():
    s = StringObject.wrap("whatever")
    s.lock()
    with pytest.raises(ObjectLockedError):
        s.truncate(1)


def test_set_chunk_fills_gap_with_spaces():
    s = StringObject.wrap("ab")
    s.set_chunk(5, b"cd")
    assert s.value == b"ab   cd"


def test_set_chunk_overwrites_middle_keeps_length():
    s = StringObject.wrap("abcdef")
    s.set_chunk(1, b"XY")
    assert s.value == b"aXYdef"


def test_set_chunk_bounded_length():
    s = StringObject()
    s.set_chunk(0, b"x" * 100)
    assert len(s) == MAX_SET_CHUNK_BUFFER_LENGTH


def test_set_chunk_empty_is_noop():
    s = StringObject.wrap("ab")
    s.set_chunk(10, b"")
    assert s.value == b"ab"


def test_set_chunk_errors():
    s = StringObject.wrap("ab")
    with pytest.raises(OutOfRangeError):
        s.set_chunk(MAX_LENGTH + 1, b"x")
    with pytest.raises(OutOfRangeError):
        s.set_chunk(MAX_LENGTH, b"xy")
    s.lock()
    with pytest.raises(ObjectLockedError):
        s.set_chunk(0, b"x")


def test_get_chunk_limits_and_end():
    data = "y" * 100
    s = StringObject.wrap(data)
    assert s.get_chunk(0) == data[:MAX_GET_CHUNK_BUFFER_LENGTH].encode()
    assert s.get_chunk(90) == data[90:].encode()
    assert s.get_chunk(100) == b""


def test_get_chunk_offset_beyond_length():
    s = StringObject.wrap("abc")
    with pytest.raises(OutOfRangeError):
        s.get_chunk(4)


def test_chunks_reassemble():
    data = bytes(range(1, 200))
    s = StringObject()
    for start in range(0, len(data), MAX_SET_CHUNK_BUFFER_LENGTH):
        s.set_chunk(start, data[start : start + MAX_SET_CHUNK_BUFFER_LENGTH])
    collected = b"".join(
        s.get_chunk(start) for start in range(0, len(s), MAX_GET_CHUNK_BUFFER_LENGTH)
    )
    assert collected == data


def test_lock_unlock_and_context():
    s = StringObject.wrap("abc")
    with s.locked():
        assert s.is_locked
        with pytest.raises(ObjectLockedError):
            s.set_chunk(0, b"z")
    assert s.lock_count == 0
    s.set_chunk(0, b"z")
    assert s.value == b"zbc"
    with pytest.raises(ObjectError):
        s.unlock()


def test_signature_reports_length_and_allocation():
    s = StringObject.wrap("hello")
    assert s.signature() == f"length: 5, allocated: {s.allocated}"
    assert s.allocated >= len(s) + 1