import socket

import pytest

from redapid.socat import Socat


@pytest.fixture
def pair():
    left, right = socket.socketpair()
    yield left, right
    left.close()
    right.close()


class _FailingSocket:
    def __init__(self, error):
        self.error = error
        self.closed = False

    def recv(self, bufsize):
        raise self.error

    def fileno(self):
        return 99

    def close(self):
        self.closed = True


def test_complete_notification_is_delivered(pair):
    left, right = pair
    received = []
    socat = Socat(left, 4, received.append)
    right.sendall(b"abcd")
    socat.handle_receive()
    assert received == [b"abcd"]
    assert socat.disconnected is True


def test_partial_notification_waits_for_rest(pair):
    left, right = pair
    received = []
    socat = Socat(left, 6, received.append)
    right.sendall(b"abc")
    socat.handle_receive()
    assert received == []
    assert socat.disconnected is False
    assert socat.remaining == 3
    right.sendall(b"def")
    socat.handle_receive()
    assert received == [b"abcdef"]
    assert socat.disconnected is True


def test_peer_close_disconnects(pair):
    left, right = pair
    received = []
    socat = Socat(left, 4, received.append)
    right.close()
    socat.handle_receive()
    assert socat.disconnected is True
    assert received == []


def test_would_block_keeps_connection(pair):
    left, _right = pair
    left.setblocking(False)
    socat = Socat(left, 4, lambda data: None)
    socat.handle_receive()
    assert socat.disconnected is False


def test_interrupted_keeps_connection():
    socat = Socat(_FailingSocket(InterruptedError()), 4, lambda data: None)
    socat.handle_receive()
    assert socat.disconnected is False


def test_receive_error_disconnects():
    socat = Socat(_FailingSocket(ConnectionResetError()), 4, lambda data: None)
    socat.handle_receive()
    assert socat.disconnected is True


def test_feed_takes_only_needed_bytes():
    received = []
    socat = Socat(_FailingSocket(OSError()), 3, received.append)
    assert socat.feed(b"xyzw") == 3
    assert received == [b"xyz"]


def test_feed_after_disconnect_raises():
    socat = Socat(_FailingSocket(OSError()), 2, lambda data: None)
    socat.feed(b"")
    assert socat.disconnected is True
    with pytest.raises(RuntimeError):
        socat.feed(b"a")


def test_invalid_size_rejected():
    with pytest.raises(ValueError):
        Socat(_FailingSocket(OSError()), 0, lambda data: None)


def test_close_closes_socket():
    sock = _FailingSocket(OSError())
    with Socat(sock, 2, lambda data: None) as socat:
        assert socat.fileno() == 99
    assert sock.closed is True