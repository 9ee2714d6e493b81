import socket
import time

import pytest

from browserhttp.timeouts import Timeout


def test_from_value_spreads_number():
    timeout = Timeout.from_value(2)
    assert (timeout.total, timeout.connect, timeout.read) == (2.0, 2.0, 2.0)
    assert Timeout.from_value(timeout) is timeout
    assert Timeout.from_value(None) == Timeout()


def test_read_timeout_without_deadline():
    assert Timeout(read=1.5).read_timeout(None) == 1.5
    assert Timeout().deadline() is None


def test_read_timeout_shrinks_to_deadline():
    timeout = Timeout(total=5, read=10)
    remaining = timeout.read_timeout(time.monotonic() + 0.5)
    assert 0 < remaining <= 0.5


def test_read_timeout_after_deadline():
    with pytest.raises(socket.timeout):
        Timeout(total=1, read=1).read_timeout(time.monotonic() - 0.01)
