import queue
import random

import pytest

from netpong.common import HOST, GUEST
from netpong.errors import TransportError
from netpong.handshake import Session
from netpong.state import SharedState


FAIL_RECEIVE = object()


class FakeTransport:
    """In-memory stand-in for Transport: records sends, replays queued messages."""
    def __init__(self, fail_sends=False):
        self.sent = []
        self.inbox = queue.Queue()
        self.fail_sends = fail_sends
        self.send_statuses = []
        self.closed = False

    def send(self, msg, status):
        self.send_statuses.append(status)
        if self.fail_sends:
            raise TransportError(status, "simulated send failure")
        self.sent.append(msg)

    def receive(self, status):
        try:
            item = self.inbox.get(timeout=0.02)
        except queue.Empty:
            return None
        if item is FAIL_RECEIVE:
            raise TransportError(status, "simulated receive failure")
        return item, ("127.0.0.1", 9)

    def close(self):
        self.closed = True

    def sent_types(self):
        return [m.type for m in self.sent]


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def host_state():
    return SharedState(rng=random.Random(1))


@pytest.fixture
def host_session():
    return Session(HOST, "hard", 2, 0.005)


@pytest.fixture
def guest_session():
    return Session(GUEST, "hard", 2, 0.005)


@pytest.fixture
def fail_receive():
    return FAIL_RECEIVE
