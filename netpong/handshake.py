import logging
import threading
import time
from typing import NamedTuple, Optional

from .common import HOST, GUEST, HELLO_RETRY, tick_interval
from .errors import ExitStatus
from .protocol import MessageType, ack, hello
from .transport import Transport

logger = logging.getLogger(__name__)


class Session(NamedTuple):
    role: str            # HOST or GUEST, fixed for the session
    difficulty: str
    rounds: int
    interval: float      # seconds per tick


def host_handshake(transport: Transport, difficulty: str, rounds: int,
                   stop: threading.Event) -> Optional[Session]:
    """Wait for a Hello, fix the peer endpoint to its sender and answer with an Ack."""
    interval = tick_interval(difficulty)
    logger.info("waiting for a challenger (difficulty=%s, rounds=%d)", difficulty, rounds)
    while not stop.is_set():
        got = transport.receive(ExitStatus.HOST_HANDSHAKE_RECV)
        if got is None:
            continue
        msg, addr = got
        if msg is None or msg.type != MessageType.HELLO:
            continue
        transport.peer = addr
        transport.send(ack(difficulty, rounds), ExitStatus.HOST_ACK_SEND)
        logger.info("challenger at %s", addr)
        return Session(HOST, difficulty, rounds, interval)
    return None


def guest_handshake(transport: Transport, stop: threading.Event,
                    retry: float = HELLO_RETRY) -> Optional[Session]:
    """Send Hello until an Ack arrives; the tick interval comes from the Ack's label."""
    last_hello = None
    while not stop.is_set():
        now = time.monotonic()
        if last_hello is None or now - last_hello >= retry:
            transport.send(hello(), ExitStatus.GUEST_SEND)
            last_hello = now
        got = transport.receive(ExitStatus.GUEST_HANDSHAKE_RECV)
        if got is None:
            continue
        msg, addr = got
        if msg is None or msg.type != MessageType.ACK:
            continue
        difficulty, rounds = msg.payload
        logger.info("joined %s (difficulty=%s, rounds=%d)", addr, difficulty, rounds)
        return Session(GUEST, difficulty, rounds, tick_interval(difficulty))
    return None
