"""Wire format.

Every message travels as one datagram: an ASCII tag, a NUL separator, then an
optional binary payload. Keeping tag and payload in one datagram means a
snapshot can never be paired with the wrong tag when datagrams are dropped or
reordered.
"""
import struct
from enum import Enum
from typing import NamedTuple

from .common import DIFFICULTIES
from .errors import ProtocolError

SEPARATOR = b"\x00"

SNAPSHOT_FMT = "!9i"   # ball x/y, dx/dy, left/right paddle y, left/right score, rounds
SNAPSHOT_SIZE = struct.calcsize(SNAPSHOT_FMT)

ACK_FMT = "!8sI"       # difficulty label, round limit
ACK_SIZE = struct.calcsize(ACK_FMT)


class MessageType(Enum):
    HELLO = "hello"
    ACK = "ack"
    GAME_STATE = "game_state"
    RESET = "reset"
    CLOSE = "close"


class Snapshot(NamedTuple):
    ball_x: int
    ball_y: int
    dx: int
    dy: int
    pad_left_y: int
    pad_right_y: int
    score_left: int
    score_right: int
    rounds_played: int


class Settings(NamedTuple):
    difficulty: str
    rounds: int


class Message(NamedTuple):
    type: MessageType
    payload: object = None


def hello() -> Message:
    return Message(MessageType.HELLO)


def ack(difficulty: str, rounds: int) -> Message:
    return Message(MessageType.ACK, Settings(difficulty, rounds))


def game_state(snapshot: Snapshot) -> Message:
    return Message(MessageType.GAME_STATE, snapshot)


def reset(snapshot: Snapshot) -> Message:
    return Message(MessageType.RESET, snapshot)


def close() -> Message:
    return Message(MessageType.CLOSE)


# --- Encoding ---
def encode_snapshot(snapshot: Snapshot) -> bytes:
    return struct.pack(SNAPSHOT_FMT, *snapshot)


def decode_snapshot(payload: bytes) -> Snapshot:
    if len(payload) != SNAPSHOT_SIZE:
        raise ProtocolError(f"snapshot payload is {len(payload)} bytes, expected {SNAPSHOT_SIZE}")
    snapshot = Snapshot(*struct.unpack(SNAPSHOT_FMT, payload))
    if snapshot.dx not in (-1, 1) or snapshot.dy not in (-1, 0, 1):
        raise ProtocolError(f"bad ball velocity ({snapshot.dx}, {snapshot.dy})")
    return snapshot


def encode_message(msg: Message) -> bytes:
    tag = msg.type.value.encode("ascii")
    if msg.type in (MessageType.GAME_STATE, MessageType.RESET):
        body = encode_snapshot(msg.payload)
    elif msg.type == MessageType.ACK:
        difficulty, rounds = msg.payload
        body = struct.pack(ACK_FMT, difficulty.encode("ascii"), rounds)
    else:
        body = b""
    return tag + SEPARATOR + body


def decode_message(data: bytes) -> Message:
    """Parse one datagram. Raises ProtocolError for anything unrecognized."""
    tag, sep, body = data.partition(SEPARATOR)
    if not sep:
        raise ProtocolError("missing tag separator")
    try:
        kind = MessageType(tag.decode("ascii"))
    except (UnicodeDecodeError, ValueError):
        raise ProtocolError(f"unknown tag {tag[:16]!r}")

    if kind in (MessageType.GAME_STATE, MessageType.RESET):
        return Message(kind, decode_snapshot(body))
    if kind == MessageType.ACK:
        if len(body) != ACK_SIZE:
            raise ProtocolError(f"ack payload is {len(body)} bytes, expected {ACK_SIZE}")
        label, rounds = struct.unpack(ACK_FMT, body)
        try:
            difficulty = label.rstrip(b"\x00").decode("ascii")
        except UnicodeDecodeError:
            raise ProtocolError("undecodable difficulty label")
        if difficulty not in DIFFICULTIES:
            raise ProtocolError(f"unknown difficulty {difficulty!r}")
        return Message(kind, Settings(difficulty, rounds))
    if body:
        raise ProtocolError(f"unexpected payload on {kind.value}")
    return Message(kind)
