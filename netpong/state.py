"""Shared simulation state and the rules for merging a remote peer's view into it.

One lock guards the whole record. Ownership is split by space and by event,
not by role alone:

  - the local paddle is only written by local input and is never overwritten
    by the network;
  - the remote paddle and the remote score always take the latest value
    received;
  - the ball follows whichever peer is authoritative for the half it is in,
    as seen locally: the host runs its own physics on the left half (it owns
    the left goal) and takes the guest's ball on the right half, and the
    guest does the mirror image;
  - rounds only move forward, and a reset that advances the round also
    clears the local peer's pending score.
"""
import random
import threading
import time
from typing import NamedTuple, Optional

from .common import (
    WIDTH, HEIGHT, PADLX, PADRX, PADDLE_REACH, SCORE_TO_WIN_ROUND,
    COUNTDOWN_SECONDS, HOST, GUEST, clamp
)
from .protocol import Snapshot

MIDLINE = WIDTH // 2
CENTER_Y = HEIGHT // 2
TOP_ROW = 1
BOTTOM_ROW = HEIGHT - 2

SCORE_LEFT_MESSAGE = "<-- SCORE"
SCORE_RIGHT_MESSAGE = "SCORE -->"
START_MESSAGE = "Starting Game"


class Tick(NamedTuple):
    snapshot: Snapshot
    scored: Optional[str]   # countdown message when this tick scored a point


class Frame(NamedTuple):
    """What the renderer needs: a snapshot plus any running countdown."""
    snapshot: Snapshot
    countdown_message: Optional[str]
    countdown_until: float


def _sign(v):
    return (v > 0) - (v < 0)


class SharedState:
    def __init__(self, rng=None, clock=time.monotonic):
        self.lock = threading.Lock()
        self.rng = rng or random.Random()
        self.clock = clock

        self.ball_x = 0
        self.ball_y = 0
        self.dx = 0
        self.dy = 0
        self.pad_left_y = 0
        self.pad_right_y = 0
        self.score_left = 0
        self.score_right = 0
        self.rounds_played = 0

        self.countdown_message = None
        self.countdown_until = 0.0

    # --- Readers ---
    def _snapshot(self) -> Snapshot:
        return Snapshot(self.ball_x, self.ball_y, self.dx, self.dy,
                        self.pad_left_y, self.pad_right_y,
                        self.score_left, self.score_right, self.rounds_played)

    def snapshot(self) -> Snapshot:
        with self.lock:
            return self._snapshot()

    def frame(self) -> Frame:
        with self.lock:
            return Frame(self._snapshot(), self.countdown_message, self.countdown_until)

    def rounds(self) -> int:
        with self.lock:
            return self.rounds_played

    def countdown_remaining(self) -> float:
        with self.lock:
            return self._countdown_remaining()

    def _countdown_remaining(self):
        if self.countdown_message is None:
            return 0.0
        return max(0.0, self.countdown_until - self.clock())

    # --- Writers (each takes the lock) ---
    def reset_positions(self):
        with self.lock:
            self._reset_positions()

    def _reset_positions(self):
        """Centre ball and paddles; the ball serves in a random horizontal direction."""
        self.ball_x = MIDLINE
        self.ball_y = CENTER_Y
        self.pad_left_y = self.pad_right_y = CENTER_Y
        self.dx = self.rng.choice((-1, 1))
        self.dy = 0

    def move_paddle(self, role: str, delta: int):
        """Apply a local input delta (-1 up, +1 down) to this peer's own paddle."""
        with self.lock:
            if role == HOST:
                self.pad_right_y = clamp(self.pad_right_y + delta, TOP_ROW, BOTTOM_ROW)
            else:
                self.pad_left_y = clamp(self.pad_left_y + delta, TOP_ROW, BOTTOM_ROW)

    def begin_countdown(self, message: str, seconds: float = COUNTDOWN_SECONDS):
        with self.lock:
            self._begin_countdown(message, seconds)

    def _begin_countdown(self, message, seconds):
        self.countdown_message = message
        self.countdown_until = self.clock() + seconds

    def finish_countdown(self) -> bool:
        """
        Close an expired countdown. Input that piled up while it ran is wiped
        by re-centring both paddles. Returns False if nothing was finished.
        """
        with self.lock:
            if self.countdown_message is None or self._countdown_remaining() > 0:
                return False
            self.countdown_message = None
            self.pad_left_y = self.pad_right_y = CENTER_Y
            return True

    def step(self, role: str) -> Tick:
        """Advance one tick of physics as seen by `role`. Frozen while a countdown runs."""
        with self.lock:
            if self._countdown_remaining() > 0:
                return Tick(self._snapshot(), None)

            self.ball_x += self.dx
            self.ball_y += self.dy

            # Paddle nearest the ball
            if self.ball_x < MIDLINE:
                pad_y, col_x = self.pad_left_y, PADLX + 1
            else:
                pad_y, col_x = self.pad_right_y, PADRX - 1
            if self.ball_x == col_x and abs(self.ball_y - pad_y) <= PADDLE_REACH:
                self.dx = -self.dx
                self.dy = _sign(self.ball_y - pad_y)

            if self.ball_y <= TOP_ROW:
                self.dy = 1
            elif self.ball_y >= BOTTOM_ROW:
                self.dy = -1

            # Only the peer owning a goal boundary scores it
            scored = None
            if role == HOST and self.ball_x <= PADLX:
                self.score_right = self._add_point(self.score_right)
                scored = SCORE_RIGHT_MESSAGE
            elif role == GUEST and self.ball_x >= PADRX:
                self.score_left = self._add_point(self.score_left)
                scored = SCORE_LEFT_MESSAGE
            if scored:
                self._reset_positions()
            return Tick(self._snapshot(), scored)

    def _add_point(self, score):
        score += 1
        if score >= SCORE_TO_WIN_ROUND:
            self.rounds_played += 1
            return 0
        return score

    # --- Merging remote views ---
    def apply_update(self, role: str, remote: Snapshot):
        """Merge a periodic state update from the peer. Overwrites, never diffs."""
        with self.lock:
            if role == HOST:
                take_ball = self.ball_x > MIDLINE
                self.pad_left_y = remote.pad_left_y
                self.score_left = remote.score_left
            else:
                take_ball = self.ball_x < MIDLINE
                self.pad_right_y = remote.pad_right_y
                self.score_right = remote.score_right
            if take_ball:
                self.ball_x, self.ball_y = remote.ball_x, remote.ball_y
                self.dx, self.dy = remote.dx, remote.dy

    def apply_reset(self, role: str, remote: Snapshot,
                    seconds: float = COUNTDOWN_SECONDS) -> Optional[str]:
        """
        Merge a round reset broadcast by the peer that scored. Returns the
        countdown message, or None when a countdown was already running (a
        duplicate reset, or the serve direction sent at game start), in which
        case the running countdown is left alone.
        """
        with self.lock:
            self._reset_positions()
            self.dx = remote.dx
            ahead = remote.rounds_played > self.rounds_played
            if ahead:
                self.rounds_played = remote.rounds_played
            if role == HOST:
                self.score_left = remote.score_left
                if ahead:
                    self.score_right = 0
                message = SCORE_LEFT_MESSAGE
            else:
                self.score_right = remote.score_right
                if ahead:
                    self.score_left = 0
                message = SCORE_RIGHT_MESSAGE
            if self._countdown_remaining() > 0:
                return None
            self._begin_countdown(message, seconds)
            return message
