import random

import pytest

from netpong.common import HOST, GUEST, HEIGHT
from netpong.protocol import Snapshot
from netpong.state import (
    SharedState, MIDLINE, CENTER_Y, SCORE_LEFT_MESSAGE, SCORE_RIGHT_MESSAGE
)


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def remote(**fields):
    base = Snapshot(30, 5, 1, -1, 3, 17, 1, 1, 0)
    return base._replace(**fields)


def test_new_state_is_zeroed():
    assert SharedState().snapshot() == Snapshot(0, 0, 0, 0, 0, 0, 0, 0, 0)


def test_reset_centres_ball_and_paddles(host_state):
    host_state.reset_positions()
    snap = host_state.snapshot()
    assert (snap.ball_x, snap.ball_y) == (21, 10)
    assert snap.pad_left_y == snap.pad_right_y == CENTER_Y
    assert snap.dx in (-1, 1)
    assert snap.dy == 0


@pytest.mark.parametrize("role", [HOST, GUEST])
def test_velocity_stays_in_range_every_tick(role):
    rng = random.Random(7)
    state = SharedState(rng=rng)
    state.reset_positions()
    for _ in range(5000):
        state.move_paddle(HOST, rng.choice((-1, 0, 1)))
        state.move_paddle(GUEST, rng.choice((-1, 0, 1)))
        snap = state.step(role).snapshot
        assert snap.dx in (-1, 1)
        assert snap.dy in (-1, 0, 1)
        assert 1 <= snap.ball_y <= HEIGHT - 2


def test_ball_reaching_left_goal_scores_right_on_host(host_state):
    host_state.reset_positions()
    with host_state.lock:
        host_state.dx = -1
        host_state.pad_left_y = 18     # out of the ball's way
    for _ in range(19):
        tick = host_state.step(HOST)
        assert tick.scored is None
    tick = host_state.step(HOST)
    assert tick.scored == SCORE_RIGHT_MESSAGE
    snap = tick.snapshot
    assert snap.score_right == 1
    assert (snap.ball_x, snap.ball_y) == (21, 10)
    assert snap.dx in (-1, 1) and snap.dy == 0


def test_guest_does_not_score_the_left_goal():
    state = SharedState(rng=random.Random(3))
    state.reset_positions()
    with state.lock:
        state.dx = -1
        state.pad_left_y = 18
    for _ in range(25):
        assert state.step(GUEST).scored is None
    assert state.snapshot().score_right == 0


def test_guest_scores_the_right_goal():
    state = SharedState(rng=random.Random(3))
    state.reset_positions()
    with state.lock:
        state.dx = 1
        state.pad_right_y = 2
    scored = [state.step(GUEST).scored for _ in range(20)]
    assert scored[-1] == SCORE_LEFT_MESSAGE
    assert state.snapshot().score_left == 1


def test_paddle_bounce_sets_vertical_direction(host_state):
    with host_state.lock:
        host_state.ball_x, host_state.ball_y = 3, 9
        host_state.dx, host_state.dy = -1, 0
        host_state.pad_left_y = 10
    host_state.step(HOST)
    snap = host_state.snapshot()
    assert (snap.dx, snap.dy) == (1, -1)   # above the paddle centre -> up


def test_walls_force_vertical_direction(host_state):
    with host_state.lock:
        host_state.ball_x, host_state.ball_y = 15, 2
        host_state.dx, host_state.dy = 1, -1
    host_state.step(HOST)
    assert host_state.snapshot().dy == 1
    with host_state.lock:
        host_state.ball_y, host_state.dy = HEIGHT - 3, 1
    host_state.step(HOST)
    assert host_state.snapshot().dy == -1


def test_second_point_wins_the_round_atomically(host_state):
    host_state.reset_positions()
    with host_state.lock:
        host_state.score_right = 1
        host_state.ball_x, host_state.dx = 2, -1
        host_state.pad_left_y = 18
    tick = host_state.step(HOST)
    assert tick.snapshot.score_right == 0
    assert tick.snapshot.rounds_played == 1


def test_update_is_idempotent(host_state):
    host_state.reset_positions()
    with host_state.lock:
        host_state.ball_x = 30
    update = remote()
    host_state.apply_update(HOST, update)
    once = host_state.snapshot()
    host_state.apply_update(HOST, update)
    assert host_state.snapshot() == once


def test_host_ignores_remote_ball_on_its_own_half(host_state):
    with host_state.lock:
        host_state.ball_x, host_state.ball_y, host_state.dx, host_state.dy = 10, 10, -1, 0
    host_state.apply_update(HOST, remote(ball_x=30, ball_y=5, dx=1, dy=-1))
    snap = host_state.snapshot()
    assert (snap.ball_x, snap.ball_y, snap.dx, snap.dy) == (10, 10, -1, 0)


def test_host_takes_remote_ball_on_the_far_half(host_state):
    with host_state.lock:
        host_state.ball_x, host_state.ball_y, host_state.dx, host_state.dy = 30, 10, 1, 0
    host_state.apply_update(HOST, remote(ball_x=32, ball_y=5, dx=-1, dy=-1))
    snap = host_state.snapshot()
    assert (snap.ball_x, snap.ball_y, snap.dx, snap.dy) == (32, 5, -1, -1)


def test_guest_ownership_is_mirrored():
    state = SharedState()
    with state.lock:
        state.ball_x, state.ball_y, state.dx, state.dy = 30, 10, 1, 0
    state.apply_update(GUEST, remote(ball_x=10, dx=-1))
    assert state.snapshot().ball_x == 30
    with state.lock:
        state.ball_x = 10
    state.apply_update(GUEST, remote(ball_x=8, dx=-1))
    assert state.snapshot().ball_x == 8


def test_nobody_takes_the_ball_on_the_midline(host_state):
    with host_state.lock:
        host_state.ball_x, host_state.dx = MIDLINE, 1
    host_state.apply_update(HOST, remote(ball_x=25))
    assert host_state.snapshot().ball_x == MIDLINE


def test_update_overwrites_remote_fields_only(host_state):
    with host_state.lock:
        host_state.pad_right_y = 4
        host_state.score_right = 1
        host_state.ball_x = 10
    host_state.apply_update(HOST, remote(pad_left_y=15, pad_right_y=16, score_left=1, score_right=0))
    snap = host_state.snapshot()
    assert snap.pad_left_y == 15 and snap.score_left == 1
    assert snap.pad_right_y == 4 and snap.score_right == 1


def test_reset_advancing_the_round_clears_local_score():
    state = SharedState(clock=FakeClock())
    with state.lock:
        state.score_right = 1
        state.score_left = 1
    message = state.apply_reset(HOST, remote(score_left=0, rounds_played=1, dx=-1))
    snap = state.snapshot()
    assert message == SCORE_LEFT_MESSAGE
    assert snap.score_right == 0
    assert snap.score_left == 0
    assert snap.rounds_played == 1
    assert (snap.ball_x, snap.ball_y, snap.dx) == (21, 10, -1)


@pytest.mark.parametrize("remote_rounds", [0, 1])
def test_stale_reset_keeps_local_score(remote_rounds):
    state = SharedState(clock=FakeClock())
    with state.lock:
        state.rounds_played = 1
        state.score_left = 1
    state.apply_reset(GUEST, remote(rounds_played=remote_rounds, score_right=1))
    snap = state.snapshot()
    assert snap.score_left == 1
    assert snap.rounds_played == 1
    assert snap.score_right == 1


def test_countdown_freezes_the_ball_and_recentres_paddles():
    clock = FakeClock()
    state = SharedState(rng=random.Random(2), clock=clock)
    state.reset_positions()
    state.begin_countdown("Starting Game", 3)
    before = state.snapshot()
    assert state.step(HOST).snapshot == before
    state.move_paddle(HOST, -1)
    assert state.finish_countdown() is False

    clock.now += 3
    assert state.countdown_remaining() == 0
    assert state.finish_countdown() is True
    assert state.snapshot().pad_right_y == CENTER_Y
    assert state.frame().countdown_message is None
    assert state.step(HOST).snapshot.ball_x != before.ball_x


def test_reset_during_countdown_keeps_the_running_countdown():
    clock = FakeClock()
    state = SharedState(clock=clock)
    state.begin_countdown("Starting Game", 3)
    assert state.apply_reset(GUEST, remote(dx=1)) is None
    frame = state.frame()
    assert frame.countdown_message == "Starting Game"
    assert frame.snapshot.dx == 1


def test_move_paddle_only_touches_own_side_and_clamps():
    state = SharedState()
    state.reset_positions()
    for _ in range(40):
        state.move_paddle(GUEST, -1)
    snap = state.snapshot()
    assert snap.pad_left_y == 1
    assert snap.pad_right_y == CENTER_Y
    for _ in range(40):
        state.move_paddle(HOST, 1)
    assert state.snapshot().pad_right_y == HEIGHT - 2
