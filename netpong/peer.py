import logging
import threading
import time

from . import protocol
from .common import HOST, GUEST, SYNC_INTERVAL, COUNTDOWN_SECONDS, Atomic, clamp
from .errors import ExitStatus, TransportError
from .handshake import Session
from .protocol import MessageType
from .state import SharedState, START_MESSAGE
from .transport import Transport

logger = logging.getLogger(__name__)

# Exit status per call site, by role
SEND_STATUS = {HOST: ExitStatus.HOST_SEND, GUEST: ExitStatus.GUEST_SEND}
RECV_STATUS = {HOST: ExitStatus.HOST_RECV, GUEST: ExitStatus.GUEST_RECV}
CLOSE_STATUS = {HOST: ExitStatus.HOST_CLOSE_SEND, GUEST: ExitStatus.GUEST_CLOSE_SEND}


class PongPeer:
    """
    One side of a session after the handshake:
      - Tick thread steps physics at the negotiated interval
      - Send thread pushes our state to the peer every SYNC_INTERVAL
      - Recv thread merges the peer's state into ours
    The renderer reads `latest_frame`; input goes through `state.move_paddle`.
    All loops share one stop event, set once by whichever trigger comes first.
    """
    def __init__(self, transport: Transport, session: Session, state=None,
                 sync_interval=SYNC_INTERVAL, countdown_seconds=COUNTDOWN_SECONDS):
        self.transport = transport
        self.session = session
        self.state = state or SharedState()
        self.sync_interval = sync_interval
        self.countdown_seconds = countdown_seconds

        self._stop = threading.Event()
        self._shutdown_lock = threading.Lock()
        self._threads = []

        self.latest_frame = Atomic(None)
        self.failure = Atomic(None)      # first fatal TransportError

    @property
    def role(self):
        return self.session.role

    @property
    def stopped(self):
        return self._stop.is_set()

    @property
    def exit_status(self) -> ExitStatus:
        err = self.failure.get()
        return err.status if err is not None else ExitStatus.OK

    def start(self):
        self.state.reset_positions()
        self.state.begin_countdown(START_MESSAGE, self.countdown_seconds)
        self._publish()
        if self.role == HOST:
            # The host's serve direction wins; the guest adopts it from this reset
            try:
                self.transport.send(protocol.reset(self.state.snapshot()),
                                    SEND_STATUS[self.role])
            except TransportError as e:
                self.fail(e)
                return
        for target, name in ((self._tick_loop, "Tick"),
                             (self._send_loop, "SyncOut"),
                             (self._recv_loop, "SyncIn")):
            th = threading.Thread(target=target, name=f"{name}-{self.role}", daemon=True)
            self._threads.append(th)
            th.start()

    def join(self, timeout=None):
        for th in self._threads:
            th.join(timeout)

    def is_alive(self):
        return any(th.is_alive() for th in self._threads)

    def close(self):
        self.transport.close()

    # --- Shutdown ---
    def stop(self):
        """Local trigger (round limit, interrupt, window closed): tell the peer, then stop."""
        self._shutdown(notify=True)

    def fail(self, err: TransportError):
        if self.failure.set_if_empty(err):
            logger.error("fatal: %s", err)
        self._shutdown(notify=False)

    def _shutdown(self, notify):
        with self._shutdown_lock:
            if self._stop.is_set():
                return
            if notify:
                self._send_close()
            self._stop.set()
        logger.info("shutting down (rounds played %d)", self.state.rounds())

    def _send_close(self):
        try:
            self.transport.send(protocol.close(), CLOSE_STATUS[self.role])
        except TransportError as e:
            if self.failure.set_if_empty(e):
                logger.error("fatal: %s", e)

    # --- Threads ---
    def _publish(self):
        self.latest_frame.set(self.state.frame())

    def _await_countdown(self):
        """Sleep out any running countdown without holding the state lock."""
        while not self._stop.is_set():
            remaining = self.state.countdown_remaining()
            if remaining <= 0:
                break
            self._stop.wait(remaining)
        if self.state.finish_countdown():
            self._publish()

    def _tick_loop(self):
        interval = self.session.interval
        rounds = self.session.rounds
        send_status = SEND_STATUS[self.role]
        try:
            while not self._stop.is_set() and self.state.rounds() < rounds:
                before = time.monotonic()
                self._await_countdown()
                if self._stop.is_set():
                    break

                tick = self.state.step(self.role)
                if tick.scored:
                    logger.info("%s  L %d : %d R  round %d/%d", tick.scored,
                                tick.snapshot.score_left, tick.snapshot.score_right,
                                tick.snapshot.rounds_played, rounds)
                    self.transport.send(protocol.reset(tick.snapshot), send_status)
                    self.state.begin_countdown(tick.scored, self.countdown_seconds)
                self._publish()

                # A countdown can push elapsed past one interval
                elapsed = time.monotonic() - before
                self._stop.wait(clamp(interval - elapsed, 0.0, interval))

            if not self._stop.is_set():
                self._await_countdown()
                logger.info("round limit reached")
                self.stop()
        except TransportError as e:
            self.fail(e)

    def _send_loop(self):
        rounds = self.session.rounds
        send_status = SEND_STATUS[self.role]
        try:
            while not self._stop.is_set() and self.state.rounds() < rounds:
                self.transport.send(protocol.game_state(self.state.snapshot()), send_status)
                self._stop.wait(self.sync_interval)
        except TransportError as e:
            self.fail(e)

    def _recv_loop(self):
        recv_status = RECV_STATUS[self.role]
        try:
            while not self._stop.is_set():
                got = self.transport.receive(recv_status)
                if got is None:
                    continue
                msg, _ = got
                if msg is None:
                    continue
                if not self._handle(msg):
                    break
        except TransportError as e:
            self.fail(e)

    def _handle(self, msg) -> bool:
        """Apply one inbound message; False ends the receive loop."""
        if msg.type == MessageType.GAME_STATE:
            self.state.apply_update(self.role, msg.payload)
        elif msg.type == MessageType.RESET:
            message = self.state.apply_reset(self.role, msg.payload, self.countdown_seconds)
            snap = msg.payload
            logger.info("reset from peer%s  L %d : %d R  round %d",
                        f" ({message})" if message else "",
                        snap.score_left, snap.score_right, snap.rounds_played)
            self._publish()
        elif msg.type == MessageType.CLOSE:
            logger.info("peer closed the session")
            with self._shutdown_lock:
                if self._stop.is_set():
                    return False
                # Acknowledge, then stop without sending a second close
                self._send_close()
                self._stop.set()
            return False
        elif msg.type == MessageType.HELLO and self.role == HOST:
            # Our Ack was lost; the guest is still knocking
            self.transport.send(protocol.ack(self.session.difficulty, self.session.rounds),
                                ExitStatus.HOST_ACK_SEND)
        return True
