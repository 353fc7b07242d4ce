import threading

# --- Roles ---
HOST = "host"     # responder, right paddle, owns the left goal
GUEST = "guest"   # initiator, left paddle, owns the right goal

# --- Playfield (cells) ---
WIDTH = 43
HEIGHT = 21

PADLX = 1            # left paddle column
PADRX = WIDTH - 2    # right paddle column
PADDLE_REACH = 2     # paddle spans y-2 .. y+2

SCORE_TO_WIN_ROUND = 2

# --- Timing (seconds) ---
DIFFICULTIES = {
    "easy": 0.080,
    "medium": 0.040,
    "hard": 0.020,
}
DEFAULT_DIFFICULTY = "medium"
DEFAULT_ROUNDS = 3

SYNC_INTERVAL = 0.005     # outbound state resend
POLL_TIMEOUT = 0.25       # socket receive timeout, lets loops see shutdown
HELLO_RETRY = 1.0
COUNTDOWN_SECONDS = 3

DEFAULT_PORT = 41043
MAX_DATAGRAM = 1024


# --- Thread-safe shared objects helper ---
class Atomic:
    """A simple atomic container with a lock (for values handed between threads)."""
    def __init__(self, value=None):
        self._v = value
        self._lock = threading.Lock()
    def get(self):
        with self._lock:
            return self._v
    def set(self, v):
        with self._lock:
            self._v = v
    def set_if_empty(self, v):
        """Store v unless a value is already held; return True if stored."""
        with self._lock:
            if self._v is not None:
                return False
            self._v = v
            return True


def clamp(val, lo, hi):
    return max(lo, min(hi, val))


def tick_interval(difficulty: str) -> float:
    """Tick interval for a difficulty label; KeyError for unknown labels."""
    return DIFFICULTIES[difficulty]
