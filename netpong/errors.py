from enum import IntEnum


class ExitStatus(IntEnum):
    """Process exit status per failure site, so a dead peer can be diagnosed."""
    OK = 0
    RESOLVE = 1
    GUEST_SOCKET = 3
    HOST_BIND = 4
    HOST_HANDSHAKE_RECV = 23
    HOST_ACK_SEND = 24
    GUEST_SEND = 25
    GUEST_HANDSHAKE_RECV = 26
    HOST_SEND = 51
    HOST_RECV = 91
    GUEST_RECV = 93
    HOST_CLOSE_SEND = 123
    GUEST_CLOSE_SEND = 124


class NetPongError(Exception):
    pass


class TransportError(NetPongError):
    """Fatal socket failure; carries the exit status of the failing call site."""

    def __init__(self, status: ExitStatus, message: str = ""):
        self.status = ExitStatus(status)
        super().__init__(message or self.status.name)

    def __str__(self):
        return f"{self.args[0]} (exit status {int(self.status)})"


class ProtocolError(NetPongError):
    """Datagram that does not decode to a known message. Never fatal."""
