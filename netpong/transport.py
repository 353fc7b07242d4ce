import logging
import socket

from .common import MAX_DATAGRAM, POLL_TIMEOUT
from .errors import ExitStatus, ProtocolError, TransportError
from .protocol import Message, decode_message, encode_message

logger = logging.getLogger(__name__)


class Transport:
    """
    Connectionless datagram endpoint shared by all threads of one peer:
      - Host binds a local port and learns the peer from the first Hello
      - Guest resolves the host and uses that address as the peer
    sendto/recvfrom on one UDP socket are safe from separate threads.
    """
    def __init__(self, sock: socket.socket, peer=None, poll_timeout=POLL_TIMEOUT):
        self.sock = sock
        self.peer = peer
        self.sock.settimeout(poll_timeout)
        self._closed = False

    @classmethod
    def listen(cls, port: int, bind_address=None, **kw):
        try:
            infos = socket.getaddrinfo(bind_address, port, socket.AF_UNSPEC,
                                       socket.SOCK_DGRAM, 0, socket.AI_PASSIVE)
        except socket.gaierror as e:
            raise TransportError(ExitStatus.RESOLVE, f"getaddrinfo: {e}")

        for family, socktype, proto, _, addr in infos:
            try:
                sock = socket.socket(family, socktype, proto)
            except OSError:
                continue
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.bind(addr)
            except OSError:
                sock.close()
                continue
            logger.info("listening on %s", sock.getsockname())
            return cls(sock, **kw)
        raise TransportError(ExitStatus.HOST_BIND, f"could not bind port {port}")

    @classmethod
    def connect(cls, hostname: str, port: int, **kw):
        try:
            infos = socket.getaddrinfo(hostname, port, socket.AF_UNSPEC, socket.SOCK_DGRAM)
        except socket.gaierror as e:
            raise TransportError(ExitStatus.RESOLVE, f"getaddrinfo {hostname}: {e}")

        for family, socktype, proto, _, addr in infos:
            try:
                sock = socket.socket(family, socktype, proto)
            except OSError:
                continue
            logger.info("peer endpoint %s", addr)
            return cls(sock, peer=addr, **kw)
        raise TransportError(ExitStatus.GUEST_SOCKET, f"no usable socket for {hostname}")

    @property
    def local_address(self):
        return self.sock.getsockname()

    def send(self, msg: Message, status: ExitStatus):
        if self.peer is None:
            raise TransportError(status, "no peer endpoint")
        try:
            self.sock.sendto(encode_message(msg), self.peer)
        except OSError as e:
            raise TransportError(status, f"send {msg.type.value}: {e}")

    def receive(self, status: ExitStatus):
        """
        Wait up to the poll timeout for one datagram.
        Returns None on timeout, else (message, address); message is None for
        datagrams that do not decode.
        """
        try:
            data, addr = self.sock.recvfrom(MAX_DATAGRAM)
        except socket.timeout:
            return None
        except OSError as e:
            raise TransportError(status, f"recv: {e}")
        try:
            return decode_message(data), addr
        except ProtocolError as e:
            logger.debug("ignoring datagram from %s: %s", addr, e)
            return None, addr

    def close(self):
        if self._closed:
            return
        self._closed = True
        try:
            self.sock.close()
        except OSError:
            pass
