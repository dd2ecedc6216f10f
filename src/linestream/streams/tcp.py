import logging
import select
import socket
from typing import Callable, Optional

from linestream.streams.streams import Channel, is_would_block

TCP_PORT = 7171
SOCKET_TIMEOUT = 0.3  # seconds
CONNECTION_TIMEOUT = 5.0 # seconds


class SocketChannel(Channel):
    """TCP socket channel with timeout-bounded reads and non-waiting writes."""

    def __init__(self, sock: socket.socket, address: str = "", non_blocking: bool = False,
                 debug: bool = False):
        """
        Wrap an already connected socket.

        Args:
            sock: Connected stream socket.
            address: Peer identity used in log messages. Derived from the
                     socket's peer name if not given.
            non_blocking: Put the socket in non-blocking mode, so would-block
                          errno values are filtered out instead of treated as hard.
            debug: Log socket lifecycle events.
        """
        self.socket: Optional[socket.socket] = sock
        self.address = address or self._peer_string(sock)
        self.log = logging.getLogger(f"SocketChannel({self.address})")
        self.debug = debug
        self.last_error = 0
        self.non_blocking = False
        self._close_callback: Optional[Callable[[], None]] = None
        self.set_non_blocking(non_blocking)
        if self.debug:
            self.log.debug(f"SocketChannel created on fd {sock.fileno()}")

    @classmethod
    def connect(cls, address: str, timeout: float = CONNECTION_TIMEOUT, **kwargs) -> "SocketChannel":
        """
        Open a TCP connection. Raises socket.error on failure.

        Args:
            address: Host and optional port (format: 192.168.1.100:7171).
                     If no port specified, default TCP_PORT is used.
            timeout: Connection timeout in seconds.
        """
        log = logging.getLogger(f"SocketChannel({address})")
        log.debug(f"Attempting to connect to {address}...")
        sock = None
        try:
            host_port = address.split(':')
            host = host_port[0]
            port = int(host_port[1]) if len(host_port) > 1 else TCP_PORT

            sock = socket.socket(family=socket.AF_INET, type=socket.SOCK_STREAM)
            # Line traffic is small packets
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)

            sock.settimeout(timeout)
            sock.connect((host, port))
            sock.settimeout(None)
            log.info(f"Connection established to {address}")

        except (socket.timeout, socket.error, OSError, ValueError) as e:
            log.error(f"Connection error: {str(e)}")
            if sock:
                try:
                    sock.close()
                except OSError:
                    pass
            raise socket.error(f"Failed to connect to {address}: {e}") from e

        return cls(sock, address=address, **kwargs)

    @staticmethod
    def _peer_string(sock: socket.socket) -> str:
        try:
            peer = sock.getpeername()
        except OSError:
            return "unconnected"
        if isinstance(peer, tuple) and len(peer) >= 2:
            return f"{peer[0]}:{peer[1]}"
        return str(peer) or "local"

    def set_non_blocking(self, non_blocking: bool = True) -> None:
        if self.socket:
            self.socket.setblocking(not non_blocking)
        self.non_blocking = non_blocking

    def set_close_callback(self, callback: Optional[Callable[[], None]]) -> None:
        """Register a callable invoked once when the channel is closed."""
        self._close_callback = callback

    def close(self) -> bool:
        """Close socket connection"""
        closed_successfully = True
        sock, self.socket = self.socket, None
        if sock:
            callback, self._close_callback = self._close_callback, None
            if callback is not None:
                try:
                    callback()
                except Exception as e:
                    self.log.error(f"Error in close callback: {e}", exc_info=self.debug)
            try:
                if self.debug:
                    self.log.debug("Closing socket...")
                sock.close()
            except OSError as e:
                self.log.error(f"Error closing connection: {str(e)}")
                closed_successfully = False
        else:
            self.log.debug("Close called but socket is already None.")

        return closed_successfully

    def read(self, size: int, timeout: Optional[float] = None) -> Optional[bytes]:
        """Receive up to size bytes, waiting at most timeout seconds for readability."""
        sock = self.socket
        if not sock:
            self.log.error("read called after socket closed")
            return b''

        try:
            ready_to_read, _, _ = select.select([sock], [], [], timeout)
            if not ready_to_read:
                return None
            return sock.recv(size)
        except ValueError:
            # close() from another thread while waiting in select
            self.log.debug("Socket closed during read")
            return b''
        except OSError as e:
            if self.socket is not sock:
                self.log.debug("Socket closed during read")
                return b''
            self.last_error = e.errno or 0
            if is_would_block(e, self.non_blocking):
                return None
            raise

    def write(self, data: bytes) -> int:
        """Send as much of data as the socket accepts right now."""
        sock = self.socket
        if not sock:
            self.log.error("write called after socket closed")
            return 0

        try:
            _, ready_to_write, _ = select.select([], [sock], [], 0)
            if not ready_to_write:
                return 0
            return sock.send(data)
        except ValueError:
            self.log.debug("Socket closed during write")
            return 0
        except OSError as e:
            if self.socket is not sock:
                self.log.debug("Socket closed during write")
                return 0
            self.last_error = e.errno or 0
            if is_would_block(e, self.non_blocking):
                return 0
            raise

    def fileno(self) -> int:
        return self.socket.fileno() if self.socket else -1
