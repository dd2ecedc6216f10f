import logging
import socket
from typing import Callable, Optional

from linestream.connection import LineConnection
from linestream.line.reader import LineStatus
from linestream.streams.tcp import SocketChannel, TCP_PORT

WELCOME_MESSAGE = "linestream ready, 'quit' to disconnect"


def handle_line(conn: LineConnection, text: str) -> bool:
    """
    Answer one complete line from a client.

    Returns:
        False if the client asked to disconnect, True otherwise.
    """
    command = text.strip()
    if command.lower() == 'quit':
        conn.write_line("Bye")
        return False
    if command.lower() == 'stats':
        conn.write_line("sent %d/%d received %d/%d",
                        conn.bytes_sent, conn.send_count,
                        conn.bytes_received, conn.recv_count)
        return True
    conn.write_line("echo: %s", command)
    return True


def serve_client(conn: LineConnection, timeout: float, encoding: str = 'utf-8') -> None:
    """Run the line service on one connection until it closes or fails."""
    log = logging.getLogger(f"Serve({conn.channel.address})")
    conn.write_line(WELCOME_MESSAGE)

    while True:
        result = conn.read_line(timeout=timeout)
        if result.status is LineStatus.COMPLETE:
            if not handle_line(conn, result.text(encoding)):
                break
        elif result.status is LineStatus.PARTIAL or result.status is LineStatus.OVERFLOWED:
            continue
        else:
            log.info(f"Client finished: {result.status.value}")
            break


def serve(host: str = "", port: int = TCP_PORT, timeout: float = 1.0,
          connection_factory: Optional[Callable[[SocketChannel], LineConnection]] = None,
          max_clients: Optional[int] = None, encoding: str = 'utf-8') -> int:
    """
    Accept TCP clients one at a time and serve each with the line service.

    Args:
        host: Interface to bind ("" for all).
        port: TCP port to listen on.
        timeout: Seconds each read waits before polling again.
        connection_factory: Builds the LineConnection for a client channel.
        max_clients: Stop after this many clients (None serves forever).
        encoding: Text encoding used to decode client lines.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    log = logging.getLogger("Serve")
    factory = connection_factory or LineConnection

    try:
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server.bind((host, port))
        server.listen(1)
    except OSError as e:
        log.error(f"Could not listen on {host or '*'}:{port}: {e}")
        return 1

    log.info(f"Listening on {host or '*'}:{server.getsockname()[1]}")
    served = 0
    try:
        while max_clients is None or served < max_clients:
            sock, _ = server.accept()
            channel = SocketChannel(sock, non_blocking=True)
            log.info(f"Client connected: {channel.address}")
            conn = factory(channel)
            try:
                serve_client(conn, timeout, encoding)
            finally:
                conn.close()
                served += 1
    finally:
        server.close()

    return 0
