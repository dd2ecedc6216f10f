from linestream.connection import LineConnection
from linestream.line.reader import LineStatus
from linestream.line.writer import SEND_FAILED

import atexit
import logging
import os
import threading

import platformdirs

# Get a logger specific to this module
logger = logging.getLogger(__name__)

try:
    import readline
    readline_available = True
except ImportError:
    readline_available = False
    logger.warning("readline library not found. History functionality will be disabled.")

# Seconds each background read waits before checking for shutdown
POLL_INTERVAL = 0.2


def setup_history():
    """Sets up readline history file in a platform-specific user data directory."""
    if not readline_available:
        print("Note: Readline library not available. Command history disabled.")
        return

    data_dir = platformdirs.user_data_dir("linestream", "linestream")
    history_file = os.path.join(data_dir, "history")

    try:
        os.makedirs(data_dir, exist_ok=True)
        logger.debug(f"Ensured history directory exists: {data_dir}")
    except OSError as e:
        print(f"Warning: Could not create history directory: {str(e)}. History disabled.")
        return

    if os.path.exists(history_file):
        try:
            readline.read_history_file(history_file)
        except OSError as e:
            print(f"Warning: Could not read history file '{history_file}': {str(e)}")

    readline.set_history_length(1000)
    atexit.register(readline.write_history_file, history_file)


def receive_lines(conn: LineConnection, stop: threading.Event, encoding: str = 'utf-8') -> None:
    """Print complete lines from the peer until stop is set or the connection fails."""
    while not stop.is_set():
        result = conn.read_line(timeout=POLL_INTERVAL)
        if result.status is LineStatus.COMPLETE:
            print(result.text(encoding))
        elif result.status is LineStatus.OVERFLOWED:
            print("(line too long, discarded)")
        elif not result.ok:
            print(f"\nConnection {result.status.value}. Press Enter to exit.")
            stop.set()


def console_mode(conn: LineConnection, encoding: str = 'utf-8') -> int:
    """
    Run an interactive console: stdin lines go to the peer, peer lines are printed.

    Args:
        conn: LineConnection over an open channel

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    setup_history()

    print(f"\nConnected to {conn.channel.address}. Type '/help' for commands, '/exit' to quit.")

    def print_help():
        """Print help information for console mode"""
        print("\nAvailable commands:")
        print("  /help     - Show this help information")
        print("  /exit     - Exit console mode")
        print("  /quit     - Same as /exit")
        print("  /stats    - Show transfer counters")
        print("\nAny other input is sent to the peer as one line.")

    stop = threading.Event()
    receiver = threading.Thread(target=receive_lines, args=(conn, stop, encoding),
                                name="linestream-receiver", daemon=True)
    receiver.start()

    exit_code = 0
    while not stop.is_set():
        try:
            line = input()

            if stop.is_set():
                exit_code = 1
                break

            cmd = line.strip().lower()
            if cmd in ('/exit', '/quit'):
                break
            elif cmd == '/help':
                print_help()
                continue
            elif cmd == '/stats':
                print(f"sent {conn.bytes_sent} bytes in {conn.send_count} writes, "
                      f"received {conn.bytes_received} bytes in {conn.recv_count} reads, "
                      f"read {conn.bad_read.value}, write {conn.bad_write.value}")
                continue

            ret = conn.write_line(line)
            if ret == SEND_FAILED:
                print("Error: send failed")
                exit_code = 1
                break
            elif ret == 0:
                print("Warning: peer is backed up, line not sent")

        except KeyboardInterrupt:
            print("\nUse '/exit' or '/quit' to exit console mode")
        except EOFError:
            # Handle Ctrl+D
            break

    stop.set()
    receiver.join(timeout=POLL_INTERVAL * 5)
    print("Console closed")
    return exit_code
