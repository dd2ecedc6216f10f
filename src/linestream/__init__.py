"""
linestream - incremental CR/LF line protocol over sockets and serial ports
"""

__version__ = "0.1.0"

from linestream.connection import LineConnection
from linestream.line.reader import LineStatus, ReadResult
from linestream.line.tracking import FaultState
from linestream.line.writer import SEND_FAILED


def cli_main():
    """
    Entry point for the CLI command.
    This function is referenced in pyproject.toml
    """
    import sys
    from linestream.main import main
    sys.exit(main())
