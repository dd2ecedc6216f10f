import logging
import serial
import serial.tools.list_ports
from typing import Optional, List, Dict

from linestream.streams.streams import Channel, is_would_block

# Constants
SERIAL_BAUDRATE = 115200
SERIAL_WRITE_TIMEOUT = 0  # seconds, 0 never waits on a full output buffer


class SerialChannel(Channel):
    """Serial port channel opened on initialization."""

    def __init__(self, address: str, baudrate: int = SERIAL_BAUDRATE,
                 write_timeout: Optional[float] = SERIAL_WRITE_TIMEOUT, debug: bool = False):
        """
        Initialize and open serial connection. Raises serial.SerialException on failure.

        Args:
            address: Port name (/dev/ttyUSB0, COM3) or a pyserial URL (loop://, socket://...).
            baudrate: Line speed.
            write_timeout: Seconds a write may wait for buffer space. 0 never waits;
                           None waits, which some URL backends require.
            debug: Log port lifecycle events.
        """
        self.serial: Optional[serial.Serial] = None
        self.address = address
        self.debug = debug
        self.non_blocking = write_timeout == 0
        self.last_error = 0
        self.log = logging.getLogger(f"SerialChannel({address})")

        self.log.debug(f"Attempting to open {address}...")
        try:
            self.serial = serial.serial_for_url(
                address,
                baudrate=baudrate,
                timeout=0,
                write_timeout=write_timeout,
            )
            self.log.info(f"Serial port opened successfully: {address}")

        except (serial.SerialException, OSError, ValueError) as e:
            self.log.error(f"Serial connection error during init: {str(e)}")
            self.serial = None
            raise serial.SerialException(f"Failed to open serial device {address}: {e}") from e

    def close(self) -> bool:
        """Close serial connection"""
        closed_successfully = True
        port, self.serial = self.serial, None
        if port:
            try:
                if port.is_open:
                    port.close()
                    if self.debug:
                        self.log.debug("Serial port closed.")
            except (serial.SerialException, OSError) as e:
                self.log.error(f"Error closing serial connection: {str(e)}")
                closed_successfully = False
        else:
            self.log.debug("Close called but serial is already None.")

        return closed_successfully

    def read(self, size: int, timeout: Optional[float] = None) -> Optional[bytes]:
        """
        Read up to size bytes, waiting at most timeout seconds.

        A serial line has no notion of the peer closing, so an empty read is
        always reported as would-block. b'' is only returned once closed.
        """
        port = self.serial
        if not port or not port.is_open:
            self.log.error("read called after port closed")
            return b''

        try:
            if port.timeout != timeout:
                port.timeout = timeout
            data = port.read(size)
        except serial.SerialException as e:
            if self.serial is not port:
                self.log.debug("Port closed during read")
                return b''
            self.last_error = e.errno or 0
            if is_would_block(e, self.non_blocking):
                return None
            raise
        except (OSError, AttributeError, TypeError, ValueError):
            # close() from another thread leaves the port without a descriptor
            if self.serial is not port:
                self.log.debug("Port closed during read")
                return b''
            raise
        return data or None

    def write(self, data: bytes) -> int:
        port = self.serial
        if not port or not port.is_open:
            self.log.error("write called after port closed")
            return 0

        try:
            written = port.write(data)
        except serial.SerialTimeoutException:
            return 0
        except serial.SerialException as e:
            if self.serial is not port:
                self.log.debug("Port closed during write")
                return 0
            self.last_error = e.errno or 0
            if is_would_block(e, self.non_blocking):
                return 0
            raise
        except (OSError, AttributeError, TypeError, ValueError):
            if self.serial is not port:
                self.log.debug("Port closed during write")
                return 0
            raise
        return written or 0

    @staticmethod
    def list_ports() -> List[Dict[str, str]]:
        """List available serial ports."""
        ports = []
        for port in serial.tools.list_ports.comports():
            ports.append({
                'port': port.device,
                'description': port.description,
                'hwid': port.hwid
            })
        return ports
