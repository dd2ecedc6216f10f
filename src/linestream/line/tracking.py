"""
Transfer Tracking

Wraps a Channel with the per-connection transfer counters and the sticky
read/write fault flags. Reads are only issued under the line buffer lock and
writes only under the writer lock, so each direction's counters have a single
owning lock.
"""

import logging
from enum import Enum
from typing import Optional

from linestream.streams.streams import Channel


class FaultState(Enum):
    """Sticky per-direction error state."""
    UNSET = "unset"      # no transfer attempted yet
    CLEAN = "clean"      # transfers attempted, none failed hard
    FAULTED = "faulted"  # a hard I/O error was seen; latched


class TrackedChannel:
    """Channel wrapper that counts transfers and latches hard errors."""

    def __init__(self, channel: Channel, error_tracking: bool = True, fake_writes: bool = False):
        self.channel = channel
        self.error_tracking = error_tracking
        self.fake_writes = fake_writes
        self.log = logging.getLogger(f"TrackedChannel({channel.address})")
        self.bad_read = FaultState.UNSET
        self.bad_write = FaultState.UNSET
        self.reset_tracking()

    @property
    def address(self) -> str:
        return self.channel.address

    def reset_tracking(self) -> None:
        """Zero the transfer counters. Fault flags are left alone."""
        self.reset_send_tracking()
        self.reset_receive_tracking()

    def reset_send_tracking(self) -> None:
        self.bytes_sent = 0
        self.send_count = 0

    def reset_receive_tracking(self) -> None:
        self.bytes_received = 0
        self.recv_count = 0

    def read(self, size: int, timeout: Optional[float] = None) -> Optional[bytes]:
        try:
            data = self.channel.read(size, timeout)
        except OSError:
            if self.error_tracking:
                self.bad_read = FaultState.FAULTED
            raise
        if data:
            self.recv_count += 1
            self.bytes_received += len(data)
        if self.bad_read is FaultState.UNSET:
            self.bad_read = FaultState.CLEAN
        return data

    def write(self, data: bytes) -> int:
        # Used when commands are replayed locally without a live peer
        if self.fake_writes:
            return len(data)

        try:
            written = self.channel.write(data)
        except OSError:
            if self.error_tracking:
                self.bad_write = FaultState.FAULTED
            raise
        if written > 0:
            self.send_count += 1
            self.bytes_sent += written
        if self.bad_write is FaultState.UNSET:
            self.bad_write = FaultState.CLEAN
        return written
