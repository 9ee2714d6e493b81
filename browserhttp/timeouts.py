import socket
import time
from dataclasses import dataclass
from typing import Optional, Union


@dataclass
class Timeout:
    """
    Bounds for one exchange, in seconds.

    ``connect`` and ``read`` apply to each blocking socket call; ``total``
    caps the whole exchange when a transport tracks a deadline.
    """
    total: Optional[float] = None
    connect: Optional[float] = None
    read: Optional[float] = None

    @classmethod
    def from_value(cls, value: Union["Timeout", float, int, None]) -> "Timeout":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls()
        float_value = float(value)
        return cls(
            total=float_value,
            connect=float_value,
            read=float_value,
        )

    def deadline(self) -> Optional[float]:
        """Monotonic instant at which the whole exchange must be done."""
        if self.total is None:
            return None
        return time.monotonic() + self.total

    def read_timeout(self, deadline: Optional[float]) -> Optional[float]:
        """Timeout for the next read, shortened to what is left before ``deadline``."""
        if deadline is None:
            return self.read
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise socket.timeout("operation timed out")
        return min(remaining, self.read) if self.read else remaining
