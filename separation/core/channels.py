"""
Channel and contour classification tags.

Channels follow OpenCV's BGR plane order. WHITE is derived (the AND of the
three enhanced masks) and never enhanced directly.
"""

from enum import Enum, IntEnum
from typing import Union


class UnsupportedChannelError(ValueError):
    """Raised when a channel tag is not accepted by an operation."""

    def __init__(self, channel, operation: str = "operation"):
        self.channel = channel
        self.operation = operation
        super().__init__(f"Unsupported channel for {operation}: {channel!r}")


class ChannelType(Enum):
    """Stain channels of an image."""
    BLUE = "blue"
    GREEN = "green"
    RED = "red"
    WHITE = "white"

    @property
    def label(self) -> str:
        """Capitalized name used in CSV column labels."""
        return self.value.capitalize()

    @property
    def plane_index(self) -> int:
        """Index of the plane in a BGR image."""
        try:
            return _PLANE_INDEX[self]
        except KeyError:
            raise UnsupportedChannelError(self, "plane lookup") from None

    @classmethod
    def parse(cls, value: Union["ChannelType", str]) -> "ChannelType":
        """
        Coerce a tag or its name (case-insensitive) to a ChannelType.

        Raises:
            UnsupportedChannelError: For anything that is not a known channel
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise UnsupportedChannelError(value, "channel parsing")


_PLANE_INDEX = {
    ChannelType.BLUE: 0,
    ChannelType.GREEN: 1,
    ChannelType.RED: 2,
}

# Order of the per-channel records in an image row
REPORTED_CHANNELS = (ChannelType.GREEN, ChannelType.RED, ChannelType.WHITE)


class HierarchyType(IntEnum):
    """Classification of a contour after area reconciliation."""
    INVALID = 0
    CHILD = 1
    PARENT = 2
