"""Runtime values and environment frames of the virtual machine.

Values form a closed sum type: an environment reference, a closure, or a code address. Frames are persistent: binding
a value allocates a new frame in front of an existing chain, which stays shared and unchanged.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Frame:
    value: "Value"
    next: Optional["Frame"] = None

    @staticmethod
    def depth(frame):
        depth = 0
        while frame is not None:
            frame = frame.next
            depth += 1
        return depth


@dataclass(frozen=True)
class EnvironmentRef:
    env: Optional[Frame]

    def render(self):
        return "{environment}"


@dataclass(frozen=True)
class Closure:
    body_address: int
    env: Optional[Frame]

    def render(self):
        return "<lambda>"


@dataclass(frozen=True)
class Address:
    offset: int

    def render(self):
        return f"[address: {self.offset:x}]"


Value = Union[EnvironmentRef, Closure, Address]
