"""Server lifecycle states.

Transitions run strictly forward:
uninitialized -> initialized -> listening -> shutting_down -> stopped.
"""

from enum import Enum


class ServerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    LISTENING = "listening"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"
