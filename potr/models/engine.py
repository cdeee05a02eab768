"""Engine invocation models."""

from enum import Enum


class PrivilegeMode(str, Enum):
    """How the container engine binary is invoked.

    Detected once at startup and consumed by every engine call.
    """

    DIRECT = "direct"
    SUDO = "sudo"
