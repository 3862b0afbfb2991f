"""Exception hierarchy for deptree."""

from __future__ import annotations


class DeptreeError(Exception):
    """Base class for every error raised by deptree."""


class IdentityCollisionError(DeptreeError):
    """Two distinct source positions mapped onto the same node id."""

    def __init__(self, node_id: str, existing: tuple, incoming: tuple) -> None:
        self.node_id = node_id
        self.existing = existing
        self.incoming = incoming
        super().__init__(
            f"Node id {node_id!r} already bound to {existing}, refusing {incoming}"
        )


class ConfigError(DeptreeError):
    """Raised when a configuration value is out of range or malformed."""
