"""
SCRIPTORIUM - Centralized Type Definitions

Provides type aliases, type guards and Protocol classes shared by the IR
model, the versification engine and the self-check executor.

Usage:
    from core.types import AttributeValue, Serializer, is_attribute_value

    def set_attribute(key: str, value: AttributeValue) -> None:
        ...
"""
from __future__ import annotations

from typing import (
    Any,
    Dict,
    List,
    Protocol,
    Union,
    runtime_checkable,
)

# =============================================================================
# TYPE ALIASES - Simple type shortcuts
# =============================================================================

Sha256Hex = str  # Lowercase hex SHA-256 digest, 64 characters

# Closed tagged union for open-ended attribute maps and annotation values.
# Scalars, ordered lists of values, and string-keyed maps of values.
AttributeValue = Union[
    str,
    int,
    float,
    bool,
    List["AttributeValue"],
    Dict[str, "AttributeValue"],
]
AttributeMap = Dict[str, AttributeValue]


# =============================================================================
# TYPE GUARDS
# =============================================================================


def is_attribute_value(value: Any) -> bool:
    """Return True if value is a member of the AttributeValue union."""
    if isinstance(value, (str, bool, int, float)):
        return True
    if isinstance(value, list):
        return all(is_attribute_value(item) for item in value)
    if isinstance(value, dict):
        return all(
            isinstance(key, str) and is_attribute_value(item)
            for key, item in value.items()
        )
    return False


def is_sha256_hex(value: Any) -> bool:
    """Return True if value looks like a lowercase hex SHA-256 digest."""
    return (
        isinstance(value, str)
        and len(value) == 64
        and all(c in "0123456789abcdef" for c in value)
    )


# =============================================================================
# PROTOCOLS
# =============================================================================


@runtime_checkable
class Serializable(Protocol):
    """Protocol for objects that can be serialized."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        ...


@runtime_checkable
class Serializer(Protocol):
    """
    Capability that turns a plain dictionary into bytes.

    Hashing functions take one of these explicitly so tests can pass a
    failing implementation instead of patching a module global.
    """

    def dumps(self, data: Dict[str, Any]) -> bytes:
        """Serialize data deterministically."""
        ...
