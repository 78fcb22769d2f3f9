"""
SCRIPTORIUM - Core Module

Foundational pieces every other package depends on:
- Unified error handling
- Shared type aliases and protocols

Nothing in core imports from the other SCRIPTORIUM packages.

Usage:
    from core import ScriptoriumError, RefParseError, AttributeValue
"""
from core.errors import (
    ArtifactError,
    ConfigError,
    ErrorContext,
    ErrorSeverity,
    HashingError,
    MappingError,
    PlanExecutionError,
    PluginError,
    RefParseError,
    ScriptoriumError,
    SnapshotError,
)
from core.types import (
    AttributeMap,
    AttributeValue,
    Serializable,
    Serializer,
    Sha256Hex,
    is_attribute_value,
    is_sha256_hex,
)

__all__ = [
    # Errors
    "ArtifactError",
    "ConfigError",
    "ErrorContext",
    "ErrorSeverity",
    "HashingError",
    "MappingError",
    "PlanExecutionError",
    "PluginError",
    "RefParseError",
    "ScriptoriumError",
    "SnapshotError",
    # Types
    "AttributeMap",
    "AttributeValue",
    "Serializable",
    "Serializer",
    "Sha256Hex",
    "is_attribute_value",
    "is_sha256_hex",
]
