"""
SCRIPTORIUM - Self-Check Collaborators

The executor talks to the outside world only through these narrow
interfaces: a content-addressed artifact store, the manifest describing
what the store holds, and a plugin loader handing out format and tool
plugins. Concrete implementations live outside this package.

Manifest entries are plain data and are modelled concretely so that a
manifest can be loaded from JSON; everything with behavior is a Protocol.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from selfcheck.plan import ExportMode


# =============================================================================
# MANIFEST
# =============================================================================


class ManifestArtifact(BaseModel):
    """An artifact held in the store."""

    model_config = ConfigDict(extra="allow")

    id: str
    primary_blob_sha256: str = ""
    original_name: str = ""


class RunRecord(BaseModel):
    """A recorded tool run; only its transcript hash is consulted."""

    model_config = ConfigDict(extra="allow")

    id: str
    transcript_blob_sha256: Optional[str] = None


class Manifest(BaseModel):
    model_config = ConfigDict(extra="allow")

    artifacts: Dict[str, ManifestArtifact] = Field(default_factory=dict)
    runs: Dict[str, RunRecord] = Field(default_factory=dict)


# =============================================================================
# PLUGIN RESULTS
# =============================================================================


class ExtractIRResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    ir_path: str
    loss_class: Optional[str] = None
    loss_report: Optional[Dict[str, Any]] = None


class EmitNativeResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    output_path: str
    format: str = ""
    loss_class: Optional[str] = None
    loss_report: Optional[Dict[str, Any]] = None


# =============================================================================
# PROTOCOLS
# =============================================================================


@runtime_checkable
class ArtifactStore(Protocol):
    """Content-addressed blob store."""

    def export(self, artifact_id: str, mode: ExportMode, dest: Path) -> None:
        """Write the artifact's bytes to dest."""
        ...

    def retrieve(self, blob_sha256: str) -> bytes:
        """Return the bytes of a blob by its hash."""
        ...


@runtime_checkable
class FormatPlugin(Protocol):
    """Converts between a native format and IR."""

    def can_extract_ir(self) -> bool:
        ...

    def can_emit_native(self) -> bool:
        ...

    def extract_ir(self, source_path: Path, output_dir: Path) -> ExtractIRResult:
        ...

    def emit_native(self, ir_path: Path, output_dir: Path, target_format: str) -> EmitNativeResult:
        ...


@runtime_checkable
class ToolPlugin(Protocol):
    """Runs an external tool given a JSON-like request."""

    def execute(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """Return a response with at least a "status" key."""
        ...


Plugin = Union[FormatPlugin, ToolPlugin]


@runtime_checkable
class PluginLoader(Protocol):

    def get_plugin(self, plugin_id: str) -> Plugin:
        """
        Raises:
            PluginError: If no plugin with that id exists
        """
        ...
