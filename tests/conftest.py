"""
SCRIPTORIUM - Test Configuration

Pytest fixtures shared by the IR, self-check and CLI tests.
"""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from config import reload_config
from core.errors import PluginError
from ir.hashing import compute_all_hashes, hash_bytes
from ir.model import Annotation, AnnotationType, Corpus, Document, SpanType
from ir.ref import Ref
from ir.versification import MappingTable, MappingType, VersificationID
from selfcheck.interfaces import (
    EmitNativeResult,
    ExtractIRResult,
    Manifest,
    ManifestArtifact,
    RunRecord,
)
from selfcheck.plan import ExportMode


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Each test sees configuration built from its own environment."""
    yield reload_config()
    monkeypatch.undo()
    reload_config()


# =============================================================================
# IR FIXTURES
# =============================================================================


@pytest.fixture
def sample_verse_text() -> str:
    return "In the beginning God created the heaven and the earth."


@pytest.fixture
def sample_document(sample_verse_text) -> Document:
    """Genesis 1:1-2 as two blocks with a verse span per block and an overlapping quotation."""
    doc = Document(id="Gen", title="Genesis", order=1, canonical_ref=Ref("Gen"))

    first = doc.add_block("b1", sample_verse_text)
    first.add_anchor("a1", 0, token_index=0)
    first.add_anchor("a2", 26)
    first.add_anchor("a3", len(sample_verse_text))

    second = doc.add_block("b2", "And the earth was without form, and void.")
    second.add_anchor("a4", 0, token_index=0)
    second.add_anchor("a5", len(second.text))

    doc.add_span("s1", SpanType.VERSE, "a1", "a3", ref=Ref("Gen", 1, 1))
    doc.add_span("s2", SpanType.VERSE, "a4", "a5", ref=Ref("Gen", 1, 2))
    doc.add_span("s3", SpanType.QUOTATION, "a2", "a4")

    doc.add_annotation(
        Annotation(id="n1", span_id="s1", type=AnnotationType.STRONGS.value, value="H7225")
    )
    return doc


@pytest.fixture
def sample_corpus(sample_document) -> Corpus:
    corpus = Corpus(
        id="kjv-sample",
        versification=VersificationID.KJV.value,
        language="en",
        title="King James Version (sample)",
        source_format="OSIS",
        documents=[sample_document],
    )
    compute_all_hashes(corpus)
    return corpus


@pytest.fixture
def kjv_to_lxx() -> MappingTable:
    """Psalm numbering shift plus one verse with no LXX equivalent."""
    table = MappingTable(id="kjv-lxx", from_system=VersificationID.KJV, to_system=VersificationID.LXX)
    table.add_mapping(Ref("Ps", 23, 1), Ref("Ps", 22, 1))
    table.add_mapping(Ref("Gen", 1, 1), Ref("Gen", 1, 1))
    table.add_mapping(Ref("Gen", 1, 2), None, MappingType.MISSING, note="absent in sample LXX")
    return table


@pytest.fixture
def kjv_to_mt() -> MappingTable:
    table = MappingTable(id="kjv-mt", from_system=VersificationID.KJV, to_system=VersificationID.MT)
    table.add_mapping(Ref("Mal", 4, 1), Ref("Mal", 3, 19))
    table.add_mapping(Ref("Joel", 2, 28), Ref("Joel", 3, 1))
    table.add_mapping(Ref("Gen", 1, 2), None, MappingType.MISSING)
    return table


@pytest.fixture
def mt_to_lxx() -> MappingTable:
    table = MappingTable(id="mt-lxx", from_system=VersificationID.MT, to_system=VersificationID.LXX)
    table.add_mapping(Ref("Mal", 3, 19), Ref("Mal", 3, 22))
    return table


# =============================================================================
# SELF-CHECK FAKES
# =============================================================================


class FakeStore:
    """In-memory artifact store. DERIVED exports append a newline."""

    def __init__(self, artifacts: Dict[str, bytes]):
        self.artifacts = dict(artifacts)
        self.blobs = {hash_bytes(data): data for data in artifacts.values()}
        self.exports: List[tuple] = []

    def export(self, artifact_id: str, mode: ExportMode, dest: Path) -> None:
        self.exports.append((artifact_id, mode, dest))
        data = self.artifacts[artifact_id]
        if mode == ExportMode.DERIVED:
            data = data + b"\n"
        Path(dest).parent.mkdir(parents=True, exist_ok=True)
        Path(dest).write_bytes(data)

    def retrieve(self, blob_sha256: str) -> bytes:
        return self.blobs[blob_sha256]


class FakeToolPlugin:
    """Writes a transcript of its request into the output directory."""

    def __init__(self, status: str = "ok", error: str = ""):
        self.status = status
        self.error = error
        self.requests: List[Dict[str, Any]] = []

    def execute(self, request: Dict[str, Any]) -> Dict[str, Any]:
        self.requests.append(request)
        if self.status == "error":
            return {"status": "error", "error": self.error}
        output_dir = Path(request["args"]["output_dir"])
        line = json.dumps({"profile": request["args"]["profile"], "inputs": len(request["args"]["inputs"])})
        (output_dir / "transcript.jsonl").write_text(line + "\n", encoding="utf-8")
        return {"status": "ok"}


class FakeFormatPlugin:
    """Extracts a minimal IR declaring a fixed loss class; emits by copying."""

    def __init__(self, loss_class: str = "L1", extract: bool = True, emit: bool = True,
                 lost_elements: Optional[List[Dict[str, Any]]] = None):
        self.loss_class = loss_class
        self.extract = extract
        self.emit = emit
        self.lost_elements = lost_elements or []

    def can_extract_ir(self) -> bool:
        return self.extract

    def can_emit_native(self) -> bool:
        return self.emit

    def extract_ir(self, source_path: Path, output_dir: Path) -> ExtractIRResult:
        ir = {
            "id": "extracted",
            "version": "1.0.0",
            "loss_class": self.loss_class,
            "source_hash": hash_bytes(Path(source_path).read_bytes()),
        }
        if self.lost_elements:
            ir["lost_elements"] = self.lost_elements
        ir_path = Path(output_dir) / "corpus.ir.json"
        ir_path.write_text(json.dumps(ir, sort_keys=True), encoding="utf-8")
        return ExtractIRResult(ir_path=str(ir_path), loss_class=self.loss_class)

    def emit_native(self, ir_path: Path, output_dir: Path, target_format: str) -> EmitNativeResult:
        output_path = Path(output_dir) / f"module.{target_format or 'out'}"
        output_path.write_bytes(Path(ir_path).read_bytes())
        return EmitNativeResult(output_path=str(output_path), format=target_format)


class FakeLoader:
    def __init__(self, plugins: Dict[str, Any]):
        self.plugins = plugins

    def get_plugin(self, plugin_id: str) -> Any:
        if plugin_id not in self.plugins:
            raise PluginError(f"plugin not found: {plugin_id}", plugin_id=plugin_id)
        return self.plugins[plugin_id]


@pytest.fixture
def artifact_bytes() -> Dict[str, bytes]:
    return {
        "osis-kjv": b'<osis><div type="book" osisID="Gen"/></osis>',
        "usfm-web": b"\\id GEN\n\\c 1\n\\v 1 In the beginning...\n",
    }


@pytest.fixture
def store(artifact_bytes) -> FakeStore:
    return FakeStore(artifact_bytes)


@pytest.fixture
def manifest(artifact_bytes) -> Manifest:
    transcript = hash_bytes(b'{"event":"run"}\n')
    return Manifest(
        artifacts={
            "osis-kjv": ManifestArtifact(
                id="osis-kjv",
                primary_blob_sha256=hash_bytes(artifact_bytes["osis-kjv"]),
                original_name="kjv.osis.xml",
            ),
            "usfm-web": ManifestArtifact(
                id="usfm-web",
                primary_blob_sha256=hash_bytes(artifact_bytes["usfm-web"]),
            ),
        },
        runs={
            "run-1": RunRecord(id="run-1", transcript_blob_sha256=transcript),
            "run-2": RunRecord(id="run-2", transcript_blob_sha256=transcript),
            "run-3": RunRecord(id="run-3", transcript_blob_sha256=hash_bytes(b"different")),
            "run-4": RunRecord(id="run-4"),
        },
    )


@pytest.fixture
def tool_plugin() -> FakeToolPlugin:
    return FakeToolPlugin()


@pytest.fixture
def format_plugin() -> FakeFormatPlugin:
    return FakeFormatPlugin()


@pytest.fixture
def loader(tool_plugin, format_plugin) -> FakeLoader:
    return FakeLoader({"tool.diatheke": tool_plugin, "format.osis": format_plugin})
