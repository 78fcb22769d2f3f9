"""
SCRIPTORIUM - IR Snapshots

Reads and writes IR documents as JSON files. A snapshot is the
serialized form of a Corpus; the self-check executor and the CLI exchange
IR through these files.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

from core.errors import SnapshotError
from ir.loss import LossReport
from ir.model import Corpus
from ir.versification import MappingTable

PathLike = Union[str, Path]


def read_json(path: PathLike) -> Dict[str, Any]:
    """
    Load a JSON object from disk.

    Raises:
        SnapshotError: If the file is unreadable, not JSON, or not an object
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise SnapshotError(f"cannot read {path}: {e}", path=str(path), cause=e) from e
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SnapshotError(f"invalid JSON in {path}: {e}", path=str(path), cause=e) from e
    if not isinstance(data, dict):
        raise SnapshotError(f"expected a JSON object in {path}", path=str(path))
    return data


def write_json(data: Dict[str, Any], path: PathLike, indent: int = 2) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=indent, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


def loads_corpus(text: str) -> Corpus:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"invalid IR JSON: {e}", cause=e) from e
    if not isinstance(data, dict):
        raise SnapshotError("IR snapshot must be a JSON object")
    return _corpus_from_dict(data, "<string>")


def dumps_corpus(corpus: Corpus, indent: int = 2) -> str:
    return json.dumps(corpus.to_dict(), indent=indent, ensure_ascii=False)


def load_corpus(path: PathLike) -> Corpus:
    return _corpus_from_dict(read_json(path), str(path))


def save_corpus(corpus: Corpus, path: PathLike) -> Path:
    return write_json(corpus.to_dict(), path)


def load_mapping_table(path: PathLike) -> MappingTable:
    data = read_json(path)
    try:
        return MappingTable.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise SnapshotError(f"malformed mapping table in {path}: {e}", path=str(path), cause=e) from e


def load_loss_report(path: PathLike) -> LossReport:
    data = read_json(path)
    try:
        return LossReport.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise SnapshotError(f"malformed loss report in {path}: {e}", path=str(path), cause=e) from e


def _corpus_from_dict(data: Dict[str, Any], source: str) -> Corpus:
    try:
        return Corpus.from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise SnapshotError(f"malformed IR snapshot {source}: {e}", path=source, cause=e) from e
