"""
SCRIPTORIUM - Content Hashing

SHA-256 fingerprints for IR text and structures.

Text hashes (content blocks, refs) are taken over the UTF-8 bytes of the
string directly. Structured hashes (corpus, document, mapping table) go
through a Serializer so the byte form is canonical; the serializer is an
explicit parameter rather than a module global so callers can swap it.
"""
from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from core.errors import HashingError
from core.types import Serializable, Serializer, Sha256Hex

if TYPE_CHECKING:
    from ir.model import ContentBlock, Corpus, Document
    from ir.ref import Ref
    from ir.versification import MappingTable


class JSONSerializer:
    """Canonical JSON: sorted keys, compact separators, UTF-8."""

    def dumps(self, data: Dict[str, Any]) -> bytes:
        return json.dumps(
            data,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        ).encode("utf-8")


DEFAULT_SERIALIZER: Serializer = JSONSerializer()


def hash_bytes(data: Optional[bytes]) -> Sha256Hex:
    """Lowercase hex SHA-256 of raw bytes. None hashes like b""."""
    return hashlib.sha256(data or b"").hexdigest()


def hash_string(text: str) -> Sha256Hex:
    return hash_bytes(text.encode("utf-8"))


def hash_ref(ref: "Ref") -> Sha256Hex:
    """Hash a reference by its canonical dotted form."""
    return hash_string(str(ref))


def compute_hash(block: "ContentBlock") -> Sha256Hex:
    """Hash the block text, store it on the block and return it."""
    return block.compute_hash()


def verify_hash(block: "ContentBlock") -> bool:
    """False if the block carries no hash or the hash no longer matches."""
    return block.verify_hash()


def _hash_structure(
    obj: Serializable,
    target: str,
    serializer: Optional[Serializer],
) -> Sha256Hex:
    serializer = serializer or DEFAULT_SERIALIZER
    try:
        payload = serializer.dumps(obj.to_dict())
    except (TypeError, ValueError, OverflowError) as e:
        raise HashingError(
            f"failed to serialize {target} for hashing: {e}",
            target=target,
            cause=e,
        ) from e
    return hash_bytes(payload)


def hash_corpus(corpus: "Corpus", serializer: Optional[Serializer] = None) -> Sha256Hex:
    return _hash_structure(corpus, f"corpus {corpus.id}", serializer)


def hash_document(document: "Document", serializer: Optional[Serializer] = None) -> Sha256Hex:
    return _hash_structure(document, f"document {document.id}", serializer)


def hash_mapping_table(table: "MappingTable", serializer: Optional[Serializer] = None) -> Sha256Hex:
    return _hash_structure(table, f"mapping table {table.id}", serializer)


def compute_all_hashes(corpus: "Corpus") -> None:
    """Compute and store the text hash of every content block."""
    for _, block in corpus.iter_blocks():
        block.compute_hash()


def verify_all_hashes(corpus: "Corpus") -> List[str]:
    """Return the ids of blocks whose hash is missing or wrong."""
    return [block.id for _, block in corpus.iter_blocks() if not block.verify_hash()]
