"""
SCRIPTORIUM - Versification Mapping Engine

Maps references between versification systems (KJV, LXX, MT, Vulgate ...).

Historical versification differences are neither uniform nor bijective, so
a mapping may be exact, split one verse into several, merge several into
one, or record that a verse has no equivalent at all. Systems without a
directly authored table interoperate through one shared intermediate.

Usage:
    registry = MappingRegistry()
    registry.register_table(kjv_to_mt)
    registry.register_table(mt_to_lxx)

    registry.map_ref_between_systems(ref, VersificationID.KJV, VersificationID.LXX)
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from core.errors import MappingError
from ir.hashing import hash_mapping_table
from ir.loss import LossClass, LossReport
from ir.model import Corpus, Document
from ir.ref import Ref
from observability.logging import get_logger

logger = get_logger(__name__)


class VersificationID(str, Enum):
    """Known versification systems."""
    KJV = "KJV"
    CATHOLIC = "Catholic"
    LXX = "LXX"
    VULGATE = "Vulgate"
    ETHIOPIAN = "Ethiopian"
    SYNODAL = "Synodal"
    MT = "MT"  # Masoretic Text
    NRSV = "NRSV"
    ARMENIAN = "Armenian"
    GEORGIAN = "Georgian"
    SLAVONIC = "Slavonic"
    SYRIAC = "Syriac"
    ARABIC = "Arabic"
    DSS = "DSS"  # Dead Sea Scrolls
    SAMARITAN = "Samaritan"  # Samaritan Pentateuch
    BHS = "BHS"  # Biblia Hebraica Stuttgartensia
    NA28 = "NA28"  # Nestle-Aland 28th edition

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        return isinstance(value, str) and value in cls._value2member_map_


class MappingType(str, Enum):
    """How a source verse relates to the target system."""
    EXACT = "exact"
    SPLIT = "split"
    MERGE = "merge"
    MISSING = "missing"
    ADDED = "added"
    REORDERED = "reordered"

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        return isinstance(value, str) and value in cls._value2member_map_


def _system(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


# =============================================================================
# MAPPINGS
# =============================================================================


@dataclass
class RefMapping:
    """One source reference and where it lands in the target system."""
    from_ref: Ref
    to: Optional[Ref] = None
    to_refs: List[Ref] = field(default_factory=list)
    type: str = MappingType.EXACT.value
    note: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "from": self.from_ref.to_dict(),
            "to": self.to.to_dict() if self.to is not None else None,
            "type": self.type,
        }
        if self.to_refs:
            data["to_refs"] = [r.to_dict() for r in self.to_refs]
        if self.note:
            data["note"] = self.note
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RefMapping":
        to = data.get("to")
        return cls(
            from_ref=Ref.from_dict(data["from"]),
            to=Ref.from_dict(to) if to else None,
            to_refs=[Ref.from_dict(r) for r in data.get("to_refs", [])],
            type=data.get("type", MappingType.EXACT.value),
            note=data.get("note", ""),
        )


class _MappingList(list):
    """A list of mappings that counts its own edits."""

    version = 0

    def _edited(self) -> None:
        self.version += 1

    def append(self, item):
        self._edited()
        super().append(item)

    def extend(self, items):
        self._edited()
        super().extend(items)

    def insert(self, index, item):
        self._edited()
        super().insert(index, item)

    def pop(self, index=-1):
        self._edited()
        return super().pop(index)

    def remove(self, item):
        self._edited()
        super().remove(item)

    def clear(self):
        self._edited()
        super().clear()

    def sort(self, *args, **kwargs):
        self._edited()
        super().sort(*args, **kwargs)

    def reverse(self):
        self._edited()
        super().reverse()

    def __setitem__(self, index, value):
        self._edited()
        super().__setitem__(index, value)

    def __delitem__(self, index):
        self._edited()
        super().__delitem__(index)

    def __iadd__(self, items):
        self._edited()
        return super().__iadd__(items)

    def __imul__(self, n):
        self._edited()
        return super().__imul__(n)


@dataclass
class MappingTable:
    """
    Directed set of mappings from one versification system to another.

    Lookups go through an index keyed on (book, chapter, verse); when two
    mappings share a key the first one added wins. Any edit to `mappings`,
    including assigning a new list, invalidates the index.
    """
    id: str
    from_system: str
    to_system: str
    mappings: List[RefMapping] = field(default_factory=list)
    hash: str = ""
    _index: Dict[Tuple[str, int, int], RefMapping] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _indexed: Optional[Tuple[_MappingList, int]] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.from_system = _system(self.from_system)
        self.to_system = _system(self.to_system)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "mappings" and not isinstance(value, _MappingList):
            value = _MappingList(value)
        super().__setattr__(name, value)

    def _index_state(self) -> Tuple[_MappingList, int]:
        return self.mappings, self.mappings.version

    def _ensure_index(self) -> None:
        if self._indexed is not None:
            indexed_list, version = self._indexed
            if indexed_list is self.mappings and version == self.mappings.version:
                return
        self._index = {}
        for mapping in self.mappings:
            self._index.setdefault(mapping.from_ref.key(), mapping)
        self._indexed = self._index_state()

    def lookup(self, ref: Ref) -> Optional[RefMapping]:
        self._ensure_index()
        return self._index.get(ref.key())

    def add_mapping(
        self,
        from_ref: Ref,
        to: Optional[Ref],
        mapping_type: MappingType = MappingType.EXACT,
        note: str = "",
    ) -> RefMapping:
        self._ensure_index()
        mapping = RefMapping(from_ref=from_ref, to=to, type=_system(mapping_type), note=note)
        self.mappings.append(mapping)
        self._index.setdefault(from_ref.key(), mapping)
        self._indexed = self._index_state()
        return mapping

    def map_ref(self, ref: Ref) -> Optional[Ref]:
        """
        Map a reference into the target system.

        Unmapped refs come back unchanged (the same object). A mapping with
        no target ref yields None.
        """
        mapping = self.lookup(ref)
        if mapping is None:
            return ref
        return mapping.to

    def compute_hash(self) -> str:
        self.hash = ""
        self.hash = hash_mapping_table(self)
        return self.hash

    def apply_to_corpus(self, corpus: Corpus) -> Tuple[Corpus, LossReport]:
        """
        Produce a re-versified copy of a corpus.

        Canonical and span refs are mapped; text, tokens, anchors and
        annotations are copied unchanged. Refs that land on a MISSING
        mapping or map to nothing are recorded as lost and raise the
        report to L1.
        """
        report = LossReport(
            source_format=self.from_system,
            target_format=self.to_system,
            loss_class=LossClass.L0,
        )

        mapped = Corpus(
            id=corpus.id,
            version=corpus.version,
            module_type=corpus.module_type,
            versification=self.to_system,
            language=corpus.language,
            title=corpus.title,
            description=corpus.description,
            publisher=corpus.publisher,
            rights=corpus.rights,
            source_format=corpus.source_format,
            source_hash=corpus.source_hash,
            loss_class=corpus.loss_class,
            mapping_tables=list(corpus.mapping_tables) + [self],
            cross_references=copy.deepcopy(corpus.cross_references),
            attributes=dict(corpus.attributes),
        )

        for i, doc in enumerate(corpus.documents):
            mapped.documents.append(self._apply_to_document(doc, f"documents[{i}]", report))

        if report.lost_elements and report.loss_class < LossClass.L1:
            report.loss_class = LossClass.L1

        logger.info(
            "versification_applied",
            table_id=self.id,
            from_system=self.from_system,
            to_system=self.to_system,
            documents=len(mapped.documents),
            lost_elements=len(report.lost_elements),
            loss_class=report.loss_class.value,
        )
        return mapped, report

    def _map_tracked(self, ref: Ref, path: str, element_type: str, report: LossReport) -> Optional[Ref]:
        mapping = self.lookup(ref)
        if mapping is None:
            return ref
        if mapping.type == MappingType.MISSING.value:
            report.add_lost_element(
                path, element_type, f"no equivalent in {self.to_system}", str(ref)
            )
        elif mapping.to is None:
            report.add_lost_element(
                path, element_type, "mapping yields no reference", str(ref)
            )
        return mapping.to

    def _apply_to_document(self, doc: Document, path: str, report: LossReport) -> Document:
        mapped = Document(
            id=doc.id,
            title=doc.title,
            order=doc.order,
            content_blocks=copy.deepcopy(doc.content_blocks),
            annotations=copy.deepcopy(doc.annotations),
            attributes=dict(doc.attributes),
        )
        if doc.canonical_ref is not None:
            mapped.canonical_ref = self._map_tracked(
                doc.canonical_ref, f"{path}.canonical_ref", "canonical_ref", report
            )
        for j, span in enumerate(doc.spans):
            span_copy = copy.deepcopy(span)
            if span.ref is not None:
                span_copy.ref = self._map_tracked(
                    span.ref, f"{path}.spans[{j}].ref", "span_ref", report
                )
            mapped.spans.append(span_copy)
        return mapped

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "from_system": self.from_system,
            "to_system": self.to_system,
        }
        if self.mappings:
            data["mappings"] = [m.to_dict() for m in self.mappings]
        if self.hash:
            data["hash"] = self.hash
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MappingTable":
        """
        Raises:
            MappingError: If a mapping entry is malformed
        """
        table_id = data.get("id", "")
        mappings: List[RefMapping] = []
        for i, entry in enumerate(data.get("mappings", [])):
            try:
                mappings.append(RefMapping.from_dict(entry))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise MappingError(
                    f"malformed mapping {i} in table {table_id!r}: {e}",
                    table_id=table_id,
                    from_system=data.get("from_system"),
                    to_system=data.get("to_system"),
                    cause=e,
                ) from e
        return cls(
            id=table_id,
            from_system=data.get("from_system", ""),
            to_system=data.get("to_system", ""),
            mappings=mappings,
            hash=data.get("hash", ""),
        )


def split_ref(mapping: RefMapping) -> List[Ref]:
    """Target refs of a mapping: to_refs for a split, else [to], else []."""
    if mapping.type == MappingType.SPLIT.value and mapping.to_refs:
        return list(mapping.to_refs)
    if mapping.to is not None:
        return [mapping.to]
    return []


def merge_refs(refs: List[Ref]) -> Optional[Ref]:
    """Canonical ref for a merge: the first one, or None if empty."""
    if not refs:
        return None
    return refs[0]


# =============================================================================
# REGISTRY
# =============================================================================


class MappingRegistry:
    """
    Mapping tables keyed by (from_system, to_system).

    Registering a second table for the same pair replaces the first.
    """

    def __init__(self) -> None:
        self._tables: Dict[Tuple[str, str], MappingTable] = {}

    def __len__(self) -> int:
        return len(self._tables)

    def register_table(self, table: MappingTable) -> None:
        self._tables[(table.from_system, table.to_system)] = table
        logger.debug(
            "mapping_table_registered",
            table_id=table.id,
            from_system=table.from_system,
            to_system=table.to_system,
            mappings=len(table.mappings),
        )

    def get_table(self, from_system: Any, to_system: Any) -> Optional[MappingTable]:
        """Direct lookup only."""
        return self._tables.get((_system(from_system), _system(to_system)))

    def get_chained_mapping(self, from_system: Any, to_system: Any) -> Optional[MappingTable]:
        """
        Direct table if registered, else a table composed through exactly one
        intermediate system. Intermediates are tried in registration order.
        """
        direct = self.get_table(from_system, to_system)
        if direct is not None:
            return direct

        source = _system(from_system)
        for (table_from, intermediate), first in self._tables.items():
            if table_from != source:
                continue
            second = self.get_table(intermediate, to_system)
            if second is not None:
                return self._build_chained_table(first, second)
        return None

    @staticmethod
    def _build_chained_table(first: MappingTable, second: MappingTable) -> MappingTable:
        chained = MappingTable(
            id=f"{first.id}+{second.id}",
            from_system=first.from_system,
            to_system=second.to_system,
        )
        dropped = 0
        for mapping in first.mappings:
            if mapping.to is None:
                dropped += 1
                continue
            chained.add_mapping(mapping.from_ref, second.map_ref(mapping.to), mapping.type)

        logger.debug(
            "chained_table_built",
            table_id=chained.id,
            via=first.to_system,
            mappings=len(chained.mappings),
            dropped=dropped,
        )
        return chained

    def map_ref_between_systems(self, ref: Ref, from_system: Any, to_system: Any) -> Optional[Ref]:
        """Identity when the systems match or no table connects them."""
        if _system(from_system) == _system(to_system):
            return ref
        table = self.get_chained_mapping(from_system, to_system)
        if table is None:
            return ref
        return table.map_ref(ref)
