"""
SCRIPTORIUM - Stand-off Document Model

The intermediate representation (IR) every conversion passes through.

The text tree is deliberately shallow:

    Corpus -> Document -> ContentBlock -> Token / Anchor

Structure that does not nest cleanly (verses, poetry lines, quotations,
red letter, notes) lives in a separate overlay of Spans. A Span points at a
start and an end Anchor by id, never at character offsets, so a VERSE span
and a QUOTATION span can share interior anchors without either containing
the other. Annotations hang off Spans.

Tagged fields (module type, span type, annotation type, token type) are
stored as plain strings; the enums below define the valid values and the
validators in ir.validation report anything outside them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Tuple

from config import get_config
from core.types import AttributeMap, AttributeValue
from ir.hashing import hash_string
from ir.ref import Ref

if TYPE_CHECKING:
    from ir.versification import MappingTable


# Schema version written by this library; IR_SCHEMA_VERSION overrides it for new corpora
IR_VERSION = "1.0.0"


# =============================================================================
# ENUMS - Valid values for tagged fields
# =============================================================================


class ModuleType(str, Enum):
    """Kind of content a corpus holds."""
    BIBLE = "BIBLE"
    COMMENTARY = "COMMENTARY"
    DICTIONARY = "DICTIONARY"
    GENBOOK = "GENBOOK"
    DEVOTIONAL = "DEVOTIONAL"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return isinstance(value, str) and value in cls._value2member_map_


class TokenType(str, Enum):
    """Token classes produced by ir.tokenize."""
    WORD = "word"
    WHITESPACE = "whitespace"
    PUNCTUATION = "punctuation"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return isinstance(value, str) and value in cls._value2member_map_


class SpanType(str, Enum):
    """Overlay structure types."""
    VERSE = "VERSE"
    CHAPTER = "CHAPTER"
    PARAGRAPH = "PARAGRAPH"
    POETRY_LINE = "POETRY_LINE"
    QUOTATION = "QUOTATION"
    RED_LETTER = "RED_LETTER"
    NOTE = "NOTE"
    CROSS_REF = "CROSS_REF"
    SECTION = "SECTION"
    TITLE = "TITLE"
    DIVINE_NAME = "DIVINE_NAME"
    EMPHASIS = "EMPHASIS"
    FOREIGN = "FOREIGN"
    SELAH = "SELAH"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return isinstance(value, str) and value in cls._value2member_map_


class AnnotationType(str, Enum):
    """Kinds of data attached to a span."""
    STRONGS = "STRONGS"
    MORPHOLOGY = "MORPHOLOGY"
    FOOTNOTE = "FOOTNOTE"
    CROSS_REF = "CROSS_REF"
    GLOSS = "GLOSS"
    SOURCE = "SOURCE"
    ALTERNATE = "ALTERNATE"
    VARIANT = "VARIANT"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return isinstance(value, str) and value in cls._value2member_map_


# =============================================================================
# ATTRIBUTE CONTAINER
# =============================================================================


class _AttributeMixin:
    """Last-write-wins string-keyed attribute map."""

    attributes: Optional[AttributeMap]

    def set_attribute(self, key: str, value: AttributeValue) -> None:
        if self.attributes is None:
            self.attributes = {}
        self.attributes[key] = value

    def get_attribute(self, key: str) -> Tuple[Optional[AttributeValue], bool]:
        """Return (value, found). Absent keys and absent maps are not found."""
        if not isinstance(self.attributes, dict) or key not in self.attributes:
            return None, False
        return self.attributes[key], True


def _ref_or_none(data: Optional[Dict[str, Any]]) -> Optional[Ref]:
    return Ref.from_dict(data) if data else None


# =============================================================================
# TEXT TREE
# =============================================================================


@dataclass
class Token:
    """Word, whitespace or punctuation unit over [char_start, char_end)."""
    id: str
    index: int
    char_start: int
    char_end: int
    text: str
    type: str = TokenType.WORD.value
    lemma: str = ""
    strongs: List[str] = field(default_factory=list)
    morphology: str = ""

    def is_word(self) -> bool:
        return self.type == TokenType.WORD.value

    def __len__(self) -> int:
        return self.char_end - self.char_start

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "index": self.index,
            "char_start": self.char_start,
            "char_end": self.char_end,
            "text": self.text,
            "type": self.type,
        }
        if self.lemma:
            data["lemma"] = self.lemma
        if self.strongs:
            data["strongs"] = list(self.strongs)
        if self.morphology:
            data["morphology"] = self.morphology
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Token":
        return cls(
            id=data.get("id", ""),
            index=data.get("index", 0),
            char_start=data.get("char_start", 0),
            char_end=data.get("char_end", 0),
            text=data.get("text", ""),
            type=data.get("type", TokenType.WORD.value),
            lemma=data.get("lemma", ""),
            strongs=list(data.get("strongs", [])),
            morphology=data.get("morphology", ""),
        )


@dataclass
class Anchor:
    """Zero-width position marker inside a content block."""
    id: str
    content_block_id: str = ""
    char_offset: int = 0
    token_index: Optional[int] = None
    hash: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "content_block_id": self.content_block_id,
            "char_offset": self.char_offset,
        }
        if self.token_index is not None:
            data["token_index"] = self.token_index
        if self.hash:
            data["hash"] = self.hash
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Anchor":
        return cls(
            id=data.get("id", ""),
            content_block_id=data.get("content_block_id", ""),
            char_offset=data.get("char_offset", 0),
            token_index=data.get("token_index"),
            hash=data.get("hash", ""),
        )


@dataclass
class ContentBlock(_AttributeMixin):
    """Contiguous unit of text (paragraph, section or verse line)."""
    id: str
    sequence: int = 0
    text: str = ""
    tokens: List[Token] = field(default_factory=list)
    anchors: List[Anchor] = field(default_factory=list)
    hash: str = ""
    attributes: Optional[AttributeMap] = None

    def compute_hash(self) -> str:
        """Hash the text, store the digest on the block and return it."""
        self.hash = hash_string(self.text)
        return self.hash

    def verify_hash(self) -> bool:
        """False if no hash is stored or it no longer matches the text."""
        if not self.hash or not isinstance(self.text, str):
            return False
        return self.hash == hash_string(self.text)

    def get_anchor(self, anchor_id: str) -> Optional[Anchor]:
        for anchor in self.anchors:
            if anchor.id == anchor_id:
                return anchor
        return None

    def add_anchor(self, anchor_id: str, char_offset: int, token_index: Optional[int] = None) -> Anchor:
        anchor = Anchor(
            id=anchor_id,
            content_block_id=self.id,
            char_offset=char_offset,
            token_index=token_index,
        )
        self.anchors.append(anchor)
        return anchor

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "sequence": self.sequence,
            "text": self.text,
        }
        if self.tokens:
            data["tokens"] = [t.to_dict() for t in self.tokens]
        if self.anchors:
            data["anchors"] = [a.to_dict() for a in self.anchors]
        if self.hash:
            data["hash"] = self.hash
        if self.attributes:
            data["attributes"] = dict(self.attributes)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentBlock":
        return cls(
            id=data.get("id", ""),
            sequence=data.get("sequence", 0),
            text=data.get("text", ""),
            tokens=[Token.from_dict(t) for t in data.get("tokens", [])],
            anchors=[Anchor.from_dict(a) for a in data.get("anchors", [])],
            hash=data.get("hash", ""),
            attributes=data.get("attributes"),
        )


# =============================================================================
# STAND-OFF OVERLAY
# =============================================================================


@dataclass
class Span(_AttributeMixin):
    """
    Region between two anchors.

    Spans are stored independently of the text tree and may overlap
    arbitrarily.
    """
    id: str
    type: str
    start_anchor_id: str
    end_anchor_id: str = ""
    ref: Optional[Ref] = None
    attributes: Optional[AttributeMap] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "start_anchor_id": self.start_anchor_id,
            "end_anchor_id": self.end_anchor_id,
        }
        if self.ref is not None:
            data["ref"] = self.ref.to_dict()
        if self.attributes:
            data["attributes"] = dict(self.attributes)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Span":
        return cls(
            id=data.get("id", ""),
            type=data.get("type", ""),
            start_anchor_id=data.get("start_anchor_id", ""),
            end_anchor_id=data.get("end_anchor_id", ""),
            ref=_ref_or_none(data.get("ref")),
            attributes=data.get("attributes"),
        )


@dataclass
class Annotation(_AttributeMixin):
    """Metadata attached to a span."""
    id: str
    span_id: str
    type: str
    value: Optional[AttributeValue] = None
    confidence: float = 1.0
    source: str = ""
    attributes: Optional[AttributeMap] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "span_id": self.span_id,
            "type": self.type,
            "value": self.value,
            "confidence": self.confidence,
        }
        if self.source:
            data["source"] = self.source
        if self.attributes:
            data["attributes"] = dict(self.attributes)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Annotation":
        return cls(
            id=data.get("id", ""),
            span_id=data.get("span_id", ""),
            type=data.get("type", ""),
            value=data.get("value"),
            confidence=data.get("confidence", 1.0),
            source=data.get("source", ""),
            attributes=data.get("attributes"),
        )


# =============================================================================
# DOCUMENT
# =============================================================================


@dataclass
class Document:
    """One book, article or dictionary entry within a corpus."""
    id: str
    title: str = ""
    order: int = 1
    canonical_ref: Optional[Ref] = None
    content_blocks: List[ContentBlock] = field(default_factory=list)
    spans: List[Span] = field(default_factory=list)
    annotations: List[Annotation] = field(default_factory=list)
    attributes: Dict[str, str] = field(default_factory=dict)

    def add_block(self, block_id: str, text: str) -> ContentBlock:
        """Append a block, assigning the next sequence number in document order."""
        sequence = self.content_blocks[-1].sequence + 1 if self.content_blocks else 0
        block = ContentBlock(id=block_id, sequence=sequence, text=text)
        self.content_blocks.append(block)
        return block

    def get_block(self, block_id: str) -> Optional[ContentBlock]:
        for block in self.content_blocks:
            if block.id == block_id:
                return block
        return None

    def iter_anchors(self) -> Iterator[Tuple[int, Anchor]]:
        """Yield (block position, anchor) in document order."""
        for position, block in enumerate(self.content_blocks):
            for anchor in block.anchors:
                yield position, anchor

    def anchor_positions(self) -> Dict[str, Tuple[int, int]]:
        """Map anchor id -> (block position, char offset)."""
        return {anchor.id: (position, anchor.char_offset) for position, anchor in self.iter_anchors()}

    def add_span(
        self,
        span_id: str,
        span_type: SpanType,
        start_anchor_id: str,
        end_anchor_id: str,
        ref: Optional[Ref] = None,
    ) -> Span:
        span = Span(
            id=span_id,
            type=span_type.value,
            start_anchor_id=start_anchor_id,
            end_anchor_id=end_anchor_id,
            ref=ref,
        )
        self.spans.append(span)
        return span

    def get_span(self, span_id: str) -> Optional[Span]:
        for span in self.spans:
            if span.id == span_id:
                return span
        return None

    def spans_of_type(self, span_type: SpanType) -> List[Span]:
        return [s for s in self.spans if s.type == span_type.value]

    def spans_at(self, anchor_id: str) -> List[Span]:
        """Spans that start or end at the given anchor."""
        return [
            s for s in self.spans
            if s.start_anchor_id == anchor_id or s.end_anchor_id == anchor_id
        ]

    def span_extent(self, span: Span) -> Optional[Tuple[Tuple[int, int], Tuple[int, int]]]:
        """Resolve a span to (start, end) positions, or None if an anchor is missing."""
        positions = self.anchor_positions()
        start = positions.get(span.start_anchor_id)
        end = positions.get(span.end_anchor_id or span.start_anchor_id)
        if start is None or end is None:
            return None
        return start, end

    def overlapping_spans(self, span: Span) -> List[Span]:
        """Other spans whose extent intersects the given span's extent."""
        positions = self.anchor_positions()

        def extent(s: Span) -> Optional[Tuple[Tuple[int, int], Tuple[int, int]]]:
            start = positions.get(s.start_anchor_id)
            end = positions.get(s.end_anchor_id or s.start_anchor_id)
            if start is None or end is None:
                return None
            return start, end

        target = extent(span)
        if target is None:
            return []
        result = []
        for other in self.spans:
            if other.id == span.id:
                continue
            other_extent = extent(other)
            if other_extent is None:
                continue
            if other_extent[0] < target[1] and target[0] < other_extent[1]:
                result.append(other)
        return result

    def add_annotation(self, annotation: Annotation) -> None:
        self.annotations.append(annotation)

    def annotations_for(self, span_id: str) -> List[Annotation]:
        return [a for a in self.annotations if a.span_id == span_id]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "order": self.order}
        if self.title:
            data["title"] = self.title
        if self.canonical_ref is not None:
            data["canonical_ref"] = self.canonical_ref.to_dict()
        if self.content_blocks:
            data["content_blocks"] = [b.to_dict() for b in self.content_blocks]
        if self.spans:
            data["spans"] = [s.to_dict() for s in self.spans]
        if self.annotations:
            data["annotations"] = [a.to_dict() for a in self.annotations]
        if self.attributes:
            data["attributes"] = dict(self.attributes)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        return cls(
            id=data.get("id", ""),
            title=data.get("title", ""),
            order=data.get("order", 0),
            canonical_ref=_ref_or_none(data.get("canonical_ref")),
            content_blocks=[ContentBlock.from_dict(b) for b in data.get("content_blocks", [])],
            spans=[Span.from_dict(s) for s in data.get("spans", [])],
            annotations=[Annotation.from_dict(a) for a in data.get("annotations", [])],
            attributes=dict(data.get("attributes", {})),
        )


# =============================================================================
# CROSS-REFERENCES
# =============================================================================


@dataclass
class CrossReference:
    """Directed relationship between two passages."""
    id: str
    source: Ref
    target: Ref
    type: str = "parallel"
    label: str = ""
    confidence: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "source": self.source.to_dict(),
            "target": self.target.to_dict(),
            "type": self.type,
            "confidence": self.confidence,
        }
        if self.label:
            data["label"] = self.label
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrossReference":
        return cls(
            id=data.get("id", ""),
            source=Ref.from_dict(data["source"]),
            target=Ref.from_dict(data["target"]),
            type=data.get("type", "parallel"),
            label=data.get("label", ""),
            confidence=data.get("confidence", 1.0),
        )


# =============================================================================
# CORPUS
# =============================================================================


@dataclass
class Corpus:
    """Top-level container for a complete module; owns its documents."""
    id: str
    version: str = field(default_factory=lambda: get_config().ir.schema_version)
    module_type: str = ModuleType.BIBLE.value
    versification: str = ""
    language: str = ""
    title: str = ""
    description: str = ""
    publisher: str = ""
    rights: str = ""
    source_format: str = ""
    source_hash: str = ""
    loss_class: str = ""
    documents: List[Document] = field(default_factory=list)
    mapping_tables: List["MappingTable"] = field(default_factory=list)
    cross_references: List[CrossReference] = field(default_factory=list)
    attributes: Dict[str, str] = field(default_factory=dict)

    def get_document(self, document_id: str) -> Optional[Document]:
        for doc in self.documents:
            if doc.id == document_id:
                return doc
        return None

    def add_document(self, document: Document) -> None:
        self.documents.append(document)

    def iter_blocks(self) -> Iterator[Tuple[Document, ContentBlock]]:
        for doc in self.documents:
            for block in doc.content_blocks:
                yield doc, block

    def add_cross_reference(self, cross_reference: CrossReference) -> None:
        self.cross_references.append(cross_reference)

    def cross_references_from(self, ref: Ref) -> List[CrossReference]:
        """Cross-references whose source contains the given ref."""
        return [cr for cr in self.cross_references if cr.source.contains(ref)]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "version": self.version,
            "module_type": self.module_type,
        }
        for key in (
            "versification",
            "language",
            "title",
            "description",
            "publisher",
            "rights",
            "source_format",
            "source_hash",
            "loss_class",
        ):
            value = getattr(self, key)
            if value:
                data[key] = value
        if self.documents:
            data["documents"] = [d.to_dict() for d in self.documents]
        if self.mapping_tables:
            data["mapping_tables"] = [t.to_dict() for t in self.mapping_tables]
        if self.cross_references:
            data["cross_references"] = [cr.to_dict() for cr in self.cross_references]
        if self.attributes:
            data["attributes"] = dict(self.attributes)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Corpus":
        from ir.versification import MappingTable

        return cls(
            id=data.get("id", ""),
            version=data.get("version", ""),
            module_type=data.get("module_type", ""),
            versification=data.get("versification", ""),
            language=data.get("language", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            publisher=data.get("publisher", ""),
            rights=data.get("rights", ""),
            source_format=data.get("source_format", ""),
            source_hash=data.get("source_hash", ""),
            loss_class=data.get("loss_class", ""),
            documents=[Document.from_dict(d) for d in data.get("documents", [])],
            mapping_tables=[MappingTable.from_dict(t) for t in data.get("mapping_tables", [])],
            cross_references=[CrossReference.from_dict(c) for c in data.get("cross_references", [])],
            attributes=dict(data.get("attributes", {})),
        )
