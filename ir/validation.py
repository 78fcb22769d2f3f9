"""
SCRIPTORIUM - IR Validation

Structural and semantic checks over the IR.

Validators never raise and never stop at the first problem: each returns
the complete list of ValidationError values it found, with a dotted path
locating every one of them, e.g.

    corpus.documents[2].content_blocks[0].hash: Hash does not match content

Every validator takes the path prefix to report under, so the same function
gives "content_block.hash" when called on its own and the fully qualified
path when called from validate_corpus().

The empty-text heuristic distinguishes blocks that are empty on purpose
(a chapter or book boundary marker carried over from OSIS markup) from
blocks that lost their text during extraction.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from config import get_config
from core.types import is_attribute_value
from ir.loss import LossClass, LossReport
from ir.model import (
    Annotation,
    AnnotationType,
    ContentBlock,
    Corpus,
    Document,
    ModuleType,
    Span,
    SpanType,
)
from ir.ref import Ref
from ir.versification import MappingTable, MappingType, VersificationID


@dataclass(frozen=True)
class ValidationError:
    """A single problem found in the IR."""
    path: str
    message: str

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


def _err(path: str, message: str) -> ValidationError:
    return ValidationError(path=path, message=message)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_id(value, path: str, errors: List[ValidationError]) -> None:
    if not value:
        errors.append(_err(path, "ID is required"))
    elif not isinstance(value, str):
        errors.append(_err(f"{path}.id", f"ID must be a string, got {type(value).__name__}"))


def _check_confidence(value, path: str, errors: List[ValidationError]) -> None:
    if not _is_number(value):
        errors.append(_err(path, f"Confidence must be a number, got {type(value).__name__}"))
    elif value < 0 or value > 1:
        errors.append(_err(path, "Confidence must be between 0 and 1"))


def _check_attributes(attributes, path: str, errors: List[ValidationError]) -> None:
    if attributes is None:
        return
    if not isinstance(attributes, dict):
        errors.append(_err(path, f"Attributes must be a map, got {type(attributes).__name__}"))
        return
    for key, value in attributes.items():
        if not is_attribute_value(value):
            errors.append(_err(f"{path}.{key}", f"unsupported attribute value type: {type(value).__name__}"))


# =============================================================================
# LEAF VALIDATORS
# =============================================================================


def validate_ref(ref: Ref, path: str = "ref") -> List[ValidationError]:
    errors: List[ValidationError] = []
    if not isinstance(ref, Ref):
        return [_err(path, f"expected a reference, got {type(ref).__name__}")]
    if not ref.book:
        errors.append(_err(path, "Book is required"))
    elif not isinstance(ref.book, str):
        errors.append(_err(f"{path}.book", "Book must be a string"))

    numbers_ok = True
    for name in ("chapter", "verse", "verse_end"):
        if not _is_int(getattr(ref, name)):
            errors.append(_err(f"{path}.{name}", f"{name} must be an integer"))
            numbers_ok = False
    if numbers_ok:
        if ref.chapter < 0:
            errors.append(_err(f"{path}.chapter", "Chapter cannot be negative"))
        if ref.verse < 0:
            errors.append(_err(f"{path}.verse", "Verse cannot be negative"))
        if ref.verse_end > 0 and ref.verse_end < ref.verse:
            errors.append(_err(f"{path}.verse_end", "VerseEnd cannot be before Verse"))
        if ref.verse_end > 0 and ref.verse == 0:
            errors.append(_err(f"{path}.verse_end", "VerseEnd requires a Verse"))

    sub_verse = ref.sub_verse
    if sub_verse and not (isinstance(sub_verse, str) and len(sub_verse) == 1 and sub_verse.islower()):
        errors.append(_err(f"{path}.sub_verse", "SubVerse must be a single lowercase letter"))
    return errors


def validate_content_block(block: ContentBlock, path: str = "content_block") -> List[ValidationError]:
    errors: List[ValidationError] = []
    _check_id(block.id, path, errors)
    if not _is_int(block.sequence):
        errors.append(_err(f"{path}.sequence", "Sequence must be an integer"))
    elif block.sequence < 0:
        errors.append(_err(f"{path}.sequence", "Sequence cannot be negative"))
    if not isinstance(block.text, str):
        errors.append(_err(f"{path}.text", f"Text must be a string, got {type(block.text).__name__}"))
    elif block.hash and not block.verify_hash():
        errors.append(_err(f"{path}.hash", "Hash does not match content"))

    for i, token in enumerate(block.tokens):
        token_path = f"{path}.tokens[{i}]"
        if not _is_int(token.char_start) or not _is_int(token.char_end):
            errors.append(_err(token_path, "CharStart and CharEnd must be integers"))
            continue
        if token.char_start < 0:
            errors.append(_err(token_path, "CharStart cannot be negative"))
        if token.char_end < token.char_start:
            errors.append(_err(token_path, "CharEnd cannot be before CharStart"))

    for i, anchor in enumerate(block.anchors):
        anchor_path = f"{path}.anchors[{i}]"
        if not _is_int(anchor.char_offset):
            errors.append(_err(anchor_path, "CharOffset must be an integer"))
        elif anchor.char_offset < 0:
            errors.append(_err(anchor_path, "CharOffset cannot be negative"))

    _check_attributes(block.attributes, f"{path}.attributes", errors)
    return errors


def validate_span(span: Span, path: str = "span") -> List[ValidationError]:
    errors: List[ValidationError] = []
    _check_id(span.id, path, errors)
    if span.type and not SpanType.is_valid(span.type):
        errors.append(_err(f"{path}.type", f"invalid SpanType: {span.type!r}"))
    if not span.start_anchor_id:
        errors.append(_err(f"{path}.start_anchor_id", "StartAnchorID is required"))
    if not span.end_anchor_id:
        errors.append(_err(f"{path}.end_anchor_id", "EndAnchorID is required"))
    if span.ref is not None:
        errors.extend(validate_ref(span.ref, f"{path}.ref"))
    _check_attributes(span.attributes, f"{path}.attributes", errors)
    return errors


def validate_annotation(annotation: Annotation, path: str = "annotation") -> List[ValidationError]:
    errors: List[ValidationError] = []
    _check_id(annotation.id, path, errors)
    if not annotation.span_id:
        errors.append(_err(f"{path}.span_id", "SpanID is required"))
    if annotation.type and not AnnotationType.is_valid(annotation.type):
        errors.append(_err(f"{path}.type", f"invalid AnnotationType: {annotation.type!r}"))
    _check_confidence(annotation.confidence, f"{path}.confidence", errors)
    if annotation.value is not None and not is_attribute_value(annotation.value):
        errors.append(_err(f"{path}.value", "unsupported annotation value type"))
    _check_attributes(annotation.attributes, f"{path}.attributes", errors)
    return errors


def validate_loss_report(report: LossReport, path: str = "loss_report") -> List[ValidationError]:
    errors: List[ValidationError] = []
    if not report.source_format:
        errors.append(_err(path, "SourceFormat is required"))
    if not report.target_format:
        errors.append(_err(path, "TargetFormat is required"))
    if not LossClass.is_valid(report.loss_class):
        errors.append(_err(f"{path}.loss_class", f"invalid LossClass: {report.loss_class!r}"))
    return errors


def validate_mapping_table(table: MappingTable, path: str = "mapping_table") -> List[ValidationError]:
    errors: List[ValidationError] = []
    _check_id(table.id, path, errors)
    if table.from_system and not VersificationID.is_valid(table.from_system):
        errors.append(_err(f"{path}.from_system", f"invalid VersificationID: {table.from_system!r}"))
    if table.to_system and not VersificationID.is_valid(table.to_system):
        errors.append(_err(f"{path}.to_system", f"invalid VersificationID: {table.to_system!r}"))

    for i, mapping in enumerate(table.mappings):
        mapping_path = f"{path}.mappings[{i}]"
        if mapping.type and not MappingType.is_valid(mapping.type):
            errors.append(_err(f"{mapping_path}.type", f"invalid MappingType: {mapping.type!r}"))
        errors.extend(validate_ref(mapping.from_ref, f"{mapping_path}.from"))
        if mapping.to is not None:
            errors.extend(validate_ref(mapping.to, f"{mapping_path}.to"))
        for j, ref in enumerate(mapping.to_refs):
            errors.extend(validate_ref(ref, f"{mapping_path}.to_refs[{j}]"))
    return errors


# =============================================================================
# COMPOSITE VALIDATORS
# =============================================================================


def validate_document(document: Document, path: str = "document") -> List[ValidationError]:
    errors: List[ValidationError] = []
    _check_id(document.id, path, errors)
    if not _is_int(document.order):
        errors.append(_err(f"{path}.order", "Order must be an integer"))
    elif document.order <= 0:
        errors.append(_err(f"{path}.order", "Order must be positive"))
    if document.canonical_ref is not None:
        errors.extend(validate_ref(document.canonical_ref, f"{path}.canonical_ref"))

    seen_blocks = set()
    last_sequence: Optional[int] = None
    for i, block in enumerate(document.content_blocks):
        block_path = f"{path}.content_blocks[{i}]"
        errors.extend(validate_content_block(block, block_path))
        if block.id and isinstance(block.id, str):
            if block.id in seen_blocks:
                errors.append(_err(f"{block_path}.id", f"duplicate content block ID: {block.id!r}"))
            seen_blocks.add(block.id)
        # Blocks with a malformed sequence were reported above and do not take part in ordering
        if not _is_int(block.sequence):
            continue
        if last_sequence is not None and block.sequence <= last_sequence:
            errors.append(_err(f"{block_path}.sequence", "Sequence must increase monotonically"))
        last_sequence = block.sequence

    anchor_ids = {anchor.id for _, anchor in document.iter_anchors() if isinstance(anchor.id, str)}
    span_ids = set()
    for i, span in enumerate(document.spans):
        span_path = f"{path}.spans[{i}]"
        errors.extend(validate_span(span, span_path))
        if isinstance(span.id, str):
            span_ids.add(span.id)
        for name in ("start_anchor_id", "end_anchor_id"):
            anchor_id = getattr(span, name)
            if anchor_id and (not isinstance(anchor_id, str) or anchor_id not in anchor_ids):
                errors.append(_err(f"{span_path}.{name}", f"unknown anchor: {anchor_id!r}"))

    for i, annotation in enumerate(document.annotations):
        annotation_path = f"{path}.annotations[{i}]"
        errors.extend(validate_annotation(annotation, annotation_path))
        span_id = annotation.span_id
        if span_id and (not isinstance(span_id, str) or span_id not in span_ids):
            errors.append(_err(f"{annotation_path}.span_id", f"unknown span: {span_id!r}"))

    _check_attributes(document.attributes, f"{path}.attributes", errors)
    return errors


def validate_corpus(corpus: Corpus, path: str = "corpus") -> List[ValidationError]:
    """Collect every problem in the corpus and everything it owns."""
    errors: List[ValidationError] = []
    _check_id(corpus.id, path, errors)
    if not corpus.version:
        errors.append(_err(path, "Version is required"))
    if corpus.module_type and not ModuleType.is_valid(corpus.module_type):
        errors.append(_err(f"{path}.module_type", f"invalid ModuleType: {corpus.module_type!r}"))
    if corpus.versification and not VersificationID.is_valid(corpus.versification):
        errors.append(_err(f"{path}.versification", f"invalid VersificationID: {corpus.versification!r}"))
    if corpus.loss_class and not LossClass.is_valid(corpus.loss_class):
        errors.append(_err(f"{path}.loss_class", f"invalid LossClass: {corpus.loss_class!r}"))

    seen_documents = set()
    for i, document in enumerate(corpus.documents):
        document_path = f"{path}.documents[{i}]"
        errors.extend(validate_document(document, document_path))
        if document.id and isinstance(document.id, str):
            if document.id in seen_documents:
                errors.append(_err(f"{document_path}.id", f"duplicate document ID: {document.id!r}"))
            seen_documents.add(document.id)

    for i, table in enumerate(corpus.mapping_tables):
        errors.extend(validate_mapping_table(table, f"{path}.mapping_tables[{i}]"))

    for i, cross_reference in enumerate(corpus.cross_references):
        cross_reference_path = f"{path}.cross_references[{i}]"
        errors.extend(validate_ref(cross_reference.source, f"{cross_reference_path}.source"))
        errors.extend(validate_ref(cross_reference.target, f"{cross_reference_path}.target"))
        _check_confidence(cross_reference.confidence, f"{cross_reference_path}.confidence", errors)
    return errors


def validate(corpus: Corpus) -> List[ValidationError]:
    return validate_corpus(corpus)


def is_valid(corpus: Corpus) -> bool:
    return not validate_corpus(corpus)


# =============================================================================
# EMPTY-TEXT HEURISTIC
# =============================================================================


REASON_NO_MARKUP = "no raw markup present - possible data loss"
REASON_PARSE_ERROR = "raw markup contains text but stripped result is empty - possible parsing error"
REASON_CHAPTER = "chapter boundary marker (versification difference)"
REASON_BOOK = "book boundary marker"
REASON_SECTION = "section boundary marker"
REASON_MILESTONE = "milestone marker only"
REASON_MARKUP_ONLY = "markup-only content (no actual text)"

_TAG = re.compile(r"<[^>]*>")


@dataclass(frozen=True)
class EmptyTextResult:
    """Classification of one content block with empty text."""
    document_id: str
    content_block_id: str
    reason: str
    is_purposeful: bool
    raw_markup: str = ""


def contains_markup_element(markup: str, element: str) -> bool:
    """True if an opening or closing tag for element appears in markup."""
    return re.search(rf"</?{re.escape(element)}(?=[\s/>])", markup) is not None


def contains_actual_text(markup: str) -> bool:
    """True if anything other than whitespace remains once tags are removed."""
    return bool(_TAG.sub("", markup).strip())


def analyze_empty_text(raw_markup: str) -> Tuple[str, bool]:
    """
    Explain why a block's text is empty.

    Returns (reason, is_purposeful). Whitespace-only markup counts as
    markup-only content.
    """
    if raw_markup == "":
        return REASON_NO_MARKUP, False
    if contains_actual_text(raw_markup):
        return REASON_PARSE_ERROR, False
    if contains_markup_element(raw_markup, "chapter"):
        return REASON_CHAPTER, True
    if '<div type="book"' in raw_markup:
        return REASON_BOOK, True
    if '<div type="section"' in raw_markup:
        return REASON_SECTION, True
    if contains_markup_element(raw_markup, "milestone"):
        return REASON_MILESTONE, True
    return REASON_MARKUP_ONLY, True


def validate_empty_text_fields(corpus: Corpus) -> List[EmptyTextResult]:
    """Classify every content block whose text is empty."""
    attribute = get_config().ir.raw_markup_attribute
    results: List[EmptyTextResult] = []
    for document, block in corpus.iter_blocks():
        if block.text != "":
            continue
        raw, found = block.get_attribute(attribute)
        raw_markup = raw if found and isinstance(raw, str) else ""
        reason, purposeful = analyze_empty_text(raw_markup)
        results.append(
            EmptyTextResult(
                document_id=document.id,
                content_block_id=block.id,
                reason=reason,
                is_purposeful=purposeful,
                raw_markup=raw_markup,
            )
        )
    return results


def validate_no_unexpected_empty_text(corpus: Corpus) -> List[ValidationError]:
    """Only empty blocks that are not explained by markup become errors."""
    return [
        _err(f"{r.document_id}.{r.content_block_id}", f"unexpected empty text: {r.reason}")
        for r in validate_empty_text_fields(corpus)
        if not r.is_purposeful
    ]
