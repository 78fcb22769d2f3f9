"""
SCRIPTORIUM - Intermediate Representation

The stand-off document model, scripture references, versification
mapping, loss classification, hashing and validation.
"""
from ir.hashing import (
    JSONSerializer,
    compute_all_hashes,
    compute_hash,
    hash_bytes,
    hash_corpus,
    hash_document,
    hash_mapping_table,
    hash_ref,
    hash_string,
    verify_all_hashes,
    verify_hash,
)
from ir.loss import (
    LossBudget,
    LossBudgetResult,
    LossClass,
    LossReport,
    LostElement,
    combine_loss_classes,
)
from ir.model import (
    IR_VERSION,
    Anchor,
    Annotation,
    AnnotationType,
    ContentBlock,
    Corpus,
    CrossReference,
    Document,
    ModuleType,
    Span,
    SpanType,
    Token,
    TokenType,
)
from ir.ref import Ref, RefRange, RefSet, parse_ref, parse_ref_range, try_parse_ref
from ir.tokenize import tokenize
from ir.validation import (
    EmptyTextResult,
    ValidationError,
    analyze_empty_text,
    is_valid,
    validate,
    validate_annotation,
    validate_content_block,
    validate_corpus,
    validate_document,
    validate_empty_text_fields,
    validate_loss_report,
    validate_mapping_table,
    validate_no_unexpected_empty_text,
    validate_ref,
    validate_span,
)
from ir.versification import (
    MappingRegistry,
    MappingTable,
    MappingType,
    RefMapping,
    VersificationID,
    merge_refs,
    split_ref,
)

__all__ = [
    # References
    "Ref",
    "RefRange",
    "RefSet",
    "parse_ref",
    "parse_ref_range",
    "try_parse_ref",
    # Model
    "IR_VERSION",
    "Anchor",
    "Annotation",
    "AnnotationType",
    "ContentBlock",
    "Corpus",
    "CrossReference",
    "Document",
    "ModuleType",
    "Span",
    "SpanType",
    "Token",
    "TokenType",
    "tokenize",
    # Hashing
    "JSONSerializer",
    "compute_all_hashes",
    "compute_hash",
    "hash_bytes",
    "hash_corpus",
    "hash_document",
    "hash_mapping_table",
    "hash_ref",
    "hash_string",
    "verify_all_hashes",
    "verify_hash",
    # Loss
    "LossBudget",
    "LossBudgetResult",
    "LossClass",
    "LossReport",
    "LostElement",
    "combine_loss_classes",
    # Versification
    "MappingRegistry",
    "MappingTable",
    "MappingType",
    "RefMapping",
    "VersificationID",
    "merge_refs",
    "split_ref",
    # Validation
    "EmptyTextResult",
    "ValidationError",
    "analyze_empty_text",
    "is_valid",
    "validate",
    "validate_annotation",
    "validate_content_block",
    "validate_corpus",
    "validate_document",
    "validate_empty_text_fields",
    "validate_loss_report",
    "validate_mapping_table",
    "validate_no_unexpected_empty_text",
    "validate_ref",
    "validate_span",
]
