"""
Tests for the stand-off document model.
"""
import json

import pytest

from config import reload_config
from ir.hashing import hash_string
from ir.model import (
    IR_VERSION,
    Annotation,
    AnnotationType,
    ContentBlock,
    Corpus,
    CrossReference,
    Document,
    ModuleType,
    Span,
    SpanType,
    TokenType,
)
from ir.ref import Ref
from ir.tokenize import tokenize


class TestEnums:

    def test_is_valid(self):
        assert ModuleType.is_valid("BIBLE")
        assert not ModuleType.is_valid("bible")
        assert SpanType.is_valid("POETRY_LINE")
        assert AnnotationType.is_valid("STRONGS")
        assert TokenType.is_valid("punctuation")
        assert not SpanType.is_valid("CHAPTERS")


class TestContentBlock:

    def test_compute_and_verify_hash(self, sample_verse_text):
        block = ContentBlock(id="b1", text=sample_verse_text)
        assert not block.verify_hash()

        digest = block.compute_hash()
        assert digest == hash_string(sample_verse_text)
        assert block.hash == digest
        assert block.verify_hash()

        block.text = "altered"
        assert not block.verify_hash()

    def test_attributes_last_write_wins(self):
        block = ContentBlock(id="b1")
        assert block.get_attribute("raw_markup") == (None, False)

        block.set_attribute("raw_markup", "<chapter/>")
        block.set_attribute("raw_markup", "<milestone/>")
        assert block.get_attribute("raw_markup") == ("<milestone/>", True)

    def test_add_anchor_records_block(self):
        block = ContentBlock(id="b7", text="abc")
        anchor = block.add_anchor("a1", 2, token_index=0)
        assert anchor.content_block_id == "b7"
        assert block.get_anchor("a1") is anchor
        assert block.get_anchor("missing") is None

    def test_tokens_reproduce_text(self, sample_verse_text):
        block = ContentBlock(id="b1", text=sample_verse_text, tokens=tokenize(sample_verse_text))
        assert "".join(t.text for t in block.tokens) == block.text


class TestDocument:

    def test_add_block_assigns_increasing_sequence(self):
        doc = Document(id="Ruth")
        blocks = [doc.add_block(f"b{i}", f"text {i}") for i in range(3)]
        assert [b.sequence for b in blocks] == [0, 1, 2]
        assert doc.get_block("b1") is blocks[1]

    def test_anchor_positions(self, sample_document):
        positions = sample_document.anchor_positions()
        assert positions["a1"] == (0, 0)
        assert positions["a2"] == (0, 26)
        assert positions["a4"] == (1, 0)

    def test_spans_of_type(self, sample_document):
        verses = sample_document.spans_of_type(SpanType.VERSE)
        assert [s.id for s in verses] == ["s1", "s2"]

    def test_spans_at_anchor(self, sample_document):
        assert {s.id for s in sample_document.spans_at("a4")} == {"s2", "s3"}

    def test_overlapping_spans_cross_structure(self, sample_document):
        verse_one = sample_document.get_span("s1")
        quotation = sample_document.get_span("s3")
        assert [s.id for s in sample_document.overlapping_spans(verse_one)] == ["s3"]
        assert [s.id for s in sample_document.overlapping_spans(quotation)] == ["s1"]

    def test_touching_spans_do_not_overlap(self, sample_document):
        assert sample_document.overlapping_spans(sample_document.get_span("s2")) == []

    def test_span_extent_missing_anchor(self, sample_document):
        span = Span(id="x", type=SpanType.NOTE.value, start_anchor_id="nope", end_anchor_id="a1")
        assert sample_document.span_extent(span) is None
        assert sample_document.overlapping_spans(span) == []

    def test_annotations_for(self, sample_document):
        notes = sample_document.annotations_for("s1")
        assert [a.value for a in notes] == ["H7225"]
        assert sample_document.annotations_for("s2") == []


class TestCorpus:

    def test_defaults(self):
        corpus = Corpus(id="c")
        assert corpus.version == IR_VERSION
        assert corpus.module_type == ModuleType.BIBLE.value

    def test_version_from_config(self, monkeypatch):
        monkeypatch.setenv("IR_SCHEMA_VERSION", "2.1.0")
        reload_config()
        assert Corpus(id="c").version == "2.1.0"

    def test_iter_blocks(self, sample_corpus):
        assert [(d.id, b.id) for d, b in sample_corpus.iter_blocks()] == [("Gen", "b1"), ("Gen", "b2")]

    def test_cross_references_from(self, sample_corpus):
        sample_corpus.add_cross_reference(
            CrossReference(id="x1", source=Ref("John", 1, 1), target=Ref("Gen", 1, 1))
        )
        sample_corpus.add_cross_reference(
            CrossReference(id="x2", source=Ref("Gen", 1), target=Ref("Ps", 33, 6))
        )
        assert [c.id for c in sample_corpus.cross_references_from(Ref("Gen", 1, 3))] == ["x2"]
        assert [c.id for c in sample_corpus.cross_references_from(Ref("John", 1, 1))] == ["x1"]

    def test_dict_roundtrip(self, sample_corpus, kjv_to_lxx):
        sample_corpus.mapping_tables.append(kjv_to_lxx)
        sample_corpus.add_cross_reference(
            CrossReference(id="x1", source=Ref("John", 1, 1), target=Ref("Gen", 1, 1), label="In the beginning")
        )
        data = json.loads(json.dumps(sample_corpus.to_dict()))
        restored = Corpus.from_dict(data)

        assert restored.to_dict() == sample_corpus.to_dict()
        assert restored.documents[0].spans[0].ref == Ref("Gen", 1, 1)
        assert restored.mapping_tables[0].map_ref(Ref("Ps", 23, 1)) == Ref("Ps", 22, 1)

    def test_to_dict_omits_empty_fields(self):
        data = Corpus(id="c").to_dict()
        assert data == {"id": "c", "version": IR_VERSION, "module_type": "BIBLE"}


def test_annotation_and_span_attributes():
    span = Span(id="s", type=SpanType.RED_LETTER.value, start_anchor_id="a", end_anchor_id="b")
    span.set_attribute("speaker", "Jesus")
    note = Annotation(id="n", span_id="s", type=AnnotationType.FOOTNOTE.value, value="Or, word")
    note.set_attribute("marker", "a")
    assert Span.from_dict(span.to_dict()) == span
    assert Annotation.from_dict(note.to_dict()) == note


@pytest.mark.parametrize("text,count", [("", 0), ("word", 1), ("two words", 3)])
def test_token_count(text, count):
    assert len(tokenize(text)) == count
