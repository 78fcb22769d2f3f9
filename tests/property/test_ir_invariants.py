"""
Property-Based Tests for IR Invariants

Tokenization is lossless and contiguous, hashing is deterministic,
loss budgets are monotone and versification mapping behaves as a lookup
with identity fallback.
"""
from hypothesis import assume, given, settings, strategies as st

from ir.hashing import compute_all_hashes, hash_corpus, hash_string, verify_all_hashes
from ir.loss import LossBudget, combine_loss_classes
from ir.model import TokenType
from ir.ref import Ref
from ir.snapshot import dumps_corpus, loads_corpus
from ir.tokenize import tokenize, word_tokens
from ir.validation import validate
from ir.versification import MappingRegistry, MappingTable
from tests.property.strategies import (
    any_text_strategy,
    block_text_strategy,
    corpus_strategy,
    loss_class_strategy,
    loss_report_strategy,
    mapping_table_strategy,
    ref_strategy,
)


# =============================================================================
# TOKENIZATION
# =============================================================================


class TestTokenizeInvariants:

    @given(block_text_strategy())
    @settings(max_examples=300)
    def test_join_reproduces_input(self, text):
        assert "".join(t.text for t in tokenize(text)) == text

    @given(any_text_strategy())
    @settings(max_examples=300)
    def test_offsets_are_contiguous(self, text):
        tokens = tokenize(text)
        position = 0
        for i, token in enumerate(tokens):
            assert token.index == i
            assert token.id == f"t{i}"
            assert token.char_start == position
            assert token.char_end > token.char_start
            assert text[token.char_start:token.char_end] == token.text
            position = token.char_end
        assert position == len(text)

    @given(block_text_strategy())
    def test_adjacent_tokens_differ_in_class(self, text):
        tokens = tokenize(text)
        for left, right in zip(tokens, tokens[1:]):
            assert left.type != right.type
        assert all(TokenType.is_valid(t.type) for t in tokens)

    @given(block_text_strategy())
    def test_deterministic(self, text):
        assert [t.to_dict() for t in tokenize(text)] == [t.to_dict() for t in tokenize(text)]

    @given(block_text_strategy())
    def test_word_tokens_keep_indices(self, text):
        all_tokens = tokenize(text)
        for word in word_tokens(text):
            assert all_tokens[word.index].text == word.text


# =============================================================================
# HASHING
# =============================================================================


class TestHashInvariants:

    @given(any_text_strategy())
    def test_string_hash_shape(self, text):
        digest = hash_string(text)
        assert digest == hash_string(text)
        assert len(digest) == 64
        assert digest == digest.lower()

    @given(any_text_strategy(), any_text_strategy())
    def test_different_text_different_hash(self, a, b):
        assume(a != b)
        assert hash_string(a) != hash_string(b)

    @given(corpus_strategy())
    @settings(max_examples=100)
    def test_computed_hashes_verify(self, corpus):
        compute_all_hashes(corpus)
        assert verify_all_hashes(corpus) == []
        assert validate(corpus) == []

    @given(corpus_strategy())
    @settings(max_examples=100)
    def test_corpus_hash_survives_snapshot(self, corpus):
        compute_all_hashes(corpus)
        assert hash_corpus(loads_corpus(dumps_corpus(corpus))) == hash_corpus(corpus)


# =============================================================================
# LOSS
# =============================================================================


class TestLossInvariants:

    @given(loss_report_strategy(), loss_class_strategy(), loss_class_strategy())
    @settings(max_examples=200)
    def test_budget_monotone_in_class(self, report, a, b):
        lower, upper = sorted([a, b], key=lambda c: c.level)
        if LossBudget(max_loss_class=lower).is_within_budget(report):
            assert LossBudget(max_loss_class=upper).is_within_budget(report)

    @given(loss_report_strategy(), st.integers(min_value=1, max_value=10))
    def test_budget_monotone_in_cap(self, report, cap):
        tight = LossBudget(max_loss_class=report.loss_class, max_lost_elements=cap)
        loose = LossBudget(max_loss_class=report.loss_class, max_lost_elements=cap + 1)
        if tight.is_within_budget(report):
            assert loose.is_within_budget(report)

    @given(loss_report_strategy())
    def test_own_class_without_cap_passes(self, report):
        result = LossBudget(max_loss_class=report.loss_class).check(report)
        assert result.within_budget
        assert result.violations == []

    @given(st.lists(st.one_of(st.none(), loss_report_strategy()), max_size=6))
    def test_combine_is_worst(self, reports):
        combined = combine_loss_classes(reports)
        for report in reports:
            if report is not None:
                assert report.loss_class <= combined
        present = [r.loss_class.level for r in reports if r is not None]
        assert combined.level == max(present, default=0)


# =============================================================================
# VERSIFICATION
# =============================================================================


class TestVersificationInvariants:

    @given(ref_strategy())
    def test_empty_table_is_identity(self, ref):
        table = MappingTable(id="empty", from_system="KJV", to_system="LXX")
        assert table.map_ref(ref) is ref

    @given(mapping_table_strategy())
    @settings(max_examples=100)
    def test_every_mapping_is_reachable(self, table):
        for mapping in table.mappings:
            assert table.map_ref(mapping.from_ref) == mapping.to

    @given(mapping_table_strategy(), ref_strategy())
    def test_unmapped_refs_pass_through(self, table, ref):
        assume(table.lookup(ref) is None)
        assert table.map_ref(ref) is ref

    @given(mapping_table_strategy(), ref_strategy())
    def test_same_system_is_identity(self, table, ref):
        registry = MappingRegistry()
        registry.register_table(table)
        assert registry.map_ref_between_systems(ref, "KJV", "KJV") is ref

    @given(mapping_table_strategy())
    @settings(max_examples=100)
    def test_table_dict_roundtrip(self, table):
        restored = MappingTable.from_dict(table.to_dict())
        for mapping in table.mappings:
            assert restored.map_ref(mapping.from_ref) == mapping.to

    @given(mapping_table_strategy())
    def test_table_hash_deterministic(self, table):
        assert table.compute_hash() == MappingTable.from_dict(table.to_dict()).compute_hash()


def test_chain_through_intermediate():
    registry = MappingRegistry()
    first = MappingTable(id="a", from_system="KJV", to_system="MT")
    first.add_mapping(Ref("Ps", 51, 1), Ref("Ps", 51, 3))
    second = MappingTable(id="b", from_system="MT", to_system="LXX")
    second.add_mapping(Ref("Ps", 51, 3), Ref("Ps", 50, 3))
    registry.register_table(first)
    registry.register_table(second)
    assert registry.map_ref_between_systems(Ref("Ps", 51, 1), "KJV", "LXX") == Ref("Ps", 50, 3)
