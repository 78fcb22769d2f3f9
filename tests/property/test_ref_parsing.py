"""
Property-Based Tests for Reference Parsing

Formatting and parsing are inverse for well-formed references in both the
dotted and the colon form; malformed text always raises RefParseError.
"""
import pytest
from hypothesis import given, settings, strategies as st

from core.errors import RefParseError
from ir.hashing import hash_ref
from ir.ref import Ref, parse_ref, try_parse_ref
from tests.property.strategies import colon_form, garbage_ref_text_strategy, ref_strategy


class TestRefRoundTrip:
    """Parsing what we format gives back the same reference."""

    @given(ref_strategy())
    @settings(max_examples=300)
    def test_dotted_roundtrip(self, ref):
        assert parse_ref(str(ref)) == ref

    @given(ref_strategy())
    @settings(max_examples=300)
    def test_colon_form_normalizes(self, ref):
        parsed = parse_ref(colon_form(ref))
        assert parsed == ref
        assert str(parsed) == str(ref)

    @given(ref_strategy(), st.sampled_from(["", " ", "  \t"]))
    def test_surrounding_whitespace_ignored(self, ref, pad):
        assert parse_ref(f"{pad}{ref}{pad}") == ref

    @given(ref_strategy())
    def test_dict_roundtrip(self, ref):
        assert Ref.from_dict(ref.to_dict()) == ref

    @given(ref_strategy())
    def test_hash_matches_either_form(self, ref):
        assert hash_ref(parse_ref(colon_form(ref))) == hash_ref(ref)


class TestRefContainment:

    @given(ref_strategy())
    def test_contains_itself(self, ref):
        assert ref.contains(ref)

    @given(ref_strategy())
    def test_book_contains_everything_in_book(self, ref):
        assert Ref(ref.book).contains(ref)

    @given(ref_strategy(allow_ranges=False))
    def test_range_bounds_are_inclusive(self, ref):
        if ref.verse == 0:
            return
        ranged = Ref(ref.book, ref.chapter, ref.verse, verse_end=ref.verse + 3)
        assert ranged.contains(Ref(ref.book, ref.chapter, ref.verse))
        assert ranged.contains(Ref(ref.book, ref.chapter, ref.verse + 3))
        assert not ranged.contains(Ref(ref.book, ref.chapter, ref.verse + 4))


class TestMalformedRefs:

    @given(garbage_ref_text_strategy())
    @settings(max_examples=200)
    def test_garbage_raises(self, text):
        with pytest.raises(RefParseError):
            parse_ref(text)
        assert try_parse_ref(text) is None

    @given(st.text(max_size=40))
    @settings(max_examples=300)
    def test_arbitrary_text_never_crashes(self, text):
        """Only RefParseError escapes; anything that parses has a stable canonical form."""
        try:
            ref = parse_ref(text)
        except RefParseError as e:
            assert e.text is not None
            return
        assert str(parse_ref(str(ref))) == str(ref)
