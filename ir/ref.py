"""
SCRIPTORIUM - Reference Model

Canonical scripture addressing: book, chapter, verse, optional verse-range
end and optional sub-verse letter.

Two textual forms are accepted and both format to the same canonical
(OSIS-style dotted) string:

    Gen.1.1a        Matt.5.3-12     1John.3.16      Gen.1      Gen
    Gen 1:1a        Matt 5:3-12     1John 3:16      Gen 1

Parsing is done by a small recursive-descent parser over four token
classes (INT, IDENT, SUB, punctuation) rather than a regular expression, so
that the book-prefix rule ("1John" is a numeric prefix glued to an
identifier) and the sub-verse rule (a single lowercase letter after a verse
number) are explicit.

Usage:
    from ir.ref import parse_ref, Ref

    ref = parse_ref("Ps 23:1")
    str(ref)                 # "Ps.23.1"
    Ref("Ps", 23).contains(ref)   # True
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from core.errors import RefParseError


# =============================================================================
# REF VALUE OBJECT
# =============================================================================


@dataclass(frozen=True)
class Ref:
    """
    Value object for a scripture reference.

    chapter == 0 addresses the whole book, verse == 0 the whole chapter.
    verse_end == 0 means "not a range".
    """
    book: str
    chapter: int = 0
    verse: int = 0
    verse_end: int = 0
    sub_verse: str = ""

    def __str__(self) -> str:
        if not self.chapter:
            return self.book
        if not self.verse:
            return f"{self.book}.{self.chapter}"
        text = f"{self.book}.{self.chapter}.{self.verse}{self.sub_verse}"
        if self.verse_end:
            text += f"-{self.verse_end}"
        return text

    @property
    def osis_id(self) -> str:
        """Canonical dotted form."""
        return str(self)

    @property
    def is_whole_book(self) -> bool:
        return self.chapter == 0

    @property
    def is_whole_chapter(self) -> bool:
        return self.chapter > 0 and self.verse == 0

    def is_range(self) -> bool:
        """True if this ref spans more than one verse."""
        return self.verse_end > self.verse

    def key(self) -> Tuple[str, int, int]:
        """Lookup key used by mapping tables."""
        return (self.book, self.chapter, self.verse)

    def contains(self, other: "Ref") -> bool:
        """
        Containment test.

        A whole-book ref contains everything in the book, a whole-chapter ref
        contains every verse of the chapter, a ranged ref contains any verse
        in [verse, verse_end]; otherwise the verses must match exactly.
        """
        if self.book != other.book:
            return False
        if self.chapter == 0:
            return True
        if self.chapter != other.chapter:
            return False
        if self.verse == 0:
            return True
        if self.verse_end > 0:
            return self.verse <= other.verse <= self.verse_end
        return self.verse == other.verse

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"book": self.book}
        if self.chapter:
            data["chapter"] = self.chapter
        if self.verse:
            data["verse"] = self.verse
        if self.verse_end:
            data["verse_end"] = self.verse_end
        if self.sub_verse:
            data["sub_verse"] = self.sub_verse
        data["osis_id"] = self.osis_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ref":
        if "book" not in data and data.get("osis_id"):
            return parse_ref(data["osis_id"])
        return cls(
            book=data.get("book", ""),
            chapter=int(data.get("chapter", 0) or 0),
            verse=int(data.get("verse", 0) or 0),
            verse_end=int(data.get("verse_end", 0) or 0),
            sub_verse=data.get("sub_verse", "") or "",
        )


@dataclass(frozen=True)
class RefRange:
    """Range of verses that may cross chapter boundaries within one book."""
    start: Ref
    end: Ref

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"

    def contains(self, ref: Ref) -> bool:
        if ref.book != self.start.book or ref.book != self.end.book:
            return False
        position = (ref.chapter, ref.verse)
        return (self.start.chapter, self.start.verse) <= position <= (
            self.end.chapter,
            self.end.verse,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RefRange":
        return cls(start=Ref.from_dict(data["start"]), end=Ref.from_dict(data["end"]))


@dataclass
class RefSet:
    """Labelled, ordered collection of refs (e.g. a set of parallels)."""
    id: str
    label: str = ""
    refs: List[Ref] = field(default_factory=list)

    def add(self, ref: Ref) -> None:
        self.refs.append(ref)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "refs": [r.to_dict() for r in self.refs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RefSet":
        return cls(
            id=data.get("id", ""),
            label=data.get("label", ""),
            refs=[Ref.from_dict(r) for r in data.get("refs", [])],
        )


# =============================================================================
# LEXER
# =============================================================================


class _Tok(Enum):
    INT = "int"
    IDENT = "ident"
    SUB = "sub"
    DOT = "."
    COLON = ":"
    DASH = "-"
    SPACE = " "
    END = "end"


@dataclass(frozen=True)
class _Token:
    kind: _Tok
    text: str
    pos: int


_PUNCT = {".": _Tok.DOT, ":": _Tok.COLON, "-": _Tok.DASH}
_DIGITS = frozenset("0123456789")


def _lex(text: str) -> List[_Token]:
    tokens: List[_Token] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        start = i
        if ch in _DIGITS:
            while i < n and text[i] in _DIGITS:
                i += 1
            tokens.append(_Token(_Tok.INT, text[start:i], start))
        elif ch.isalpha():
            while i < n and text[i].isalpha():
                i += 1
            word = text[start:i]
            kind = _Tok.SUB if len(word) == 1 and word.islower() else _Tok.IDENT
            tokens.append(_Token(kind, word, start))
        elif ch in _PUNCT:
            tokens.append(_Token(_PUNCT[ch], ch, start))
            i += 1
        elif ch.isspace():
            while i < n and text[i].isspace():
                i += 1
            tokens.append(_Token(_Tok.SPACE, " ", start))
        else:
            raise RefParseError(
                f"unexpected character {ch!r} at position {i}",
                text=text,
                position=i,
            )
    tokens.append(_Token(_Tok.END, "", n))
    return tokens


# =============================================================================
# RECURSIVE-DESCENT PARSER
# =============================================================================


class _RefParser:
    """
    Grammar:

        ref      := book [ dotted | human ]
        book     := [INT] IDENT           (INT glued to an uppercase IDENT)
        dotted   := "." INT [ "." verse ]
        human    := " " INT [ ":" verse ]
        verse    := INT [SUB] [ "-" INT ]
    """

    def __init__(self, text: str):
        self.text = text
        self.tokens = _lex(text)
        self.index = 0

    @property
    def current(self) -> _Token:
        return self.tokens[self.index]

    def _advance(self) -> _Token:
        tok = self.tokens[self.index]
        self.index += 1
        return tok

    def _expect(self, kind: _Tok, what: str) -> _Token:
        tok = self.current
        if tok.kind != kind:
            found = tok.text or "end of input"
            raise RefParseError(
                f"expected {what} at position {tok.pos}, found {found!r}",
                text=self.text,
                position=tok.pos,
            )
        return self._advance()

    def parse(self) -> Ref:
        book = self._book()
        chapter = verse = verse_end = 0
        sub_verse = ""

        if self.current.kind == _Tok.DOT:
            self._advance()
            chapter = int(self._expect(_Tok.INT, "chapter number").text)
            if self.current.kind == _Tok.DOT:
                self._advance()
                verse, sub_verse, verse_end = self._verse()
        elif self.current.kind == _Tok.SPACE:
            self._advance()
            chapter = int(self._expect(_Tok.INT, "chapter number").text)
            if self.current.kind == _Tok.COLON:
                self._advance()
                verse, sub_verse, verse_end = self._verse()

        self._expect(_Tok.END, "end of reference")

        if verse_end and verse == 0:
            raise RefParseError(
                "a verse range cannot start at verse 0 (the whole chapter)",
                text=self.text,
            )
        if verse_end and verse_end < verse:
            raise RefParseError(
                f"range end {verse_end} is before start verse {verse}",
                text=self.text,
            )
        return Ref(book, chapter, verse, verse_end, sub_verse)

    def _book(self) -> str:
        prefix = ""
        if self.current.kind == _Tok.INT:
            prefix_tok = self._advance()
            ident = self.current
            if ident.kind != _Tok.IDENT or ident.pos != prefix_tok.pos + len(prefix_tok.text):
                raise RefParseError(
                    "numeric book prefix must be followed by a book name",
                    text=self.text,
                    position=ident.pos,
                )
            prefix = prefix_tok.text
        ident = self._expect(_Tok.IDENT, "book name")
        if not ident.text[0].isupper():
            raise RefParseError(
                f"book name {ident.text!r} must start with an uppercase letter",
                text=self.text,
                position=ident.pos,
            )
        return prefix + ident.text

    def _verse(self) -> Tuple[int, str, int]:
        number = self._expect(_Tok.INT, "verse number")
        verse = int(number.text)
        sub_verse = ""
        if self.current.kind == _Tok.SUB and self.current.pos == number.pos + len(number.text):
            sub_verse = self._advance().text
        verse_end = 0
        if self.current.kind == _Tok.DASH:
            self._advance()
            verse_end = int(self._expect(_Tok.INT, "range end").text)
        return verse, sub_verse, verse_end


def parse_ref(text: str) -> Ref:
    """
    Parse a dotted (Gen.1.1) or colon-style (Gen 1:1) reference.

    Raises:
        RefParseError: If the text is not a valid reference
    """
    if not isinstance(text, str) or not text.strip():
        raise RefParseError("reference cannot be empty", text=str(text))
    return _RefParser(text.strip()).parse()


def try_parse_ref(text: str) -> Optional[Ref]:
    """Parse a reference, returning None instead of raising."""
    try:
        return parse_ref(text)
    except RefParseError:
        return None


def parse_ref_range(text: str) -> RefRange:
    """
    Parse a cross-chapter range such as "Gen.1.5-Gen.2.5".

    Single references (including same-chapter ranges) produce a range whose
    start and end are the first and last verse of that reference.
    """
    head, sep, tail = text.strip().partition("-")
    tail_is_ref = any(c.isalpha() for c in tail)
    if sep and tail_is_ref:
        start = parse_ref(head)
        end = parse_ref(tail)
        if start.book != end.book:
            raise RefParseError("ranges must stay within one book", text=text)
        return RefRange(start=start, end=end)
    ref = parse_ref(text)
    last = ref.verse_end or ref.verse
    return RefRange(start=Ref(ref.book, ref.chapter, ref.verse), end=Ref(ref.book, ref.chapter, last))
