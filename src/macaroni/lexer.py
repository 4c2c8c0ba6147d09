"""Tokenization of Macaroni source text into words, numerals and strings."""

from __future__ import annotations

from dataclasses import dataclass
from string import ascii_letters, digits

from .errors import MacaroniSyntaxError


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int
    end: int


_WORD_CHARS = frozenset(ascii_letters + digits + "_-")
_NUMERAL_CHARS = frozenset(digits + "-")
_WHITESPACE = frozenset(" \n\t\r")
_QUOTE = '"'

# Structural characters open a one-character word that continues with a name:
# `/loop` declares label `loop`, `\loop` jumps to it.
_MARKS = {
    "/": "LABEL",
    "\\": "JUMP",
}


def _scan_word(source: str, start: int) -> int:
    i = start
    while i < len(source) and source[i] in _WORD_CHARS:
        i += 1
    return i


def _check_word_boundary(source: str, start: int, end: int) -> None:
    # A quote or structural mark may only begin a fresh word.
    if end < len(source) and (source[end] == _QUOTE or source[end] in _MARKS):
        raise MacaroniSyntaxError(
            f"unexpected token {source[start:end + 1]!r}",
            start,
            end + 1,
            found=source[end],
        )


def _scan_string(source: str, start: int) -> tuple[str, int]:
    assert source[start] == _QUOTE
    close = source.find(_QUOTE, start + 1)
    if close < 0:
        raise MacaroniSyntaxError(
            "unterminated string literal",
            start,
            len(source),
            found=source[start:],
        )
    return source[start + 1 : close], close + 1


def _parse_numeral(text: str, start: int, end: int) -> float:
    try:
        return float(text)
    except ValueError as exc:
        raise MacaroniSyntaxError("malformed numeral", start, end, found=text) from exc


def _classify_word(text: str, start: int, end: int) -> Token:
    if all(ch in _NUMERAL_CHARS for ch in text):
        value = _parse_numeral(text, start, end)
        return Token("NUMBER", repr(value), start, end)
    return Token("WORD", text, start, end)


def tokenize(source: str) -> list[Token]:
    tokens: list[Token] = []
    i = 0

    while i < len(source):
        ch = source[i]

        if ch in _WHITESPACE:
            i += 1
            continue

        if ch == _QUOTE:
            text, end = _scan_string(source, i)
            tokens.append(Token("STRING", text, i, end))
            i = end
            continue

        if ch in _WORD_CHARS:
            end = _scan_word(source, i)
            _check_word_boundary(source, i, end)
            tokens.append(_classify_word(source[i:end], i, end))
            i = end
            continue

        if ch in _MARKS:
            end = _scan_word(source, i + 1)
            if end == i + 1:
                raise MacaroniSyntaxError(f"expected a name after {ch!r}", i, end, found=ch)
            _check_word_boundary(source, i, end)
            tokens.append(Token(_MARKS[ch], source[i + 1 : end], i, end))
            i = end
            continue

        raise MacaroniSyntaxError("unrecognized character", i, i + 1, found=ch)

    tokens.append(Token("EOF", "", len(source), len(source)))
    return tokens
