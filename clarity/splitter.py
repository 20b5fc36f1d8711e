"""
Statement splitting for worksheet text.

A best-effort tokenizer, not a SQL parser: it only knows enough about quotes
and comments to find the separators that end statements.
"""

import re
from typing import List, NamedTuple

# Scanner modes
_NORMAL = 0
_SINGLE_QUOTE = 1
_DOUBLE_QUOTE = 2
_LINE_COMMENT = 3
_BLOCK_COMMENT = 4

BLOCK_START_KEYWORDS = frozenset({"BEGIN", "DECLARE"})
BLOCK_CONTINUATION_KEYWORDS = frozenset({
    "END", "EXCEPTION", "WHEN", "ELSE", "ELSIF", "LOOP", "THEN",
})

_LEADING_WORD = re.compile(r"^[\s(]*([A-Za-z_][A-Za-z0-9_$#]*)")


class _Fragment(NamedTuple):
    start: int  # offset of the first raw character
    end: int  # offset just past the separator (or end of text)
    text: str  # statement text with comments removed, trimmed


def _scan(text: str, separator: str) -> List[_Fragment]:
    """Cut text at every separator that is outside quotes and comments."""
    fragments: List[_Fragment] = []
    current: List[str] = []
    mode = _NORMAL
    keep_comment = False
    start = 0
    i = 0
    length = len(text)

    while i < length:
        char = text[i]
        nxt = text[i + 1] if i + 1 < length else ""

        if mode == _SINGLE_QUOTE or mode == _DOUBLE_QUOTE:
            quote = "'" if mode == _SINGLE_QUOTE else '"'
            current.append(char)
            if char == quote:
                if nxt == quote:
                    # Doubled quote is an escape
                    current.append(nxt)
                    i += 1
                else:
                    mode = _NORMAL
        elif mode == _LINE_COMMENT:
            if char == "\n":
                current.append(char)
                mode = _NORMAL
        elif mode == _BLOCK_COMMENT:
            if char == "*" and nxt == "/":
                current.append("*/" if keep_comment else " ")
                i += 1
                mode = _NORMAL
            elif keep_comment:
                current.append(char)
        elif char == "'":
            mode = _SINGLE_QUOTE
            current.append(char)
        elif char == '"':
            mode = _DOUBLE_QUOTE
            current.append(char)
        elif char == "-" and nxt == "-":
            mode = _LINE_COMMENT
            i += 1
        elif char == "/" and nxt == "*":
            mode = _BLOCK_COMMENT
            # Optimizer hints (/*+ ... */) change execution, keep them
            keep_comment = text[i + 2:i + 3] == "+"
            if keep_comment:
                current.append("/*")
            i += 1
        elif char == separator:
            fragments.append(_Fragment(start, i + 1, "".join(current).strip()))
            current = []
            start = i + 1
        else:
            current.append(char)

        i += 1

    if start < length:
        fragments.append(_Fragment(start, length, "".join(current).strip()))

    return fragments


def leading_keyword(statement: str) -> str:
    """Return the first word of a comment-free statement, upper-cased."""
    match = _LEADING_WORD.match(statement)
    return match.group(1).upper() if match else ""


def _is_block_fragment(statement: str) -> bool:
    keyword = leading_keyword(statement)
    return keyword in BLOCK_START_KEYWORDS or keyword in BLOCK_CONTINUATION_KEYWORDS


def normalize_block(text: str) -> str:
    """Trim a PL/SQL block and drop a trailing SQL*Plus '/' terminator line."""
    lines = text.strip().splitlines()
    while lines and lines[-1].strip() in ("", "/"):
        lines.pop()
    return "\n".join(lines).strip()


def split_statements(text: str, separator: str = ";") -> List[str]:
    """Split worksheet text into standalone statements.

    Each statement is trimmed, has its trailing separator removed and has
    comments stripped (optimizer hints excepted). Fragments that are only
    comments or whitespace produce nothing.

    When any fragment starts with BEGIN/DECLARE or with a keyword that only
    makes sense inside a block (END, EXCEPTION, WHEN, ...), the whole input is
    returned as a single statement, with its final ';' kept.
    """
    if len(separator) != 1:
        raise ValueError("separator must be a single character")

    statements = [f.text for f in _scan(text, separator) if f.text]
    if any(_is_block_fragment(statement) for statement in statements):
        block = normalize_block(text)
        return [block] if block else []
    return statements


def statement_at(text: str, offset: int, separator: str = ";") -> str:
    """Return the statement under a cursor offset.

    The offset belongs to a statement from its first raw character up to and
    including its separator. An offset between statements resolves to the
    nearest statement before it (or the first one).
    """
    statements = split_statements(text, separator)
    if len(statements) <= 1:
        return statements[0] if statements else ""

    fragments = [f for f in _scan(text, separator) if f.text]
    chosen = fragments[0]
    for fragment in fragments:
        if fragment.start <= offset <= fragment.end:
            return fragment.text
        if fragment.start <= offset:
            chosen = fragment
    return chosen.text
