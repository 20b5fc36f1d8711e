"""Keyword sniffing that decides whether a statement needs confirmation."""

import re
from typing import Iterable, List

from .models import PreflightAssessment
from .splitter import leading_keyword

MUTATING_KEYWORDS = frozenset({
    "INSERT", "UPDATE", "DELETE", "MERGE", "TRUNCATE", "DROP", "ALTER",
    "CREATE", "RENAME", "GRANT", "REVOKE", "COMMENT", "BEGIN", "DECLARE",
    "CALL", "EXECUTE",
})

SAFE_LEADING_KEYWORDS = frozenset({"SELECT", "WITH", "EXPLAIN", "DESCRIBE", "DESC"})

_LINE_COMMENT = re.compile(r"--[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?(\*/|$)")
_SINGLE_QUOTED = re.compile(r"'(?:[^']|'')*'?")
_DOUBLE_QUOTED = re.compile(r'"(?:[^"]|"")*"?')
_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_$#]*")
_MASKABLE = re.compile("|".join(p.pattern for p in (
    _SINGLE_QUOTED, _DOUBLE_QUOTED, _LINE_COMMENT, _BLOCK_COMMENT)))


def sanitize(statement: str) -> str:
    """Blank out everything a keyword could hide in.

    Literals and quoted identifiers collapse to empty placeholders, comments
    to a single space. One left-to-right pass, so comment markers inside a
    literal stay literal.
    """

    def replace(match: "re.Match[str]") -> str:
        token = match.group(0)
        if token.startswith("'"):
            return "''"
        if token.startswith('"'):
            return '""'
        return " "

    return _MASKABLE.sub(replace, statement)


def assess_statement(statement: str) -> PreflightAssessment:
    """Classify one statement as safe or in need of confirmation."""
    cleaned = sanitize(statement)
    reasons: List[str] = []
    for match in _WORD.finditer(cleaned):
        word = match.group(0).upper()
        if word in MUTATING_KEYWORDS and word not in reasons:
            reasons.append(word)

    if reasons:
        return PreflightAssessment(should_confirm=True, reasons=reasons)

    keyword = leading_keyword(cleaned.strip())
    if not keyword or keyword in SAFE_LEADING_KEYWORDS:
        return PreflightAssessment()

    # Unknown verbs are treated as unsafe
    return PreflightAssessment(should_confirm=True, reasons=[keyword])


def assess_batch(statements: Iterable[str]) -> PreflightAssessment:
    """Union the assessments of every statement in a batch."""
    reasons: List[str] = []
    should_confirm = False
    for statement in statements:
        assessment = assess_statement(statement)
        should_confirm = should_confirm or assessment.should_confirm
        for reason in assessment.reasons:
            if reason not in reasons:
                reasons.append(reason)
    return PreflightAssessment(should_confirm=should_confirm, reasons=reasons)
