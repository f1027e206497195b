"""
Pattern tables used by the deterministic classifier.

Each table is a tuple of compiled regexes with the signal text reported
when the pattern matches. Runtime patterns also carry the category the
exception maps to; the first match wins, so order matters.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from mentor_core.core.taxonomy import ErrorCategory


@dataclass(frozen=True)
class SignalPattern:
    pattern: re.Pattern[str]
    signal: str
    category: ErrorCategory | None = None

    @property
    def pattern_id(self) -> str:
        """Short stable identifier reported in ``pattern_matches``."""
        return self.pattern.pattern[:30]

    def search(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _p(regex: str, signal: str, category: ErrorCategory | None = None) -> SignalPattern:
    return SignalPattern(re.compile(regex, re.IGNORECASE), signal, category)


TIMEOUT_PATTERN = re.compile(r"timeout|time.?limit", re.IGNORECASE)
EXCEPTION_PATTERN = re.compile(r"Exception|Error", re.IGNORECASE)

# Compiler diagnostics (javac wording)
SYNTAX_PATTERNS: tuple[SignalPattern, ...] = (
    _p(r"';' expected", "missing semicolon"),
    _p(r"illegal start of expression", "expression syntax error"),
    _p(r"reached end of file while parsing", "unclosed bracket/brace"),
    _p(r"unclosed string literal", "unclosed string"),
    _p(r"\) expected", "missing closing parenthesis"),
    _p(r"\} expected", "missing closing brace"),
    _p(r"class, interface, or enum expected", "structure declaration error"),
    _p(r"missing return statement", "missing return statement"),
    _p(r"<identifier> expected", "missing identifier"),
    _p(r"not a statement", "invalid statement"),
    _p(r"incompatible types", "type mismatch"),
    _p(r"cannot find symbol", "undefined variable/method"),
    _p(r"variable .* might not have been initialized", "uninitialized variable"),
)

RUNTIME_PATTERNS: tuple[SignalPattern, ...] = (
    _p(r"ArrayIndexOutOfBoundsException", "array index out of bounds", ErrorCategory.EDGE_CASE),
    _p(r"StringIndexOutOfBoundsException", "string index out of bounds", ErrorCategory.EDGE_CASE),
    _p(r"NullPointerException", "null pointer access", ErrorCategory.NULL_HANDLING),
    _p(r"ArithmeticException.*divide by zero", "division by zero", ErrorCategory.EDGE_CASE),
    _p(r"NumberFormatException", "invalid number format", ErrorCategory.TYPE_ERROR),
    _p(r"StackOverflowError", "infinite recursion", ErrorCategory.LOGIC),
    _p(r"OutOfMemoryError", "memory exceeded", ErrorCategory.LOGIC),
    _p(r"InputMismatchException", "input parsing error", ErrorCategory.TYPE_ERROR),
    _p(r"ClassCastException", "invalid type cast", ErrorCategory.TYPE_ERROR),
)

# Static risk scan of submitted source
_LOOP_LENGTH_MINUS_ONE = re.compile(r"for\s*\([^;]*;\s*[^;]*<\s*\w+\.length\s*-\s*1", re.IGNORECASE)
_LOOP_LE_LENGTH = re.compile(r"for\s*\([^;]*;\s*[^;]*<=\s*\w+\.length", re.IGNORECASE)
_LOOP_FROM_ONE = re.compile(r"for\s*\(\s*int\s+\w+\s*=\s*1", re.IGNORECASE)
_LENGTH_ACCESS = re.compile(r"\.length\s*[=<>]", re.IGNORECASE)
_NULL_GUARD = re.compile(r"\w+\s*!=\s*null|null\s*!=\s*\w+", re.IGNORECASE)
_INT_MULTIPLY = re.compile(r"int\s+\w+\s*=\s*\w+\s*\*\s*\w+", re.IGNORECASE)
_LONG = re.compile(r"long", re.IGNORECASE)
_RETURN_LITERAL = re.compile(r"return\s+\d+\s*;", re.IGNORECASE)
_RETURN_TRIVIAL = re.compile(r"return\s+0\s*;|return\s+1\s*;|return\s+-1\s*;", re.IGNORECASE)
_EMPTY_GUARD = re.compile(r"\.length\s*==\s*0|\.isEmpty\(\)|\.length\s*<\s*1", re.IGNORECASE)


def scan_code_risks(code: str) -> list[str]:
    """Return static-risk signals found in ``code``, in a fixed order."""
    signals: list[str] = []

    if _LOOP_LENGTH_MINUS_ONE.search(code):
        signals.append("loop may stop one element early (< length - 1)")
    if _LOOP_LE_LENGTH.search(code):
        signals.append("loop may go past array bounds (<= length)")
    if _LOOP_FROM_ONE.search(code):
        signals.append("loop starts at 1, may miss first element")

    if _LENGTH_ACCESS.search(code) and not _NULL_GUARD.search(code):
        signals.append("accessing .length without null check")

    if _INT_MULTIPLY.search(code) and not _LONG.search(code):
        signals.append("multiplication may cause integer overflow")

    if _RETURN_LITERAL.search(code) and not _RETURN_TRIVIAL.search(code):
        signals.append("contains hardcoded return value")

    if not _EMPTY_GUARD.search(code):
        signals.append("may not handle empty input")

    return signals
