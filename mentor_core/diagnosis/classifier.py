"""
Deterministic Error Classifier.

Analyzes compiler diagnostics, runtime errors and test diffs of a single
execution and produces a Classification: a category describing the
mechanics of the failure, a 1-5 severity, key signals and a suggested
focus. The output is advisory signal for the feedback generator, never
user-facing text on its own.

Decision order (first match wins):
1. Timeout
2. Syntax (compiler diagnostics)
3. Runtime exception
4. Test diff analysis (off-by-one, output format, logic)

Independently, the source is scanned for static risk patterns, and the
severity is adjusted by the overall pass ratio.

The classifier is pure: no I/O, no clock, bounded work per call.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from config import get_settings
from mentor_core.core.execution import ExecutionResult, TestOutcome
from mentor_core.core.taxonomy import AttemptStatus, ErrorCategory
from mentor_core.diagnosis.patterns import (
    EXCEPTION_PATTERN,
    RUNTIME_PATTERNS,
    SYNTAX_PATTERNS,
    TIMEOUT_PATTERN,
    scan_code_risks,
)

DEFAULT_FOCUS = "Review your logic and test with sample inputs"

FOCUS = {
    "timeout": "Check for infinite loops or inefficient algorithms",
    "syntax": "Fix the syntax error before testing logic",
    "runtime": "Identify what input causes the crash and add proper checks",
    "off-by-one": "Check loop boundaries and array indices",
    "output-format": "Match the exact output format (spacing, newlines, case)",
    "logic-error": "Re-read the problem and trace through your algorithm",
    "edge-case": "Consider edge cases: empty input, single element, boundaries",
    "malformed": "Execution result could not be analyzed",
}

SEVERITY_LABELS = ["", "Minor", "Moderate", "Significant", "Major", "Critical"]

MAX_DIFF_SIGNALS = 5
MAX_CODE_SIGNALS = 3
LOGIC_SIMILARITY_THRESHOLD = 0.3

# parseFloat-style leading number
_NUMBER_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class TestAnalysis:
    """Aggregate view of the test outcomes."""

    __test__ = False

    total: int = 0
    passed: int = 0
    failed: int = 0
    hidden_failed: bool = False
    common_pattern: str | None = None

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "hidden_failed": self.hidden_failed,
            "common_pattern": self.common_pattern,
        }


@dataclass
class Classification:
    """
    Result of classifying one execution.

    Attributes:
        category: Failure mechanics category
        severity: 1 (minor) to 5 (critical)
        key_signals: Deduplicated human-readable signals, in discovery order
        pattern_matches: Identifiers of the diagnostic patterns that matched
        suggested_focus: One-line hint on where to look
        test_analysis: Pass/fail counts and the dominant diff pattern
    """

    category: ErrorCategory
    severity: int
    key_signals: list[str] = field(default_factory=list)
    pattern_matches: list[str] = field(default_factory=list)
    suggested_focus: str = DEFAULT_FOCUS
    test_analysis: TestAnalysis = field(default_factory=TestAnalysis)

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "severity": self.severity,
            "key_signals": list(self.key_signals),
            "pattern_matches": list(self.pattern_matches),
            "suggested_focus": self.suggested_focus,
            "test_analysis": self.test_analysis.to_dict(),
        }


@dataclass
class DiffAnalysis:
    pattern: str | None
    signals: list[str]


def _parse_number(text: str) -> float | None:
    match = _NUMBER_PREFIX.match(text)
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def character_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the lower-cased character sets of ``a`` and ``b``."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    a_set = set(a.lower())
    b_set = set(b.lower())
    return len(a_set & b_set) / len(a_set | b_set)


def analyze_test_diffs(tests: list[TestOutcome]) -> DiffAnalysis:
    """
    Find the dominant failure pattern over failing tests with output.

    A pattern is dominant when it applies to more than half of those
    tests; off-by-one is checked first, then output format, then logic.
    """
    signals: list[str] = []
    failing = [t for t in tests if not t.passed and t.actual is not None]
    if not failing:
        return DiffAnalysis(pattern=None, signals=signals)

    off_by_one = 0
    output_format = 0
    completely_wrong = 0

    for test in failing:
        if not test.expected or not test.actual:
            continue

        expected = str(test.expected).strip()
        actual = str(test.actual).strip()

        exp_num = _parse_number(expected)
        act_num = _parse_number(actual)
        if exp_num is not None and act_num is not None:
            diff = abs(exp_num - act_num)
            if diff == 1:
                off_by_one += 1
                signals.append(f"off-by-one: expected {expected}, got {actual}")
            elif diff <= 2:
                signals.append(f"close but wrong: expected {expected}, got {actual} (diff: {diff:g})")

        format_issue = False
        if expected != actual and expected.lower() == actual.lower():
            format_issue = True
            signals.append("case mismatch in output")
        if expected != actual and _WHITESPACE.sub("", expected) == _WHITESPACE.sub("", actual):
            format_issue = True
            signals.append("whitespace difference in output")
        if format_issue:
            output_format += 1

        exp_lines = expected.count("\n") + 1
        act_lines = actual.count("\n") + 1
        if exp_lines != act_lines:
            signals.append(f"line count mismatch: expected {exp_lines}, got {act_lines}")

        if expected and actual and character_similarity(expected, actual) < LOGIC_SIMILARITY_THRESHOLD:
            completely_wrong += 1

    half = len(failing) / 2
    pattern: str | None = None
    if off_by_one > half:
        pattern = "off-by-one"
    elif output_format > half:
        pattern = "output-format"
    elif completely_wrong > half:
        pattern = "logic-error"

    return DiffAnalysis(pattern=pattern, signals=signals)


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


class Classifier:
    """
    Rule-based classifier for a single execution result.

    Usage:
        classifier = Classifier()
        classification = classifier.classify(result)
        print(summarize(classification))
    """

    def __init__(self, max_scan_chars: int | None = None, max_tests: int | None = None):
        settings = get_settings()
        self.max_scan_chars = max_scan_chars or settings.classifier_max_scan_chars
        self.max_tests = max_tests or settings.classifier_max_tests

    def classify(self, result: Any) -> Classification:
        """Classify ``result``. Never raises on malformed input."""
        if isinstance(result, dict):
            result = ExecutionResult.from_dict(result)
        if not isinstance(result, ExecutionResult):
            logger.warning(f"Cannot classify {type(result).__name__}; expected ExecutionResult")
            return self._malformed("input is not an execution result")
        status = result.parsed_status
        if status is None:
            logger.warning(f"Unknown execution status {result.status!r}; classifying as OTHER")
            return self._malformed(f"unknown status {result.status}")

        tests = result.tests
        well_formed = tests is not None and all(isinstance(t, TestOutcome) for t in tests)
        if not well_formed:
            # Only a completed run needs its test list to be diagnosed
            if status in (AttemptStatus.PASS, AttemptStatus.FAIL):
                logger.warning("Execution result has no usable test list; classifying as OTHER")
                return self._malformed("missing or malformed test results")
            tests = [t for t in tests or [] if isinstance(t, TestOutcome)]

        return self._classify(result, status, tests)

    def _malformed(self, signal: str) -> Classification:
        return Classification(
            category=ErrorCategory.OTHER,
            severity=3,
            key_signals=[signal],
            suggested_focus=FOCUS["malformed"],
        )

    def _truncate(self, text: str | None) -> str:
        if not text:
            return ""
        return text[: self.max_scan_chars]

    def _classify(
        self, result: ExecutionResult, status: AttemptStatus, tests: list[TestOutcome] | None
    ) -> Classification:
        tests = list(tests or [])
        if len(tests) > self.max_tests:
            logger.debug(f"Analyzing first {self.max_tests} of {len(tests)} test outcomes")
            tests = tests[: self.max_tests]
        code = self._truncate(result.code)
        compile_error = self._truncate(result.compile_error)
        error_text = self._truncate(result.error_text)

        key_signals: list[str] = []
        pattern_matches: list[str] = []
        category = ErrorCategory.OTHER
        severity = 3
        focus = DEFAULT_FOCUS

        total = len(tests)
        passed = sum(1 for t in tests if t.passed)
        failed = total - passed
        hidden_failed = any(not t.passed and t.hidden for t in tests)
        diff: DiffAnalysis | None = analyze_test_diffs(tests) if failed else None

        # A clean run carries no failure to diagnose
        clean_run = status is AttemptStatus.PASS and failed == 0

        if clean_run:
            logger.debug("Clean run, skipping failure diagnosis")

        # 1. Timeout
        elif status is AttemptStatus.TIMEOUT or TIMEOUT_PATTERN.search(error_text):
            category = ErrorCategory.TIMEOUT
            severity = 4
            key_signals.append("execution exceeded time limit")
            pattern_matches.append("timeout-detected")
            focus = FOCUS["timeout"]

        # 2. Syntax
        elif (
            status is AttemptStatus.COMPILE_ERROR
            or compile_error
            or any(p.search(error_text) for p in SYNTAX_PATTERNS)
        ):
            category = ErrorCategory.SYNTAX
            severity = 2
            for p in SYNTAX_PATTERNS:
                if p.search(error_text):
                    key_signals.append(p.signal)
                    pattern_matches.append(p.pattern_id)
            if not key_signals:
                key_signals.append("compilation failed")
            focus = FOCUS["syntax"]

        # 3. Runtime
        elif (
            status in (AttemptStatus.RUNTIME_ERROR, AttemptStatus.MEMORY_EXCEEDED)
            or EXCEPTION_PATTERN.search(error_text)
        ):
            matched = next((p for p in RUNTIME_PATTERNS if p.search(error_text)), None)
            if matched is not None and matched.category is not None:
                category = matched.category
                key_signals.append(matched.signal)
                pattern_matches.append(matched.pattern_id)
            elif status is AttemptStatus.MEMORY_EXCEEDED:
                category = ErrorCategory.LOGIC
                key_signals.append("memory limit exceeded")
            else:
                category = ErrorCategory.RUNTIME_ERROR
                key_signals.append("runtime exception occurred")
            severity = 3
            focus = FOCUS["runtime"]

        # 4. Test diffs
        elif failed > 0 and diff is not None:
            key_signals.extend(diff.signals[:MAX_DIFF_SIGNALS])

            if diff.pattern == "off-by-one":
                category = ErrorCategory.OFF_BY_ONE
                severity = 2
                focus = FOCUS["off-by-one"]
            elif diff.pattern == "output-format":
                category = ErrorCategory.OUTPUT_FORMAT
                severity = 1
                focus = FOCUS["output-format"]
            elif diff.pattern == "logic-error":
                category = ErrorCategory.LOGIC
                severity = 4
                focus = FOCUS["logic-error"]
            else:
                category = ErrorCategory.LOGIC
                severity = 3

            if hidden_failed and passed > 0:
                key_signals.append("fails on hidden edge case tests")
                category = ErrorCategory.EDGE_CASE
                focus = FOCUS["edge-case"]

        # 5. Static risk scan
        key_signals.extend(scan_code_risks(code)[:MAX_CODE_SIGNALS])

        if total > 0:
            pass_ratio = passed / total
            if pass_ratio >= 0.8:
                severity = max(1, severity - 1)
            elif pass_ratio == 0:
                severity = min(5, severity + 1)

        classification = Classification(
            category=category,
            severity=severity,
            key_signals=_dedupe(key_signals),
            pattern_matches=_dedupe(pattern_matches),
            suggested_focus=focus,
            test_analysis=TestAnalysis(
                total=total,
                passed=passed,
                failed=failed,
                hidden_failed=hidden_failed,
                common_pattern=diff.pattern if diff else None,
            ),
        )
        logger.debug(
            f"Classified {status.value} as {category.value} (severity {severity}, "
            f"{passed}/{total} tests passed)"
        )
        return classification


_default_classifier: Classifier | None = None


def classify(result: Any) -> Classification:
    """Classify with a lazily created default Classifier."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = Classifier()
    return _default_classifier.classify(result)


def summarize(classification: Classification) -> str:
    """Human-readable summary: label, severity, tests passed and top signals."""
    analysis = classification.test_analysis
    summary = f"{classification.category.label} ({SEVERITY_LABELS[classification.severity]})"

    if analysis.total > 0:
        summary += f"\nTests: {analysis.passed}/{analysis.total} passed"

    if classification.key_signals:
        summary += f"\nSignals: {', '.join(classification.key_signals[:3])}"

    return summary
