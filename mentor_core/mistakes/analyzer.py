"""
Behavioral Mistake Analyzer.

Re-derives a learner-behavior mistake type from an execution result.
Where the classifier describes *how* the program failed, the analyzer
describes *what kind of mistake the learner made* (a careless slip, a
misunderstanding of the task, a hardcoded answer, ...).

Also detects the dominant skill area of the submitted source.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from mentor_core.core.execution import ExecutionResult, TestOutcome
from mentor_core.core.taxonomy import AttemptStatus, MistakeType, SkillArea


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


ERROR_PATTERNS: dict[MistakeType, tuple[re.Pattern[str], ...]] = {
    MistakeType.TIMEOUT: _compile(
        r"time limit exceeded",
        r"execution timed out",
        r"infinite loop",
    ),
    MistakeType.MEMORY: _compile(
        r"StackOverflowError",
        r"OutOfMemoryError",
    ),
    MistakeType.SYNTAX: _compile(
        r"';' expected",
        r"illegal start of expression",
        r"reached end of file while parsing",
        r"unclosed string literal",
        r"\) expected",
        r"class, interface, or enum expected",
        r"missing return statement",
        r"<identifier> expected",
        r"not a statement",
    ),
    MistakeType.TYPE_ERROR: _compile(
        r"incompatible types",
        r"cannot be converted to",
        r"cannot find symbol",
        r"bad operand types",
        r"possible lossy conversion",
        r"method.*cannot be applied",
        r"no suitable method found",
    ),
    MistakeType.NULL_HANDLING: _compile(
        r"NullPointerException",
    ),
    MistakeType.EDGE_CASE: _compile(
        r"ArrayIndexOutOfBoundsException",
        r"StringIndexOutOfBoundsException",
        r"ArithmeticException",
        r"NumberFormatException",
    ),
}

# Case-sensitive on purpose: Java keywords and class names
SKILL_AREA_PATTERNS: dict[SkillArea, tuple[re.Pattern[str], ...]] = {
    SkillArea.LOOPS: tuple(map(re.compile, (r"for\s*\(", r"while\s*\(", r"do\s*\{"))),
    SkillArea.ARRAYS: tuple(map(re.compile, (r"\[\]", r"new\s+\w+\s*\[", r"\.length"))),
    SkillArea.STRINGS: tuple(map(re.compile, (r"String", r"\.charAt", r"\.substring", r"\.equals"))),
    SkillArea.CONDITIONALS: tuple(map(re.compile, (r"if\s*\(", r"else", r"switch\s*\(", r"\?.*:"))),
    SkillArea.METHODS: tuple(
        map(re.compile, (r"public\s+\w+\s+\w+\s*\(", r"private\s+\w+\s+\w+\s*\(", r"return\s"))
    ),
    SkillArea.CLASSES: tuple(map(re.compile, (r"class\s+\w+", r"new\s+\w+\s*\(", r"this\."))),
    SkillArea.RECURSION: (re.compile(r"(\w+)\s*\([^)]*\)\s*\{[^}]*\1\s*\("),),
    SkillArea.IO: tuple(map(re.compile, (r"Scanner", r"System\.(in|out)", r"BufferedReader"))),
}

_HARDCODED_RETURN = re.compile(r"return\s+(-?\d+|\"[^\"]*\")\s*;")
_TRIVIAL_RETURN = re.compile(r"return\s+(0|1|-1|\"\")\s*;")
_NUMBER_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_WHITESPACE = re.compile(r"\s+")

# Thresholds for the test-failure branch
THRESHOLDS = {
    "careless_length_delta": 2,  # chars
    "careless_numeric_delta": 1,
    "careless_relative_delta": 0.1,
    "hardcoding_fail_rate": 0.5,
    "misunderstanding_fail_rate": 0.7,
}

DESCRIPTIONS = {
    MistakeType.INCOMPLETE: "No meaningful code submitted",
    MistakeType.TIMEOUT: "Code exceeded time limit - possible infinite loop or inefficient algorithm",
    MistakeType.MEMORY: "Memory limit exceeded - possible infinite recursion or memory leak",
    MistakeType.SYNTAX: "Syntax error - code could not be compiled",
    MistakeType.TYPE_ERROR: "Type mismatch or incompatible types",
    MistakeType.NULL_HANDLING: "Null value dereferenced - missing null/empty check",
    MistakeType.EDGE_CASE: "Runtime error - likely missed edge case handling",
    MistakeType.OUTPUT_FORMAT: "Correct values but output format differs (case or whitespace)",
    MistakeType.CARELESS: "Close but not exact - small error like off-by-one or formatting",
    MistakeType.PARTIAL_SOLUTION: "Visible tests pass but hidden tests fail - solution is incomplete",
    MistakeType.HARDCODING: "Returns hardcoded values instead of computing the answer",
    MistakeType.MISUNDERSTANDING: "Most tests failed - likely misunderstood the problem requirements",
    MistakeType.LOGIC: "Logic error - algorithm produces incorrect results",
}


@dataclass
class MistakeAnalysis:
    """Behavioral mistake derived from one failed attempt."""

    mistake_type: MistakeType
    severity: int  # 1-5
    description: str
    skill_area: SkillArea | None = None


def _parse_number(text: str) -> float | None:
    match = _NUMBER_PREFIX.match(text)
    return float(match.group(0)) if match else None


def _matches(mistake_type: MistakeType, text: str) -> bool:
    return any(p.search(text) for p in ERROR_PATTERNS[mistake_type])


def _is_format_only(test: TestOutcome) -> bool:
    if test.actual is None:
        return False
    expected = test.expected.strip()
    actual = test.actual.strip()
    if expected == actual:
        return False
    return (
        expected.lower() == actual.lower()
        or _WHITESPACE.sub("", expected) == _WHITESPACE.sub("", actual)
    )


def _is_near_miss(test: TestOutcome) -> bool:
    if not test.actual or not test.expected:
        return False
    expected = test.expected.strip()
    actual = test.actual.strip()

    if abs(len(expected) - len(actual)) <= THRESHOLDS["careless_length_delta"]:
        return True

    exp_num = _parse_number(expected)
    act_num = _parse_number(actual)
    if exp_num is not None and act_num is not None:
        diff = abs(exp_num - act_num)
        if diff <= THRESHOLDS["careless_numeric_delta"]:
            return True
        if exp_num != 0 and diff / abs(exp_num) < THRESHOLDS["careless_relative_delta"]:
            return True

    return False


def _has_hardcoded_return(code: str) -> bool:
    return any(not _TRIVIAL_RETURN.match(m.group(0)) for m in _HARDCODED_RETURN.finditer(code))


def _analysis(mistake_type: MistakeType, severity: int) -> MistakeAnalysis:
    return MistakeAnalysis(mistake_type, severity, DESCRIPTIONS[mistake_type])


def analyze_mistake(result: ExecutionResult) -> MistakeAnalysis | None:
    """
    Derive the behavioral mistake type of a failed attempt.

    Returns None for a passing attempt. The skill area is filled in from
    the submitted source.
    """
    status = result.parsed_status
    tests = list(result.tests or [])
    failing = [t for t in tests if not t.passed]
    if status is AttemptStatus.PASS and not failing:
        return None

    analysis = _classify_behavior(result, status, tests, failing)
    analysis.skill_area = detect_skill_area(result.code)
    return analysis


def _classify_behavior(
    result: ExecutionResult,
    status: AttemptStatus | None,
    tests: list[TestOutcome],
    failing: list[TestOutcome],
) -> MistakeAnalysis:
    if not result.code or not result.code.strip():
        return _analysis(MistakeType.INCOMPLETE, 3)

    error_text = "\n".join(
        part
        for part in (result.compile_error, result.runtime_error, result.stderr, *(t.error for t in tests))
        if part
    )

    if status is AttemptStatus.TIMEOUT or _matches(MistakeType.TIMEOUT, error_text):
        return _analysis(MistakeType.TIMEOUT, 3)

    if status is AttemptStatus.MEMORY_EXCEEDED or _matches(MistakeType.MEMORY, error_text):
        return _analysis(MistakeType.MEMORY, 4)

    if status is AttemptStatus.COMPILE_ERROR or _matches(MistakeType.SYNTAX, error_text):
        # Type diagnostics are compile errors too; report the more specific type
        if _matches(MistakeType.TYPE_ERROR, error_text):
            return _analysis(MistakeType.TYPE_ERROR, 2)
        return _analysis(MistakeType.SYNTAX, 2)

    if _matches(MistakeType.TYPE_ERROR, error_text):
        return _analysis(MistakeType.TYPE_ERROR, 2)

    if _matches(MistakeType.NULL_HANDLING, error_text):
        return _analysis(MistakeType.NULL_HANDLING, 3)

    if status is AttemptStatus.RUNTIME_ERROR or _matches(MistakeType.EDGE_CASE, error_text):
        return _analysis(MistakeType.EDGE_CASE, 3)

    if failing:
        with_output = [t for t in failing if t.actual is not None]
        if with_output and all(_is_format_only(t) for t in with_output):
            return _analysis(MistakeType.OUTPUT_FORMAT, 1)

        if any(_is_near_miss(t) for t in failing):
            return _analysis(MistakeType.CARELESS, 1)

        passed = len(tests) - len(failing)
        if passed > 0 and all(t.hidden for t in failing):
            return _analysis(MistakeType.PARTIAL_SOLUTION, 2)

        fail_rate = len(failing) / len(tests)
        if fail_rate > THRESHOLDS["hardcoding_fail_rate"] and _has_hardcoded_return(result.code):
            return _analysis(MistakeType.HARDCODING, 3)

        if fail_rate > THRESHOLDS["misunderstanding_fail_rate"]:
            return _analysis(MistakeType.MISUNDERSTANDING, 4)

        return _analysis(MistakeType.LOGIC, 3)

    return MistakeAnalysis(MistakeType.LOGIC, 2, "Unknown error - likely logic issue")


def detect_skill_area(code: str) -> SkillArea | None:
    """
    Pick the skill area with the most matching patterns.

    Returns None when nothing matches or the top score is tied.
    """
    if not code:
        return None

    scores = {
        area: sum(1 for p in patterns if p.search(code))
        for area, patterns in SKILL_AREA_PATTERNS.items()
    }
    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    top_area, top_score = ranked[0]
    if top_score == 0:
        return None
    if len(ranked) > 1 and ranked[1][1] == top_score:
        return None
    return top_area
