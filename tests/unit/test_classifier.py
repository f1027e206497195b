"""
Unit tests for the deterministic error classifier.

The classifier is pure, so these tests need no database.
"""

import pytest

from mentor_core.core.execution import ExecutionResult
from mentor_core.core.taxonomy import AttemptStatus, ErrorCategory
from mentor_core.diagnosis import (
    Classifier,
    analyze_test_diffs,
    character_similarity,
    classify,
    summarize,
)
from mentor_core.diagnosis.patterns import scan_code_risks


@pytest.fixture
def classifier():
    return Classifier(max_scan_chars=20_000, max_tests=500)


class TestDecisionOrder:
    def test_timeout_status_without_tests(self, classifier, result_factory):
        result = result_factory(status=AttemptStatus.TIMEOUT)
        result.tests = None

        classification = classifier.classify(result)

        assert classification.category == ErrorCategory.TIMEOUT
        assert classification.severity == 4
        assert "execution exceeded time limit" in classification.key_signals
        assert classification.pattern_matches == ["timeout-detected"]

    def test_timeout_text_in_runtime_error(self, classifier, result_factory):
        result = result_factory(
            status=AttemptStatus.RUNTIME_ERROR,
            runtime_error="Time limit exceeded after 2000ms",
        )
        assert classifier.classify(result).category == ErrorCategory.TIMEOUT

    def test_compile_error_is_syntax(self, classifier, result_factory):
        result = result_factory(
            status=AttemptStatus.COMPILE_ERROR,
            compile_error="Main.java:3: error: ';' expected",
        )

        classification = classifier.classify(result)

        assert classification.category == ErrorCategory.SYNTAX
        assert classification.severity == 2
        assert classification.key_signals[0] == "missing semicolon"
        assert "';' expected" in classification.pattern_matches
        assert classification.suggested_focus.startswith("Fix the syntax error")

    def test_compile_error_without_known_pattern(self, classifier, result_factory):
        result = result_factory(status=AttemptStatus.COMPILE_ERROR, compile_error="javac crashed")
        classification = classifier.classify(result)

        assert classification.category == ErrorCategory.SYNTAX
        assert classification.key_signals[0] == "compilation failed"

    def test_null_pointer_maps_to_null_handling(self, classifier, result_factory):
        result = result_factory(
            status=AttemptStatus.RUNTIME_ERROR,
            runtime_error='Exception in thread "main" java.lang.NullPointerException',
        )

        classification = classifier.classify(result)

        assert classification.category == ErrorCategory.NULL_HANDLING
        assert classification.severity == 3
        assert "null pointer access" in classification.key_signals

    def test_index_out_of_bounds_is_edge_case(self, classifier, result_factory):
        result = result_factory(
            status=AttemptStatus.RUNTIME_ERROR,
            runtime_error="java.lang.ArrayIndexOutOfBoundsException: Index 5 out of bounds",
        )
        assert classifier.classify(result).category == ErrorCategory.EDGE_CASE

    def test_unknown_exception_is_runtime_error(self, classifier, result_factory):
        result = result_factory(
            status=AttemptStatus.RUNTIME_ERROR,
            runtime_error="java.lang.IllegalStateException: queue drained",
        )

        classification = classifier.classify(result)

        assert classification.category == ErrorCategory.RUNTIME_ERROR
        assert "runtime exception occurred" in classification.key_signals

    def test_memory_exceeded_without_pattern_is_logic(self, classifier, result_factory):
        result = result_factory(status=AttemptStatus.MEMORY_EXCEEDED)

        classification = classifier.classify(result)

        assert classification.category == ErrorCategory.LOGIC
        assert "memory limit exceeded" in classification.key_signals


class TestDiffAnalysis:
    def test_off_by_one_dominant(self, classifier, result_factory, outcome_factory):
        tests = [
            outcome_factory(0, "5", "4"),
            outcome_factory(1, "10", "9"),
            outcome_factory(2, "3", "3"),
        ]

        classification = classifier.classify(result_factory(tests=tests))

        assert classification.category == ErrorCategory.OFF_BY_ONE
        assert classification.severity == 2
        assert "off-by-one: expected 5, got 4" in classification.key_signals
        assert classification.test_analysis.common_pattern == "off-by-one"

    def test_output_format_with_zero_passes_raises_severity(
        self, classifier, result_factory, outcome_factory
    ):
        tests = [
            outcome_factory(0, "Hello World", "hello world"),
            outcome_factory(1, "A B", "a b"),
        ]

        classification = classifier.classify(result_factory(tests=tests))

        assert classification.category == ErrorCategory.OUTPUT_FORMAT
        assert classification.severity == 2
        assert "case mismatch in output" in classification.key_signals

    def test_completely_wrong_output_is_logic(self, classifier, result_factory, outcome_factory):
        classification = classifier.classify(
            result_factory(tests=[outcome_factory(0, "abc", "xyz")])
        )

        assert classification.category == ErrorCategory.LOGIC
        assert classification.severity == 5

    def test_high_pass_ratio_lowers_severity(self, classifier, result_factory, outcome_factory):
        tests = [outcome_factory(i, "ok", "ok") for i in range(4)]
        tests.append(outcome_factory(4, "abc", "xyz"))

        classification = classifier.classify(result_factory(tests=tests))

        assert classification.category == ErrorCategory.LOGIC
        assert classification.severity == 3

    def test_hidden_failure_overrides_to_edge_case(
        self, classifier, result_factory, outcome_factory
    ):
        tests = [
            outcome_factory(0, "1", "1"),
            outcome_factory(1, "7", "100", hidden=True),
        ]

        classification = classifier.classify(result_factory(tests=tests))

        assert classification.category == ErrorCategory.EDGE_CASE
        assert "fails on hidden edge case tests" in classification.key_signals
        assert classification.test_analysis.hidden_failed is True

    def test_pattern_needs_majority_of_failing_tests(self, outcome_factory):
        analysis = analyze_test_diffs([outcome_factory(0, "Hello", "hello"), outcome_factory(1, "x", "q")])

        assert analysis.pattern is None
        assert "case mismatch in output" in analysis.signals

    def test_line_count_mismatch_signal(self, outcome_factory):
        analysis = analyze_test_diffs([outcome_factory(0, "1\n2", "1")])
        assert "line count mismatch: expected 2, got 1" in analysis.signals

    def test_character_similarity(self):
        assert character_similarity("abc", "abc") == 1.0
        assert character_similarity("", "abc") == 0.0
        assert character_similarity("ab", "bc") == pytest.approx(1 / 3)


class TestCodeScan:
    def test_risky_loop_and_missing_empty_check(self):
        code = "for (int i = 1; i <= arr.length; i++) { sum += arr[i]; }"
        signals = scan_code_risks(code)

        assert signals == [
            "loop may go past array bounds (<= length)",
            "loop starts at 1, may miss first element",
            "may not handle empty input",
        ]

    def test_overflow_and_hardcoded_return(self):
        code = "int area = w * h; if (s.isEmpty()) return 0; return 42;"
        signals = scan_code_risks(code)

        assert "multiplication may cause integer overflow" in signals
        assert "contains hardcoded return value" not in signals  # return 0; is trivial

    def test_at_most_three_code_signals(self, classifier, result_factory, outcome_factory):
        code = (
            "for (int i = 1; i < a.length - 1; i++) {} "
            "for (int j = 0; j <= a.length; j++) {} "
            "int p = x * y; return 42;"
        )
        result = result_factory(tests=[outcome_factory(0, "abc", "xyz")], code=code)

        classification = classifier.classify(result)

        code_signals = [s for s in classification.key_signals if s in scan_code_risks(code)]
        assert len(code_signals) == 3


class TestMalformedInput:
    def test_missing_tests_on_completed_run(self, classifier, result_factory):
        result = result_factory(status=AttemptStatus.FAIL)
        result.tests = None

        classification = classifier.classify(result)

        assert classification.category == ErrorCategory.OTHER
        assert classification.severity == 3
        assert classification.key_signals == ["missing or malformed test results"]

    def test_non_result_input(self, classifier):
        classification = classifier.classify(["not", "a", "result"])
        assert classification.category == ErrorCategory.OTHER

    def test_unknown_status(self, classifier):
        classification = classifier.classify({"status": "EXPLODED", "tests": []})

        assert classification.category == ErrorCategory.OTHER
        assert classification.key_signals == ["unknown status EXPLODED"]

    def test_dict_payload_with_camel_case_keys(self, classifier):
        payload = {
            "status": "compile_error",
            "compileError": "Main.java:7: error: cannot find symbol",
            "testResults": [],
        }

        classification = classifier.classify(payload)

        assert classification.category == ErrorCategory.SYNTAX
        assert "undefined variable/method" in classification.key_signals

    def test_numeric_output_in_payload(self, classifier):
        payload = {
            "status": "FAIL",
            "tests": [{"expected": "10", "actual": 9, "passed": False, "error": 404}],
        }

        classification = classifier.classify(payload)

        assert classification.category == ErrorCategory.OFF_BY_ONE
        assert "off-by-one: expected 10, got 9" in classification.key_signals

    def test_non_numeric_index_uses_list_position(self, classifier):
        payload = {
            "status": "FAIL",
            "tests": [
                {"index": "a", "expected": "1", "actual": "1", "passed": True},
                {"index": "b", "expected": "x", "actual": "y", "passed": False},
            ],
        }

        result = ExecutionResult.from_dict(payload)
        classification = classifier.classify(payload)

        assert [t.index for t in result.tests] == [0, 1]
        assert classification.test_analysis.failed == 1

    def test_non_text_diagnostics_are_coerced(self):
        result = ExecutionResult.from_dict(
            {"status": "FAIL", "code": 42, "stderr": ["boom"], "duration_ms": float("nan"), "tests": []}
        )

        assert result.code == "42"
        assert result.stderr == "['boom']"
        assert result.duration_ms is None

    def test_clean_pass_has_no_failure_category(self, classifier, result_factory, outcome_factory):
        result = result_factory(
            status=AttemptStatus.PASS,
            tests=[outcome_factory(0, "1", "1"), outcome_factory(1, "2", "2")],
        )

        classification = classifier.classify(result)

        assert classification.category == ErrorCategory.OTHER
        assert classification.test_analysis.failed == 0


class TestBoundsAndDeterminism:
    def test_test_list_is_capped(self, result_factory, outcome_factory):
        classifier = Classifier(max_tests=2)
        tests = [outcome_factory(i, "1", "2") for i in range(10)]

        classification = classifier.classify(result_factory(tests=tests))

        assert classification.test_analysis.total == 2

    def test_same_input_same_output(self, classifier, result_factory, outcome_factory):
        result = result_factory(tests=[outcome_factory(0, "5", "4"), outcome_factory(1, "x", "y")])

        first = classifier.classify(result).to_dict()
        second = classifier.classify(result).to_dict()

        assert first == second

    def test_module_level_classify(self, result_factory):
        result = result_factory(status=AttemptStatus.COMPILE_ERROR, compile_error="not a statement")
        assert classify(result).category == ErrorCategory.SYNTAX

    def test_from_dict_keeps_unparseable_tests_out(self):
        result = ExecutionResult.from_dict({"status": "FAIL", "tests": [{"expected": "1"}, "junk"]})
        assert result.tests is not None
        assert len(result.tests) == 1


class TestSummarize:
    def test_summary_lines(self, classifier, result_factory, outcome_factory):
        tests = [outcome_factory(0, "5", "4"), outcome_factory(1, "10", "9"), outcome_factory(2, "3", "3")]
        summary = summarize(classifier.classify(result_factory(tests=tests)))

        lines = summary.split("\n")
        assert lines[0] == "Off-by-One Error (Moderate)"
        assert lines[1] == "Tests: 1/3 passed"
        assert lines[2].startswith("Signals: off-by-one: expected 5, got 4")
