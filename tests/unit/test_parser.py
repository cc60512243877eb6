#
# tests/unit/test_parser.py
#
"""
Tests for decoding PHPUnit's TeamCity output.
"""

import pytest

from phpunit_runner.paths import PathReplacer
from phpunit_runner.protocol import (
    START_EVENTS,
    TERMINAL_EVENTS,
    ConfigurationReported,
    DurationReported,
    FailureDetail,
    OutputLine,
    ProtocolParser,
    RunFinished,
    RunStarted,
    RuntimeReported,
    SuiteFinished,
    SuiteStarted,
    SummaryReported,
    TestFailed,
    TestFinished,
    TestIgnored,
    TestStarted,
    VersionReported,
    parse_service_message,
    unescape,
)


@pytest.fixture
def parser() -> ProtocolParser:
    return ProtocolParser(path_replacer=PathReplacer.from_mapping({"/home/dev/project": "/app"}))


def parse_all(parser: ProtocolParser, text: str) -> list:
    return parser.feed(text) + parser.finish()


class TestServiceMessages:
    def test_unescape(self) -> None:
        assert unescape("a|nb|r|'c|'|[d|]||e") == "a\nb\r'c'[d]|e"

    def test_unescape_unicode(self) -> None:
        assert unescape("|0x00e9t|0x00e9") == "été"

    def test_parse_attributes(self) -> None:
        parsed = parse_service_message("##teamcity[testStarted name='it|'s' flowId='7']")
        assert parsed == ("", "testStarted", {"name": "it's", "flowId": "7"})

    def test_message_after_leading_text(self) -> None:
        parsed = parse_service_message("hello##teamcity[testCount count='1']")
        assert parsed == ("hello", "testCount", {"count": "1"})

    def test_plain_text_is_not_a_message(self) -> None:
        assert parse_service_message("Time: 00:00.049") is None


class TestProtocolParser:
    def test_full_run(self, parser: ProtocolParser, phpunit_output: bytes) -> None:
        events = parse_all(parser, phpunit_output.decode())

        assert events[0] == VersionReported(
            version="10.5.20", text="PHPUnit 10.5.20 by Sebastian Bergmann and contributors."
        )
        assert RuntimeReported(runtime="PHP 8.3.4", text="Runtime:       PHP 8.3.4") in events
        assert ConfigurationReported(
            file="/home/dev/project/phpunit.xml", text="Configuration: /app/phpunit.xml"
        ) in events
        assert RunStarted(test_count=3, flow_id="1234") in events
        assert isinstance(events[-1], RunFinished)

        started = [e for e in events if isinstance(e, TestStarted)]
        assert [e.id for e in started] == [
            "Tests\\Unit\\ExampleTest::test_passed",
            "Tests\\Unit\\ExampleTest::test_failed",
            "Tests\\Unit\\ExampleTest::test_skipped",
        ]
        assert started[0].file == "/home/dev/project/tests/Unit/ExampleTest.php"

    def test_terminal_events_match_start_events(self, parser: ProtocolParser, phpunit_output: bytes) -> None:
        events = parse_all(parser, phpunit_output.decode())
        starts = [e for e in events if isinstance(e, START_EVENTS)]
        terminals = [e for e in events if isinstance(e, TERMINAL_EVENTS)]
        assert len(starts) == len(terminals) == 4

    def test_test_outcomes(self, parser: ProtocolParser, phpunit_output: bytes) -> None:
        events = parse_all(parser, phpunit_output.decode())

        finished = next(e for e in events if isinstance(e, TestFinished))
        assert finished.name == "test_passed"
        assert finished.duration == 3

        failed = next(e for e in events if isinstance(e, TestFailed))
        assert failed.id == "Tests\\Unit\\ExampleTest::test_failed"
        assert failed.message == "Failed asserting that false is true."
        assert failed.duration == 5
        assert failed.details == (
            FailureDetail(file="/home/dev/project/tests/Unit/ExampleTest.php", line=22),
            FailureDetail(file="/home/dev/project/vendor/phpunit/phpunit/phpunit", line=60),
        )

        ignored = next(e for e in events if isinstance(e, TestIgnored))
        assert ignored.message == "The MySQLi extension is not available."

    def test_suite_events(self, parser: ProtocolParser, phpunit_output: bytes) -> None:
        events = parse_all(parser, phpunit_output.decode())
        suite = next(e for e in events if isinstance(e, SuiteStarted))
        assert suite.id == "Tests\\Unit\\ExampleTest"
        assert suite.location_hint == "php_qn:///home/dev/project/tests/Unit/ExampleTest.php::\\Tests\\Unit\\ExampleTest"
        finished = next(e for e in events if isinstance(e, SuiteFinished))
        assert finished.id == suite.id

    def test_summary_and_duration(self, parser: ProtocolParser, phpunit_output: bytes) -> None:
        events = parse_all(parser, phpunit_output.decode())

        duration = next(e for e in events if isinstance(e, DurationReported))
        assert duration.time == "00:00.049"
        assert duration.memory == "6.00 MB"

        summary = next(e for e in events if isinstance(e, SummaryReported))
        assert summary.success is False
        assert summary.counts == {"tests": 3, "assertions": 2, "failures": 1, "skipped": 1}

    def test_ok_summary(self, parser: ProtocolParser) -> None:
        events = parser.parse_line("OK (1 test, 1 assertion)")
        assert events == [
            SummaryReported(counts={"tests": 1, "assertions": 1}, text="OK (1 test, 1 assertion)", success=True)
        ]

    def test_chunk_boundaries_do_not_matter(self, phpunit_output: bytes) -> None:
        text = phpunit_output.decode()
        whole = ProtocolParser(clock=lambda: 0.0)
        chunked = ProtocolParser(clock=lambda: 0.0)

        expected = parse_all(whole, text)
        events = []
        for i in range(0, len(text), 7):
            events.extend(chunked.feed(text[i : i + 7]))
        events.extend(chunked.finish())

        assert events == expected

    def test_partial_line_is_held_until_finish(self, parser: ProtocolParser) -> None:
        assert parser.feed("##teamcity[testCount count='2'") == []
        assert parser.feed("]") == []
        assert parser.finish() == [RunStarted(test_count=2), RunFinished()]

    def test_finish_is_idempotent(self, parser: ProtocolParser) -> None:
        assert parser.finish() == [RunFinished()]
        assert parser.finish() == []

    def test_crlf_line_endings(self, parser: ProtocolParser) -> None:
        events = parser.feed("##teamcity[testCount count='1' flowId='1']\r\n")
        assert events == [RunStarted(test_count=1, flow_id="1")]

    def test_composer_vfs_location_hint(self, parser: ProtocolParser) -> None:
        line = (
            "##teamcity[testStarted name='test_x' "
            "locationHint='php_qn://phpvfscomposer:///app/vendor/phpunit/phpunit::\\Foo' flowId='1']"
        )
        [event] = parser.parse_line(line)
        assert event.file == "/home/dev/project/vendor/phpunit/phpunit"
        assert "phpvfscomposer://" not in event.location_hint
        assert event.id == "Foo"

    def test_windows_location_hint(self) -> None:
        parser = ProtocolParser(path_replacer=PathReplacer.from_mapping({"C:\\proj": "/app"}))
        [event] = parser.parse_line(
            "##teamcity[testStarted name='test_x' locationHint='php_qn:///app/tests/T.php::\\T::test_x']"
        )
        assert event.file == "C:\\proj\\tests\\T.php"
        assert event.location_hint == "php_qn://C:\\proj\\tests\\T.php::\\T::test_x"

    def test_missing_location_hint_uses_name(self, parser: ProtocolParser) -> None:
        [event] = parser.parse_line("##teamcity[testStarted name='test_x']")
        assert event.id == "test_x"
        assert event.file is None

    def test_orphan_failure_is_still_reported(self, parser: ProtocolParser) -> None:
        [event] = parser.parse_line("##teamcity[testFailed name='test_x' message='boom' flowId='1']")
        assert event.id == "test_x"
        assert event.message == "boom"
        # The trailing testFinished belongs to the orphan and is not reported twice.
        assert parser.parse_line("##teamcity[testFinished name='test_x' flowId='1']") == []

    def test_orphan_finish_is_reported(self, parser: ProtocolParser) -> None:
        [event] = parser.parse_line("##teamcity[testFinished name='test_x' duration='2']")
        assert event == TestFinished(id="test_x", name="test_x", duration=2)

    def test_parallel_flows_are_correlated_separately(self, parser: ProtocolParser) -> None:
        hint = "php_qn:///app/tests/T.php::\\T::test_x"
        parser.parse_line(f"##teamcity[testStarted name='test_x' locationHint='{hint}' flowId='1']")
        parser.parse_line(f"##teamcity[testStarted name='test_x' locationHint='{hint}' flowId='2']")
        [failed] = parser.parse_line("##teamcity[testFailed name='test_x' message='m' flowId='2']")
        [passed] = parser.parse_line("##teamcity[testFinished name='test_x' flowId='1']")

        assert failed.flow_id == "2"
        assert passed.flow_id == "1"
        assert passed.id == failed.id == "T::test_x"
        assert parser.parse_line("##teamcity[testFinished name='test_x' flowId='2']") == []

    def test_elapsed_duration_without_attribute(self) -> None:
        ticks = iter([10.0, 10.25])
        parser = ProtocolParser(clock=lambda: next(ticks))
        parser.parse_line("##teamcity[testStarted name='test_x']")
        [event] = parser.parse_line("##teamcity[testFinished name='test_x']")
        assert event.duration == 250

    def test_details_without_line_number(self, parser: ProtocolParser) -> None:
        [event] = parser.parse_line("##teamcity[testFailed name='t' message='m' details='C:\\x\\T.php']")
        assert event.details == (FailureDetail(file="C:\\x\\T.php", line=0),)

    def test_comparison_failure(self, parser: ProtocolParser) -> None:
        [event] = parser.parse_line(
            "##teamcity[testFailed type='comparisonFailure' name='t' message='m' actual='1' expected='2']"
        )
        assert (event.actual, event.expected) == ("1", "2")

    def test_noise_becomes_output(self, parser: ProtocolParser) -> None:
        assert parser.parse_line("Some debug echo") == [OutputLine("Some debug echo")]
        assert parser.parse_line("   ") == []

    def test_text_before_message_is_kept(self, parser: ProtocolParser) -> None:
        events = parser.parse_line("dumped##teamcity[testStarted name='t']")
        assert events[0] == OutputLine("dumped")
        assert isinstance(events[1], TestStarted)

    def test_unknown_and_malformed_messages_are_ignored(self, parser: ProtocolParser) -> None:
        assert parser.parse_line("##teamcity[flowStarted flowId='1']") == []
        assert parser.parse_line("##teamcity[testCount]") == []
        assert parser.parse_line("##teamcity[testCount count='many']") == []

    def test_non_finite_duration_falls_back_to_elapsed(self) -> None:
        ticks = iter([5.0, 5.5])
        parser = ProtocolParser(clock=lambda: next(ticks))
        parser.parse_line("##teamcity[testStarted name='test_x']")
        [event] = parser.parse_line("##teamcity[testFinished name='test_x' duration='inf']")
        assert event.duration == 500

    def test_huge_line_number_in_details(self, parser: ProtocolParser) -> None:
        [event] = parser.parse_line("##teamcity[testFailed name='t' message='m' details=' /app/T.php:1e999|n ']")
        assert event.details == (FailureDetail(file="/home/dev/project/T.php", line=0),)
