#
# src/phpunit_runner/protocol/parser.py
#
"""
Incremental decoder for PHPUnit's `--teamcity` service-message stream.

The stream mixes free-form text (banner, warnings, `echo` output) with lines of
the form `##teamcity[testStarted name='x' locationHint='...' flowId='1']`. The
parser is fed raw chunks, assembles lines, and returns typed events in stream
order. Noise is never fatal: anything that does not decode becomes an
`OutputLine` or is dropped.
"""
import re
import time
from collections.abc import Callable

import structlog
from attrs import define, field, mutable

from phpunit_runner.paths import PathReplacer
from phpunit_runner.protocol.events import (
    ConfigurationReported,
    DurationReported,
    FailureDetail,
    OutputLine,
    ProcessesReported,
    RunFinished,
    RunStarted,
    RuntimeReported,
    SuiteFinished,
    SuiteStarted,
    SummaryReported,
    TestEvent,
    TestFailed,
    TestFinished,
    TestIgnored,
    TestStarted,
    VersionReported,
)

log = structlog.get_logger("protocol.parser")

SERVICE_MESSAGE = re.compile(r"##teamcity\[(?P<name>\w+)(?P<attrs>.*)\]\s*$")
ATTRIBUTE = re.compile(r"(?P<key>[\w.-]+)='(?P<value>(?:[^'|]|\|.)*)'")
ESCAPE = re.compile(r"\|(0x[0-9a-fA-F]{4}|.)")
ESCAPES = {"n": "\n", "r": "\r", "'": "'", "[": "[", "]": "]", "|": "|"}
LOCATION_SCHEME = re.compile(r"^\w+_qn://")

VERSION = re.compile(r"^(?:PHPUnit|Pest|ParaTest)\s+v?(?P<version>[\d.]+\S*)\b.*$")
RUNTIME = re.compile(r"^Runtime\s*:\s*(?P<runtime>.+)$")
CONFIGURATION = re.compile(r"^Configuration\s*:\s*(?P<file>.+)$")
PROCESSES = re.compile(r"^Processes\s*:\s*(?P<processes>\d+)")
DURATION = re.compile(r"^Time\s*:\s*(?P<time>[^,]+?)(?:,\s*Memory\s*:\s*(?P<memory>.+))?$")
SUMMARY_OK = re.compile(r"^OK\s+\((?P<body>.+)\)$")
SUMMARY_TALLY = re.compile(r"^(?:(?:OK|ERRORS|FAILURES)!?,?\s*(?:but\s+.*)?\s*)?Tests:\s*\d+.*$", re.IGNORECASE)
COUNT = re.compile(r"(?P<label>[A-Za-z][A-Za-z ]*?)\s*:\s*(?P<count>\d+)|(?P<count2>\d+)\s+(?P<label2>[A-Za-z]+)")
# Singular forms PHPUnit prints for a count of one ("1 test, 1 assertion").
COUNTABLE_NOUNS = frozenset({"test", "assertion", "error", "failure", "warning", "notice", "deprecation"})


def unescape(value: str) -> str:
    """Reverses TeamCity's pipe escaping (`|n`, `|'`, `|[`, `|]`, `||`, `|0xNNNN`)."""

    def _replace(match: re.Match[str]) -> str:
        token = match.group(1)
        if token.startswith("0x") and len(token) == 6:
            return chr(int(token[2:], 16))
        return ESCAPES.get(token, token)

    return ESCAPE.sub(_replace, value)


def parse_service_message(line: str) -> tuple[str, str, dict[str, str]] | None:
    """Returns (leading text, message name, unescaped attributes), or None if the line holds no message."""
    marker = line.find("##teamcity[")
    if marker < 0:
        return None
    match = SERVICE_MESSAGE.match(line, marker)
    if not match:
        return None
    attributes = {m.group("key"): unescape(m.group("value")) for m in ATTRIBUTE.finditer(match.group("attrs"))}
    return line[:marker], match.group("name"), attributes


def _to_int(value: str | None, default: int = 0) -> int:
    try:
        return int(float(value)) if value is not None else default
    except (ValueError, OverflowError):
        return default


def _plural(label: str) -> str:
    label = label.strip().lower()
    return f"{label}s" if label in COUNTABLE_NOUNS else label


@define(frozen=True, slots=True)
class _Location:
    id: str
    file: str | None
    hint: str | None


@mutable(slots=True)
class _OpenNode:
    """A started test or suite awaiting its terminal message."""
    id: str
    name: str
    file: str | None
    started_at: float
    terminated: bool = field(default=False)


@mutable(slots=True)
class ProtocolParser:
    """
    Stateful line sink for one runner process.

    `feed()` accepts arbitrary chunks and keeps a trailing partial line until the
    next call; `finish()` flushes it and closes the stream with `RunFinished`.
    """

    path_replacer: PathReplacer = field(factory=PathReplacer)
    clock: Callable[[], float] = field(default=time.monotonic)
    _buffer: str = field(default="", init=False)
    _open: dict[tuple[str | None, str], list[_OpenNode]] = field(factory=dict, init=False)
    _finished: bool = field(default=False, init=False)

    def feed(self, chunk: str) -> list[TestEvent]:
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        events: list[TestEvent] = []
        for line in lines:
            events.extend(self.parse_line(line))
        return events

    def finish(self) -> list[TestEvent]:
        if self._finished:
            return []
        self._finished = True
        events: list[TestEvent] = []
        if self._buffer:
            events.extend(self.parse_line(self._buffer))
            self._buffer = ""
        dangling = sum(len(nodes) for nodes in self._open.values())
        if dangling:
            log.debug("Stream closed with unfinished tests", count=dangling, emoji_key="parse")
        events.append(RunFinished())
        return events

    def parse_line(self, line: str) -> list[TestEvent]:
        """Decodes one complete line (without its newline)."""
        line = line.rstrip("\r")
        parsed = parse_service_message(line)
        if parsed is None:
            info = self._parse_text(line)
            return [info] if info is not None else []

        prefix, name, attributes = parsed
        events: list[TestEvent] = []
        if prefix.strip():
            events.append(OutputLine(prefix))
        handler = self._handlers().get(name)
        if handler is None:
            log.debug("Ignoring unknown service message", message=name)
            return events
        try:
            event = handler(attributes)
        except (KeyError, ValueError, ArithmeticError) as e:
            log.debug("Ignoring malformed service message", message=name, error=str(e))
            return events
        if event is not None:
            events.append(event)
        return events

    # --- service messages ---
    def _handlers(self) -> dict[str, Callable[[dict[str, str]], TestEvent | None]]:
        return {
            "testCount": self._on_test_count,
            "testSuiteStarted": self._on_suite_started,
            "testSuiteFinished": self._on_suite_finished,
            "testStarted": self._on_test_started,
            "testFinished": self._on_test_finished,
            "testFailed": self._on_test_failed,
            "testIgnored": self._on_test_ignored,
        }

    def _on_test_count(self, attributes: dict[str, str]) -> TestEvent:
        return RunStarted(test_count=int(attributes["count"]), flow_id=attributes.get("flowId"))

    def _on_suite_started(self, attributes: dict[str, str]) -> TestEvent:
        name = attributes["name"]
        location = self._parse_location(attributes.get("locationHint"), name)
        self._push(attributes.get("flowId"), name, location)
        return SuiteStarted(
            id=location.id,
            name=name,
            file=location.file,
            location_hint=location.hint,
            flow_id=attributes.get("flowId"),
        )

    def _on_suite_finished(self, attributes: dict[str, str]) -> TestEvent:
        name = attributes["name"]
        flow_id = attributes.get("flowId")
        node = self._pop(flow_id, name)
        if node is None:
            log.debug("Suite finished without start", name=name, flow_id=flow_id)
        return SuiteFinished(
            id=node.id if node else name,
            name=name,
            file=node.file if node else None,
            duration=self._duration(attributes, node),
            flow_id=flow_id,
        )

    def _on_test_started(self, attributes: dict[str, str]) -> TestEvent:
        name = attributes["name"]
        location = self._parse_location(attributes.get("locationHint"), name)
        self._push(attributes.get("flowId"), name, location)
        return TestStarted(
            id=location.id,
            name=name,
            file=location.file,
            location_hint=location.hint,
            flow_id=attributes.get("flowId"),
        )

    def _on_test_finished(self, attributes: dict[str, str]) -> TestEvent | None:
        name = attributes["name"]
        flow_id = attributes.get("flowId")
        node = self._pop(flow_id, name)
        if node is not None and node.terminated:
            # Already reported by testFailed / testIgnored.
            return None
        return TestFinished(
            id=node.id if node else name,
            name=name,
            file=node.file if node else None,
            duration=self._duration(attributes, node),
            flow_id=flow_id,
        )

    def _on_test_failed(self, attributes: dict[str, str]) -> TestEvent:
        name = attributes["name"]
        flow_id = attributes.get("flowId")
        node = self._terminate(flow_id, name)
        return TestFailed(
            id=node.id,
            name=name,
            message=attributes.get("message", ""),
            details=self._parse_details(attributes.get("details", "")),
            file=node.file,
            duration=self._duration(attributes, node),
            flow_id=flow_id,
            actual=attributes.get("actual"),
            expected=attributes.get("expected"),
        )

    def _on_test_ignored(self, attributes: dict[str, str]) -> TestEvent:
        name = attributes["name"]
        flow_id = attributes.get("flowId")
        node = self._terminate(flow_id, name)
        return TestIgnored(
            id=node.id,
            name=name,
            message=attributes.get("message", ""),
            file=node.file,
            duration=self._duration(attributes, node),
            flow_id=flow_id,
        )

    # --- correlation state ---
    def _push(self, flow_id: str | None, name: str, location: _Location) -> None:
        node = _OpenNode(id=location.id, name=name, file=location.file, started_at=self.clock())
        self._open.setdefault((flow_id, name), []).append(node)

    def _peek(self, flow_id: str | None, name: str) -> _OpenNode | None:
        nodes = self._open.get((flow_id, name))
        return nodes[-1] if nodes else None

    def _pop(self, flow_id: str | None, name: str) -> _OpenNode | None:
        nodes = self._open.get((flow_id, name))
        if not nodes:
            return None
        node = nodes.pop()
        if not nodes:
            del self._open[(flow_id, name)]
        return node

    def _terminate(self, flow_id: str | None, name: str) -> _OpenNode:
        """Marks the open node as reported, registering an orphan if there was no start."""
        node = self._peek(flow_id, name)
        if node is None:
            log.debug("Terminal message without start", name=name, flow_id=flow_id)
            node = _OpenNode(id=name, name=name, file=None, started_at=self.clock())
            self._open.setdefault((flow_id, name), []).append(node)
        node.terminated = True
        return node

    def _duration(self, attributes: dict[str, str], node: _OpenNode | None) -> int:
        if "duration" in attributes:
            try:
                return int(float(attributes["duration"]))
            except (ValueError, OverflowError):
                pass
        if node is None:
            return 0
        return max(0, int((self.clock() - node.started_at) * 1000))

    # --- field decoding ---
    def _parse_location(self, hint: str | None, name: str) -> _Location:
        """Splits `php_qn://<file>::\\<Class>::<method>` into a local file and a logical id."""
        if not hint:
            return _Location(id=name, file=None, hint=None)
        scheme_match = LOCATION_SCHEME.match(hint)
        scheme = scheme_match.group(0) if scheme_match else ""
        file, _, test_id = hint[len(scheme) :].partition("::")
        file = self.path_replacer.to_local(file)
        test_id = test_id.lstrip("\\") or name
        local_hint = f"{scheme}{file}::{test_id}" if scheme.startswith("pest") else f"{scheme}{file}::\\{test_id}"
        return _Location(id=test_id, file=file, hint=local_hint)

    def _parse_details(self, details: str) -> tuple[FailureDetail, ...]:
        frames = []
        for entry in details.split("\n"):
            entry = entry.strip()
            if not entry:
                continue
            file, sep, line = entry.rpartition(":")
            if not sep or "/" in line or "\\" in line:
                file, line = entry, ""
            frames.append(FailureDetail(file=self.path_replacer.to_local(file), line=_to_int(line)))
        return tuple(frames)

    # --- free text ---
    def _parse_text(self, line: str) -> TestEvent | None:
        text = line.strip()
        if not text:
            return None
        if match := VERSION.match(text):
            return VersionReported(version=match.group("version"), text=text)
        if match := RUNTIME.match(text):
            return RuntimeReported(runtime=match.group("runtime").strip(), text=text)
        if match := CONFIGURATION.match(text):
            file = self.path_replacer.to_local(match.group("file").strip())
            return ConfigurationReported(file=file, text=text)
        if match := PROCESSES.match(text):
            return ProcessesReported(processes=int(match.group("processes")), text=text)
        if match := DURATION.match(text):
            return DurationReported(time=match.group("time").strip(), memory=match.group("memory"), text=text)
        if match := SUMMARY_OK.match(text):
            return SummaryReported(counts=self._tally(match.group("body")), text=text, success=True)
        if SUMMARY_TALLY.match(text):
            return SummaryReported(counts=self._tally(text), text=text, success=text.upper().startswith("OK"))
        return OutputLine(line)

    @staticmethod
    def _tally(body: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for match in COUNT.finditer(body):
            if match.group("label"):
                label, count = match.group("label"), match.group("count")
            else:
                label, count = match.group("label2"), match.group("count2")
            label = label.split()[-1]
            counts[_plural(label)] = int(count)
        return counts


# 🔼⚙️
