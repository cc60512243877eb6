# src/phpunit_runner/runtime/tree.py
"""
Test tree contracts, test cases and run requests consumed by the orchestrator.
"""
import asyncio
import shlex
from collections.abc import Iterable, Sequence
from enum import Enum, auto
from typing import Protocol, runtime_checkable

import structlog
from attrs import define, field, mutable

from phpunit_runner.command import CommandBuilder

log = structlog.get_logger("runtime.tree")


class TestType(Enum):
    """Kind of node in the discovered PHPUnit test tree."""

    __test__ = False

    NAMESPACE = auto()
    CLASS = auto()
    METHOD = auto()


@define(frozen=True, slots=True)
class TestCase:
    """
    A runnable unit: a test method, or a class/namespace narrowed by file.

    `id` follows PHPUnit's naming, e.g. `App\\Tests\\UserTest::test_login`.
    """

    __test__ = False

    id: str
    type: TestType
    file: str | None = None
    name: str | None = None

    @property
    def is_leaf(self) -> bool:
        return self.type is TestType.METHOD

    @property
    def filter(self) -> str | None:
        """Pattern matching the method and all of its data-provider variants."""
        if self.type is not TestType.METHOD:
            return None
        method = self.name or self.id.rpartition("::")[2]
        return f"^.*::({method})( with data set .*)?$"

    def arguments(self) -> str:
        parts = []
        if self.file:
            parts.append(shlex.quote(self.file))
        if self.filter:
            parts.extend(["--filter", shlex.quote(self.filter)])
        return " ".join(parts)

    def update(self, builder: CommandBuilder) -> CommandBuilder:
        """Returns a builder narrowed to this case, keeping the builder's own arguments after it."""
        return builder.with_arguments(f"{self.arguments()} {builder.arguments}")


# --- Contracts of the external test tree ---
@runtime_checkable
class TestItemLike(Protocol):
    """A node of the host's test tree; only identity and children are required."""

    @property
    def id(self) -> str: ...

    @property
    def children(self) -> Iterable["TestItemLike"]: ...


@runtime_checkable
class TestTree(Protocol):
    """Read access to the host's test tree."""

    def items(self) -> Iterable[TestItemLike]: ...

    def get_test_case(self, item: TestItemLike) -> TestCase | None: ...


# --- In-memory implementation ---
@mutable(slots=True, eq=False)
class TestItem:
    __test__ = False

    id: str = field()
    label: str = field(default="")
    children: list["TestItem"] = field(factory=list)

    def add(self, child: "TestItem") -> "TestItem":
        self.children.append(child)
        return child


@mutable(slots=True)
class TestCollection:
    """A simple test tree keyed by item id."""

    __test__ = False

    roots: list[TestItem] = field(factory=list)
    _cases: dict[str, TestCase] = field(factory=dict, init=False)

    def add(self, case: TestCase, parent: TestItem | None = None, label: str | None = None) -> TestItem:
        item = TestItem(id=case.id, label=label or case.name or case.id)
        if parent is None:
            self.roots.append(item)
        else:
            parent.add(item)
        self._cases[item.id] = case
        log.debug("Test item added", id=case.id, type=case.type.name)
        return item

    def items(self) -> list[TestItem]:
        return list(self.roots)

    def get_test_case(self, item: TestItemLike) -> TestCase | None:
        return self._cases.get(item.id)

    def find(self, test_id: str) -> TestItem | None:
        stack = list(self.roots)
        while stack:
            item = stack.pop()
            if item.id == test_id:
                return item
            stack.extend(item.children)
        return None


@define(slots=True)
class RunRequest:
    """
    One invocation of the orchestrator.

    `include=None` means "run everything"; `cancellation` is set to stop the run.
    """

    include: Sequence[TestItemLike] | None = field(default=None)
    exclude: Sequence[TestItemLike] = field(factory=tuple)
    cancellation: asyncio.Event = field(factory=asyncio.Event)

    def is_excluded(self, item: TestItemLike) -> bool:
        return any(item is excluded for excluded in self.exclude)


# 🔼⚙️
