"""Test model, results and the run manager shared by every test."""

import base64
import secrets
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Sequence, TextIO, Tuple

from ..framework.caps import CapabilitySet
from ..framework.config import Config
from ..framework.connection import ConnectionPool

NICK_LENGTH = 9


class TestReturn(Enum):
    """Outcome of a single test."""

    __test__ = False  # keep pytest from collecting it

    SUCCESS = "Success"
    # Server is noncompliant
    FAILURE = "Failed"
    # Server or config does not meet the test's requirements, e.g. a missing
    # capability or no accounts defined
    NOT_APPLICABLE = "N/A"


class HandlerResult(Enum):
    """What a test handler tells the orchestrator when it returns."""

    # Call the handler again for another round
    CONTINUE = "continue"
    # The test reached a terminal state
    DONE = "done"


Handler = Callable[[str, "RunManager"], HandlerResult]


@dataclass(frozen=True)
class Test:
    """A single check run against the server."""

    __test__ = False

    # The group name is prepended to form the qualified name
    name: str
    description: str
    handler: Handler
    clients_required_at_start: int = 0
    required_caps: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TestGroup:
    """Related tests, run in declaration order."""

    __test__ = False

    name: str
    description: str
    tests: Tuple[Test, ...] = field(default_factory=tuple)

    def qualified_name(self, test: Test) -> str:
        return f"{self.name}-{test.name}"


class TestResults:
    """Outcome, explanation and captured traffic for each test.

    ``set`` overwrites whatever was recorded before for the same name.
    """

    __test__ = False

    def __init__(self):
        self._code: Dict[str, TestReturn] = {}
        self._text: Dict[str, str] = {}
        self._traffic: Dict[str, str] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._code

    def __len__(self) -> int:
        return len(self._code)

    def set(self, name: str, code: TestReturn, text: str, traffic: str = "") -> None:
        self._code[name] = code
        self._text[name] = text
        self._traffic[name] = traffic

    def code(self, name: str) -> TestReturn:
        return self._code[name]

    def text(self, name: str) -> str:
        return self._text[name]

    def traffic(self, name: str) -> str:
        return self._traffic[name]

    def names(self) -> List[str]:
        return list(self._code)

    def counts(self) -> Dict[TestReturn, int]:
        counts = {code: 0 for code in TestReturn}
        for code in self._code.values():
            counts[code] += 1
        return counts

    def print_result(self, name: str, out: Optional[TextIO] = None) -> None:
        """Show the result of a single test, with traffic for failures."""
        out = out or sys.stdout
        result = self._code[name]
        print(name, "-", result.value, file=out)
        print("  ", self._text[name], file=out)
        if result == TestReturn.FAILURE:
            print("---", file=out)
            print(self._traffic[name], file=out)
            print("---", file=out)


class RunManager:
    """Everything a test handler needs: config, connection pool, results."""

    def __init__(self, config: Config, pool: ConnectionPool, test_groups: Sequence[TestGroup]):
        self.config = config
        self.pool = pool
        self.test_groups: Tuple[TestGroup, ...] = tuple(test_groups)
        self.results = TestResults()
        self.capabilities = CapabilitySet()

    def iter_tests(self) -> Iterator[Tuple[TestGroup, Test, str]]:
        """Yield (group, test, qualified name) in execution order."""
        for group in self.test_groups:
            for test in group.tests:
                yield group, test, group.qualified_name(test)

    def new_nick(self) -> str:
        """Return a fresh random nickname.

        Base64 alphabet characters can't all start a nickname, so the first
        character is always a letter.
        """
        encoded = base64.urlsafe_b64encode(secrets.token_bytes(NICK_LENGTH)).decode("ascii")
        return "t" + encoded[:NICK_LENGTH - 1]
