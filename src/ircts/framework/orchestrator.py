"""Sequences a full run: pre-mark, probe capabilities, run tests, report."""

import logging
import sys
import traceback
from typing import Optional, TextIO

from .caps import CapabilityNegotiator
from ..scenarios.base import HandlerResult, RunManager, Test, TestResults, TestReturn

logger = logging.getLogger(__name__)

# Handlers returning CONTINUE are re-invoked at most this many times in total
MAX_HANDLER_ROUNDS = 3

CANCELLED_TEXT = "Test cancelled and not run"


class Orchestrator:
    """Runs every registered test group, in order, one test at a time."""

    def __init__(self, run_manager: RunManager, out: Optional[TextIO] = None):
        self.rm = run_manager
        self.out = out or sys.stdout

    def run(self) -> TestResults:
        """Run the whole suite and print the report.

        Raises:
            ConnectError: If the server cannot be reached for the capability probe
        """
        self.premark()
        self.probe_capabilities()
        self.run_tests()
        self.print_results()
        return self.rm.results

    def premark(self) -> None:
        """Mark every test as not run, so each one reports exactly once."""
        for _group, _test, name in self.rm.iter_tests():
            self.rm.results.set(name, TestReturn.NOT_APPLICABLE, CANCELLED_TEXT)

    def probe_capabilities(self) -> None:
        """Discover the server's capabilities on a throwaway connection."""
        connection = self.rm.pool.new_connection(self.rm.config.server)
        try:
            self.rm.capabilities = CapabilityNegotiator(connection).negotiate()
        finally:
            self.rm.pool.destroy_connection(connection)

    def run_tests(self) -> None:
        for group in self.rm.test_groups:
            print("", file=self.out)
            print("Testing", group.name, file=self.out)
            for test in group.tests:
                print("-", test.name, file=self.out)
                self.run_test(test, group.qualified_name(test))

                if self.rm.config.server.reset_between_tests:
                    self.rm.pool.destroy_all()

    def run_test(self, test: Test, name: str) -> None:
        """Run one test; a handler fault is recorded as a failure."""
        missing = self.rm.capabilities.missing(test.required_caps)
        if missing:
            self.rm.results.set(
                name,
                TestReturn.NOT_APPLICABLE,
                f"Server does not advertise required capabilities: {', '.join(missing)}",
            )
            return

        for round_num in range(1, MAX_HANDLER_ROUNDS + 1):
            try:
                outcome = test.handler(name, self.rm)
                if not isinstance(outcome, HandlerResult):
                    raise TypeError(
                        f"Handler returned {outcome!r}, expected a HandlerResult")
            except Exception as e:
                logger.exception("Test %s raised", name)
                tb = traceback.format_exc()
                self.rm.results.set(
                    name,
                    TestReturn.FAILURE,
                    f"Test raised {type(e).__name__}: {e}\n{tb}",
                )
                return

            if outcome == HandlerResult.DONE:
                return
            logger.debug("Test %s asked for another round (%d done)", name, round_num)

        logger.warning("Test %s still not done after %d rounds", name, MAX_HANDLER_ROUNDS)

    def print_results(self) -> None:
        print("\n= Results =", file=self.out)
        for _group, _test, name in self.rm.iter_tests():
            self.rm.results.print_result(name, self.out)
