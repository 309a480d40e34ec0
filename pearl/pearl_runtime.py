import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Literal, Optional, TextIO

from pearl.pearl_ast import Program
from pearl.pearl_datatypes import Environment, Error, NULL, PearlObject
from pearl.pearl_interpreter import Evaluator
from pearl.pearl_parser import parse

logger = logging.getLogger(__name__)

# Each Pearl call costs several Python frames in the tree walker.
DEFAULT_RECURSION_LIMIT = 10000

NESTING_DIAGNOSTIC = "line 1, col 1: maximum nesting depth exceeded"


@contextmanager
def raised_recursion_limit(limit: int) -> Iterator[None]:
    """Raises the interpreter recursion limit to at least `limit` for the block."""
    previous = sys.getrecursionlimit()
    if previous < limit:
        sys.setrecursionlimit(limit)
    try:
        yield
    finally:
        sys.setrecursionlimit(previous)


# ===================================================================
# Script Execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'parse_error', 'error']
    value: Optional[PearlObject] = None
    error_message: Optional[str] = None
    diagnostics: List[str] = field(default_factory=list)
    side_effects: List[Dict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == 'success'

    def format_error(self) -> str:
        """Renders parse diagnostics one per line, or the runtime error."""
        if self.status == 'parse_error':
            return "\n".join(self.diagnostics)
        if self.status == 'error':
            return f"ERROR: {self.error_message or 'unknown error'}"
        return ""


class ScriptRunner:
    """Parses and executes Pearl source against one persistent root environment.

    Successive `run()` calls share bindings, which is what a REPL session
    needs. `print` writes each line to `out` (stdout by default) as it runs;
    the result's side effects carry only the `stderr` diagnostics.

    The interpreter recursion limit is raised to `recursion_limit` while a
    script is parsed or evaluated and restored afterwards.
    """
    def __init__(self, recursion_limit: int = DEFAULT_RECURSION_LIMIT, out: Optional[TextIO] = None):
        self.root_env = Environment()
        self.evaluator = Evaluator(out)
        self.recursion_limit = recursion_limit

    def check(self, source: str) -> ExecutionResult:
        """Parses `source` without evaluating it."""
        errors = self._parse(source)[1]
        if errors:
            return self._parse_failure(errors)
        return ExecutionResult(status='success', value=NULL)

    def run(self, source: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        program, errors = self._parse(source)
        if errors:
            return self._parse_failure(errors)

        return self.execute(program)

    def execute(self, program: Program) -> ExecutionResult:
        """Evaluates an already parsed program in the root environment."""
        try:
            with raised_recursion_limit(self.recursion_limit):
                result = self.evaluator.eval(program, self.root_env)
        except RecursionError:
            result = Error("maximum recursion depth exceeded")

        if isinstance(result, Error):
            logger.debug("runtime error: %s", result.message)
            return ExecutionResult(
                status='error',
                value=result,
                error_message=result.message,
                side_effects=[{'topics': ['stderr'], 'message': result.display()}],
            )

        return ExecutionResult(status='success', value=result)

    def _parse(self, source: str):
        try:
            with raised_recursion_limit(self.recursion_limit):
                return parse(source)
        except RecursionError:
            return None, [NESTING_DIAGNOSTIC]

    def _parse_failure(self, errors: List[str]) -> ExecutionResult:
        logger.debug("parse failed with %d diagnostics", len(errors))
        effects = [{'topics': ['stderr'], 'message': msg} for msg in errors]
        return ExecutionResult(
            status='parse_error',
            error_message=errors[0],
            diagnostics=list(errors),
            side_effects=effects,
        )
