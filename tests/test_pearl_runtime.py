import io
import sys

import pytest

from pearl.pearl_datatypes import Error, Integer, NULL
from pearl.pearl_runtime import ExecutionResult, ScriptRunner, raised_recursion_limit


@pytest.fixture
def out():
    return io.StringIO()


@pytest.fixture
def runner(out):
    return ScriptRunner(out=out)


class InterruptingStream(io.StringIO):
    """Stops the host as soon as anything is written."""
    def write(self, text):
        super().write(text)
        raise KeyboardInterrupt


def test_successful_run(runner):
    result = runner.run("let x = 2\nx * 21")
    assert result.ok
    assert result.status == 'success'
    assert result.value == Integer(42)
    assert result.format_error() == ""


def test_bindings_persist_across_runs(runner):
    runner.run("let total = 1")
    runner.run("total = total + 1")
    assert runner.run("total").value == Integer(2)


def test_print_writes_to_the_runner_output(runner, out):
    result = runner.run('print("a")\nprint("b", 1)')
    assert result.value is NULL
    assert out.getvalue() == "a\nb1\n"
    assert result.side_effects == []


def test_print_is_written_while_the_script_runs():
    out = InterruptingStream()
    runner = ScriptRunner(out=out)
    with pytest.raises(KeyboardInterrupt):
        runner.run('print("started")\nwhile true { }')
    assert out.getvalue() == "started\n"


def test_printing_in_a_loop_keeps_no_history(runner, out):
    result = runner.run("for i in 0..1000 { print(i) }")
    assert result.ok
    assert result.side_effects == []
    lines = out.getvalue().splitlines()
    assert len(lines) == 1000
    assert lines[-1] == "999"


def test_runtime_error(runner, out):
    result = runner.run('print("before")\n1 / 0\nprint("after")')
    assert result.status == 'error'
    assert result.error_message == "division by zero"
    assert result.value == Error("division by zero")
    assert result.format_error() == "ERROR: division by zero"
    assert out.getvalue() == "before\n"
    assert result.side_effects == [
        {'topics': ['stderr'], 'message': 'ERROR: division by zero'},
    ]


def test_parse_error_is_not_evaluated(runner, out):
    result = runner.run('print("never")\nlet = 1')
    assert result.status == 'parse_error'
    assert result.diagnostics == ["line 2, col 1: expected IDENT, got = instead",
                                  "line 2, col 5: no prefix parse function for = found"]
    assert result.error_message == result.diagnostics[0]
    assert all(e['topics'] == ['stderr'] for e in result.side_effects)
    assert result.format_error() == "\n".join(result.diagnostics)
    assert out.getvalue() == ""


def test_check_only_parses(runner, out):
    assert runner.check('print("x")').ok
    assert out.getvalue() == ""
    assert runner.check("let = 1").status == 'parse_error'


def test_deep_recursion_becomes_an_error(runner):
    result = runner.run("let f = fn(n) { f(n + 1) }\nf(0)")
    assert result.status == 'error'
    assert result.error_message == "maximum recursion depth exceeded"


def test_moderate_recursion_succeeds(runner):
    source = """
let count = fn(n) {
  if n == 0 { return 0 }
  1 + count(n - 1)
}
count(300)
"""
    assert runner.run(source).value == Integer(300)


# --- Nesting depth ---

def test_deeply_nested_source_is_a_parse_error(runner):
    source = "(" * 20000 + "1" + ")" * 20000
    result = runner.run(source)
    assert result.status == 'parse_error'
    assert result.diagnostics == ["line 1, col 1: maximum nesting depth exceeded"]

    checked = runner.check(source)
    assert checked.status == 'parse_error'
    assert checked.format_error() == "line 1, col 1: maximum nesting depth exceeded"


def test_runner_survives_a_nesting_failure(runner):
    runner.run("(" * 20000 + "1" + ")" * 20000)
    assert runner.run("(" * 200 + "7" + ")" * 200).value == Integer(7)


# --- Recursion limit ---

def test_recursion_limit_is_restored_after_a_run():
    before = sys.getrecursionlimit()
    runner = ScriptRunner(recursion_limit=before + 5000, out=io.StringIO())
    assert sys.getrecursionlimit() == before
    runner.run("let f = fn(n) { f(n + 1) }\nf(0)")
    assert sys.getrecursionlimit() == before


def test_recursion_limit_only_raises():
    before = sys.getrecursionlimit()
    with raised_recursion_limit(before + 100):
        assert sys.getrecursionlimit() == before + 100
    with raised_recursion_limit(10):
        assert sys.getrecursionlimit() == before
    assert sys.getrecursionlimit() == before


def test_execution_result_defaults():
    result = ExecutionResult(status='success')
    assert result.value is None
    assert result.diagnostics == []
    assert result.side_effects == []
