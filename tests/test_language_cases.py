import io
from pathlib import Path

import pytest
import yaml

from pearl.pearl_runtime import ScriptRunner

CASES_PATH = Path(__file__).parent / "language_cases.yaml"


def load_cases():
    with open(CASES_PATH, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


CASES = load_cases()


@pytest.mark.parametrize("case", CASES, ids=[c["name"] for c in CASES])
def test_language_case(case):
    out = io.StringIO()
    result = ScriptRunner(out=out).run(case["source"])
    assert result.status != 'parse_error', result.diagnostics

    if "output" in case:
        assert out.getvalue().splitlines() == case["output"]

    if "error" in case:
        assert result.status == 'error'
        assert result.error_message == case["error"]
    else:
        assert result.ok, result.format_error()

    if "expected" in case:
        assert result.value.display() == case["expected"]
