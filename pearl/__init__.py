import logging

from pearl.pearl_datatypes import Environment
from pearl.pearl_interpreter import Evaluator, evaluate
from pearl.pearl_parser import parse
from pearl.pearl_runtime import ExecutionResult, ScriptRunner

__version__ = "0.1.0"

__all__ = [
    "Environment",
    "Evaluator",
    "ExecutionResult",
    "ScriptRunner",
    "evaluate",
    "parse",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
