"""
Child process side of the grading boundary.

This module is imported in a freshly spawned interpreter for every test case, so it only depends on the
standard library. The learner source is executed into a brand new namespace and the entry function is
called once; the outcome is sent back to the grader over a pipe.
"""

import builtins
import contextlib
import dataclasses
import io
import typing
from multiprocessing.connection import Connection

READY = "ready"
MAX_PRINTED_OUTPUT = 2000
MAX_VALUE_DEPTH = 100


@dataclasses.dataclass(frozen=True)
class OpaqueValue:
    """Stand-in for a returned value that is not a plain JSON value (sets, learner-defined objects, ...)."""

    text: str

    def __str__(self) -> str:
        return self.text


@dataclasses.dataclass(frozen=True)
class CaseOutcome:
    return_value: typing.Any = None
    error: typing.Optional[str] = None
    printed_output: str = ""


def _text_of(value: typing.Any) -> str:
    try:
        return str(value)
    except Exception:
        try:
            return repr(value)
        except Exception:
            return f"<unprintable {type(value).__name__}>"


def to_transportable(value: typing.Any, depth: int = 0) -> typing.Any:
    """Copies JSON-like values as-is and replaces anything else with an OpaqueValue."""
    if depth > MAX_VALUE_DEPTH:
        return OpaqueValue("<value nested too deeply>")
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, list):
        return [to_transportable(item, depth + 1) for item in value]
    if isinstance(value, tuple):
        return tuple(to_transportable(item, depth + 1) for item in value)
    if isinstance(value, dict) and all(isinstance(key, (str, int, float, bool)) for key in value):
        return {key: to_transportable(item, depth + 1) for key, item in value.items()}
    return OpaqueValue(_text_of(value))


def _describe_exception(e: BaseException) -> str:
    message = _text_of(e)
    return f"{type(e).__name__}: {message}" if message else type(e).__name__


def execute_case(source: str, function_name: str, args: list[typing.Any]) -> CaseOutcome:
    namespace: dict[str, typing.Any] = {"__name__": "__submission__", "__builtins__": builtins}
    printed = io.StringIO()
    try:
        with contextlib.redirect_stdout(printed):
            exec(compile(source, "<submission>", "exec"), namespace)
            function = namespace.get(function_name)
            if not callable(function):
                return CaseOutcome(error=f"NameError: function '{function_name}' is not defined")
            value = function(*args)
    except SystemExit as e:
        return CaseOutcome(error=f"SystemExit: {e.code}", printed_output=printed.getvalue()[:MAX_PRINTED_OUTPUT])
    except Exception as e:
        return CaseOutcome(error=_describe_exception(e), printed_output=printed.getvalue()[:MAX_PRINTED_OUTPUT])

    return CaseOutcome(
        return_value=to_transportable(value),
        printed_output=printed.getvalue()[:MAX_PRINTED_OUTPUT],
    )


def run_case(conn: Connection, source: str, function_name: str, args: list[typing.Any]) -> None:
    """Process entry point: signal readiness, run one case, report the outcome."""
    try:
        conn.send(READY)
        outcome = execute_case(source, function_name, args)
        try:
            conn.send(outcome)
        except Exception as e:
            conn.send(CaseOutcome(error=f"InvocationFault: result could not be reported ({_describe_exception(e)})"))
    finally:
        conn.close()
