import ast
import logging
import multiprocessing
import typing

from codequest_backend.grading import sandbox
from codequest_backend.grading.comparison import outputs_match
from codequest_backend.grading.sandbox import CaseOutcome
from codequest_backend.models.curriculum_models import CodingStageModel, StageTestCaseModel
from codequest_backend.models.grading_models import (
    NO_FUNCTION_FOUND,
    SOURCE_SYNTAX_ERROR,
    TIMEOUT_EXCEEDED,
    CaseResultModel,
    GradingVerdictModel,
)
from codequest_backend.utils.aws_env_vars import DEFAULT_GRADING_CASE_TIMEOUT_SECONDS

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class SubmissionError(Exception):
    """Source-level problem that prevents any test case from running."""


def find_entry_function(source: str) -> str:
    """
    Locates the learner's function: the first top-level `def` of the submission.

    :raises SubmissionError: If the source does not parse or defines no top-level function.
    """
    try:
        tree = ast.parse(source, filename="<submission>")
    except SyntaxError as e:
        raise SubmissionError(f"{SOURCE_SYNTAX_ERROR}: {e.msg} (line {e.lineno})") from e
    except ValueError as e:
        # e.g. source containing null bytes
        raise SubmissionError(f"{SOURCE_SYNTAX_ERROR}: {e}") from e

    for node in tree.body:
        if isinstance(node, ast.FunctionDef):
            return node.name
    raise SubmissionError(NO_FUNCTION_FOUND)


class Grader:
    """
    Grades learner source against the test cases of a coding stage.

    Every test case runs in its own child process: the source is executed into a fresh namespace, the entry
    function is called once with the case inputs spread positionally, and the process is terminated if it
    does not report back within the per-case timeout. Nothing the learner code does can leak into the next
    case or into this process.
    """

    def __init__(
        self,
        case_timeout_seconds: float = DEFAULT_GRADING_CASE_TIMEOUT_SECONDS,
        start_method: str = "spawn",
        startup_timeout_seconds: float = 15.0,
    ) -> None:
        if case_timeout_seconds <= 0:
            raise ValueError("case_timeout_seconds must be positive")
        self.case_timeout_seconds = case_timeout_seconds
        self.startup_timeout_seconds = startup_timeout_seconds
        # Pipes rather than queues: AWS Lambda has no /dev/shm for the semaphores a queue needs
        self._context = multiprocessing.get_context(start_method)

    def grade(self, stage: CodingStageModel, learner_source: str) -> GradingVerdictModel:
        """
        Runs every test case of `stage` in order and returns the per-case verdict.
        Source problems and learner faults are reported inside the verdict, never raised.
        """
        try:
            function_name = find_entry_function(learner_source)
        except SubmissionError as e:
            _LOGGER.info(f"Submission rejected before execution: {e}")
            return self._verdict_for_submission_error(stage, str(e))

        _LOGGER.info(f"Grading function '{function_name}' against {len(stage.testCases)} test case(s).")
        results = []
        for index, test_case in enumerate(stage.testCases):
            outcome = self._run_case(learner_source, function_name, test_case)
            results.append(self._case_result(index, test_case, outcome))

        verdict = GradingVerdictModel(results=results)
        _LOGGER.info(f"Grading finished: {verdict.passed_count}/{len(results)} case(s) passed.")
        return verdict

    def _verdict_for_submission_error(self, stage: CodingStageModel, message: str) -> GradingVerdictModel:
        return GradingVerdictModel(
            results=[
                CaseResultModel(
                    index=index,
                    passed=False,
                    input=list(test_case.input),
                    expectedOutput=test_case.expectedOutput,
                    actualOutput=None,
                    description=test_case.description,
                    error=message,
                )
                for index, test_case in enumerate(stage.testCases)
            ]
        )

    def _case_result(self, index: int, test_case: StageTestCaseModel, outcome: CaseOutcome) -> CaseResultModel:
        if outcome.error is not None:
            return CaseResultModel(
                index=index,
                passed=False,
                input=list(test_case.input),
                expectedOutput=test_case.expectedOutput,
                actualOutput=None,
                description=test_case.description,
                error=outcome.error,
                printedOutput=outcome.printed_output or None,
            )

        actual = outcome.return_value
        passed = outputs_match(test_case.expectedOutput, actual)
        return CaseResultModel(
            index=index,
            passed=passed,
            input=list(test_case.input),
            expectedOutput=test_case.expectedOutput,
            actualOutput=actual,
            description=test_case.description,
            error=None,
            printedOutput=outcome.printed_output or None,
        )

    def _run_case(self, source: str, function_name: str, test_case: StageTestCaseModel) -> CaseOutcome:
        reader, writer = self._context.Pipe(duplex=False)
        process = self._context.Process(
            target=sandbox.run_case,
            args=(writer, source, function_name, list(test_case.input)),
            daemon=True,
        )
        process.start()
        writer.close()
        try:
            if not reader.poll(self.startup_timeout_seconds):
                _LOGGER.error(f"Grading process did not start within {self.startup_timeout_seconds}s.")
                return CaseOutcome(error=f"{TIMEOUT_EXCEEDED}: grading process did not start")
            reader.recv()

            if not reader.poll(self.case_timeout_seconds):
                _LOGGER.info(f"Test case exceeded {self.case_timeout_seconds}s; terminating process.")
                return CaseOutcome(
                    error=f"{TIMEOUT_EXCEEDED}: test case did not finish within {self.case_timeout_seconds:g} seconds"
                )
            return typing.cast(CaseOutcome, reader.recv())
        except EOFError:
            process.join(1)
            _LOGGER.warning(f"Grading process exited without a result (exit code {process.exitcode}).")
            return CaseOutcome(error=f"InvocationFault: process exited unexpectedly (exit code {process.exitcode})")
        finally:
            reader.close()
            self._stop(process)

    def _stop(self, process: multiprocessing.process.BaseProcess) -> None:
        if process.is_alive():
            process.terminate()
            process.join(1)
        if process.is_alive():
            process.kill()
        process.join()
