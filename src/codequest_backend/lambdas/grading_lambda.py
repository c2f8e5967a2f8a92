import logging
import typing

from pydantic import ValidationError

from codequest_backend.curriculum.curriculum import Curriculum
from codequest_backend.curriculum.loader import get_curriculum
from codequest_backend.dynamodb.grading_lock_table import GradingInProgressError, GradingLockTable
from codequest_backend.dynamodb.lesson_progress_table import LessonProgressTable
from codequest_backend.dynamodb.stage_progress_table import StageProgressTable
from codequest_backend.grading.grader import Grader
from codequest_backend.grading.stage_run import GradingBackend, StageRun
from codequest_backend.models.grading_models import GradeRequestInputModel
from codequest_backend.progression.navigator import LessonNavigator
from codequest_backend.progression.progress_store import ProgressionStore, ProgressPersistenceError
from codequest_backend.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_method,
    get_path,
    get_user_id_from_event,
)
from codequest_backend.utils.aws_env_vars import (
    get_grading_case_timeout_seconds,
    get_grading_lock_table_name,
    get_lesson_progress_table_name,
    get_stage_progress_table_name,
)
from codequest_backend.utils.base_types import UserId
from codequest_backend.utils.input_validator import InputValidator, SuspiciousInputError

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class GradingApiHandler:
    """
    POST /grade: grades a submission for an unlocked coding stage and, when every test case passes,
    records the completion for the learner. Only one grading attempt per learner runs at a time; an overlapping
    request is rejected with 409 while the first is in flight.
    """

    def __init__(
        self,
        curriculum: Curriculum,
        grader: GradingBackend,
        stage_progress_table: StageProgressTable,
        lesson_progress_table: LessonProgressTable,
        grading_lock_table: GradingLockTable,
    ):
        self.curriculum = curriculum
        self.grader = grader
        self.stage_progress_table = stage_progress_table
        self.lesson_progress_table = lesson_progress_table
        self.grading_lock_table = grading_lock_table

    def _handle_grade_request(self, event: dict, user_id: UserId) -> dict:
        raw_body = event.get("body")
        if not raw_body:
            _LOGGER.error("Request body is missing for grading.")
            return create_error_response(ErrorCode.VALIDATION_ERROR, "Request body is missing.", event=event)

        try:
            request = GradeRequestInputModel.model_validate_json(raw_body)
        except ValidationError as e:
            _LOGGER.error(f"Grading request body validation error: {e.errors()}")
            return create_error_response(
                ErrorCode.VALIDATION_ERROR,
                "Invalid request for grading.",
                details=e.errors(include_url=False, include_context=False),
                event=event,
            )

        try:
            InputValidator.validate_submission(request.code)
        except SuspiciousInputError as e:
            _LOGGER.warning(f"Suspicious submission from user {user_id}: {e}")
            return create_error_response(ErrorCode.VALIDATION_ERROR, str(e), event=event)

        chapter_index, lesson_index = request.chapterIndex, request.lessonIndex
        coding_stage_index = request.codingStageIndex
        try:
            stage = self.curriculum.coding_stage(chapter_index, lesson_index, coding_stage_index)
        except IndexError as e:
            _LOGGER.warning(f"Grading request for unknown stage from user {user_id}: {e}")
            return create_error_response(ErrorCode.VALIDATION_ERROR, "Stage does not exist.", event=event)

        store = ProgressionStore(user_id, self.curriculum, self.stage_progress_table, self.lesson_progress_table)
        try:
            store.refresh()
        except ProgressPersistenceError as e:
            _LOGGER.error(f"Progress fetch failed for user {user_id}: {e}", exc_info=True)
            return create_error_response(
                ErrorCode.PROGRESS_STORE_UNAVAILABLE, "Progress could not be loaded, please retry", event=event
            )

        if not store.is_lesson_unlocked(chapter_index, lesson_index):
            _LOGGER.info(f"User {user_id} tried to grade in locked lesson {chapter_index}/{lesson_index}")
            return create_error_response(ErrorCode.STAGE_LOCKED, event=event)

        stage_run = StageRun(self.grader, on_completion=store.handle_stage_completed)
        navigator = LessonNavigator(self.curriculum, store, chapter_index, lesson_index, stage_run=stage_run)
        if not navigator.go_to(coding_stage_index):
            _LOGGER.info(
                f"User {user_id} tried to grade locked stage {chapter_index}/{lesson_index}/{coding_stage_index}"
            )
            return create_error_response(ErrorCode.STAGE_LOCKED, event=event)

        try:
            with self.grading_lock_table.hold(user_id):
                verdict = stage_run.grade(request.code)
        except GradingInProgressError:
            return create_error_response(ErrorCode.GRADING_IN_PROGRESS, event=event)

        if verdict is None:
            _LOGGER.error(f"Grading attempt for user {user_id} was abandoned.")
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)

        verdict_payload = verdict.to_response_dict()
        if stage_run.completion_error is not None:
            return create_error_response(
                ErrorCode.PROGRESS_STORE_UNAVAILABLE,
                event=event,
                extra={"verdict": verdict_payload, "retryable": True, "state": stage_run.state.value},
            )

        response_body = {
            "verdict": verdict_payload,
            "state": stage_run.state.value,
            "completionRecorded": verdict.all_passed,
            "stageCompleted": store.is_stage_completed(chapter_index, lesson_index, coding_stage_index),
            "lessonCompleted": store.is_lesson_completed(chapter_index, lesson_index),
            "nextStageUnlocked": navigator.can_go_next,
        }
        return format_lambda_response(200, response_body, event=event)

    def handle(self, event: dict) -> dict:
        user_id = get_user_id_from_event(event)
        if not user_id:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path = get_path(event)

        _LOGGER.info(f"GradingApiHandler: {http_method} {path} for user: {user_id}")

        try:
            if http_method == "POST" and path == "/grade":
                return self._handle_grade_request(event, user_id)
            else:
                _LOGGER.warning(f"Unsupported path or method for Grading: {http_method} {path}")
                return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        except Exception as e:
            _LOGGER.error(f"Unexpected error in GradingApiHandler for user {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def grading_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global grading_lambda_handler received event.")

    try:
        api_handler = GradingApiHandler(
            curriculum=get_curriculum(),
            grader=Grader(case_timeout_seconds=get_grading_case_timeout_seconds()),
            stage_progress_table=StageProgressTable(get_stage_progress_table_name()),
            lesson_progress_table=LessonProgressTable(get_lesson_progress_table_name()),
            grading_lock_table=GradingLockTable(get_grading_lock_table_name()),
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in grading_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during GradingApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
