import logging
import typing

from pydantic import ValidationError

from codequest_backend.curriculum.curriculum import Curriculum
from codequest_backend.curriculum.loader import get_curriculum
from codequest_backend.dynamodb.lesson_progress_table import LessonProgressTable
from codequest_backend.dynamodb.stage_progress_table import StageProgressTable
from codequest_backend.models.curriculum_models import SolutionRequestInputModel, SolutionResponseModel
from codequest_backend.progression.navigator import LessonNavigator
from codequest_backend.progression.progress_store import ProgressionStore, ProgressPersistenceError
from codequest_backend.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_method,
    get_path,
    get_query_string_parameters,
    get_user_id_from_event,
)
from codequest_backend.utils.aws_env_vars import (
    get_lesson_progress_table_name,
    get_stage_progress_table_name,
)
from codequest_backend.utils.base_types import UserId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class SolutionApiHandler:
    """
    GET /solution: reveals the reference solution of a coding stage the learner has unlocked.
    The curriculum payload never carries solutions, so this is the only way a client sees one.
    """

    def __init__(
        self,
        curriculum: Curriculum,
        stage_progress_table: StageProgressTable,
        lesson_progress_table: LessonProgressTable,
    ):
        self.curriculum = curriculum
        self.stage_progress_table = stage_progress_table
        self.lesson_progress_table = lesson_progress_table

    def _handle_get_request(self, event: dict, user_id: UserId) -> dict:
        try:
            request = SolutionRequestInputModel.model_validate(get_query_string_parameters(event))
        except ValidationError as e:
            _LOGGER.error(f"Solution request validation error: {e.errors()}")
            return create_error_response(
                ErrorCode.VALIDATION_ERROR,
                "Invalid request for solution.",
                details=e.errors(include_url=False, include_context=False),
                event=event,
            )

        chapter_index, lesson_index = request.chapterIndex, request.lessonIndex
        coding_stage_index = request.codingStageIndex
        try:
            stage = self.curriculum.coding_stage(chapter_index, lesson_index, coding_stage_index)
        except IndexError as e:
            _LOGGER.warning(f"Solution request for unknown stage from user {user_id}: {e}")
            return create_error_response(ErrorCode.VALIDATION_ERROR, "Stage does not exist.", event=event)

        store = ProgressionStore(user_id, self.curriculum, self.stage_progress_table, self.lesson_progress_table)
        try:
            store.refresh()
        except ProgressPersistenceError as e:
            _LOGGER.error(f"Progress fetch failed for user {user_id}: {e}", exc_info=True)
            return create_error_response(
                ErrorCode.PROGRESS_STORE_UNAVAILABLE, "Progress could not be loaded, please retry", event=event
            )

        navigator = LessonNavigator(self.curriculum, store, chapter_index, lesson_index)
        if not store.is_lesson_unlocked(chapter_index, lesson_index) or not navigator.go_to(coding_stage_index):
            _LOGGER.info(
                f"User {user_id} asked for the solution of locked stage "
                f"{chapter_index}/{lesson_index}/{coding_stage_index}"
            )
            return create_error_response(ErrorCode.STAGE_LOCKED, event=event)

        if not stage.solution:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, "This stage has no solution.", event=event)

        _LOGGER.info(f"Serving solution of {chapter_index}/{lesson_index}/{coding_stage_index} to user {user_id}")
        response_model = SolutionResponseModel(
            chapterIndex=chapter_index,
            lessonIndex=lesson_index,
            codingStageIndex=coding_stage_index,
            solution=stage.solution,
        )
        return format_lambda_response(200, response_model.model_dump(), event=event)

    def handle(self, event: dict) -> dict:
        user_id = get_user_id_from_event(event)
        if not user_id:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path = get_path(event)

        _LOGGER.info(f"SolutionApiHandler: {http_method} {path} for user: {user_id}")

        try:
            if http_method == "GET" and path == "/solution":
                return self._handle_get_request(event, user_id)
            else:
                _LOGGER.warning(f"Unsupported path or method for Solution: {http_method} {path}")
                return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        except Exception as e:
            _LOGGER.error(f"Unexpected error in SolutionApiHandler for user {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def solution_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global solution_lambda_handler received event.")

    try:
        api_handler = SolutionApiHandler(
            curriculum=get_curriculum(),
            stage_progress_table=StageProgressTable(get_stage_progress_table_name()),
            lesson_progress_table=LessonProgressTable(get_lesson_progress_table_name()),
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in solution_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during SolutionApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
