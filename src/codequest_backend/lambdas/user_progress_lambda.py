import logging
import typing

from codequest_backend.curriculum.curriculum import Curriculum
from codequest_backend.curriculum.loader import get_curriculum
from codequest_backend.dynamodb.lesson_progress_table import LessonProgressTable
from codequest_backend.dynamodb.stage_progress_table import StageProgressTable
from codequest_backend.models.progress_models import UserProgressModel
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
    get_lesson_progress_table_name,
    get_stage_progress_table_name,
)
from codequest_backend.utils.base_types import UserId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class UserProgressApiHandler:
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
        _LOGGER.info(f"Fetching progress for user_id: {user_id}")
        store = ProgressionStore(user_id, self.curriculum, self.stage_progress_table, self.lesson_progress_table)
        try:
            snapshot = store.refresh()
        except ProgressPersistenceError as e:
            _LOGGER.error(f"Progress fetch failed for user {user_id}: {e}", exc_info=True)
            return create_error_response(
                ErrorCode.PROGRESS_STORE_UNAVAILABLE, "Progress could not be loaded, please retry", event=event
            )

        progress_model = UserProgressModel(
            userId=user_id,
            curriculumVersion=self.curriculum.version,
            stageCompletions=sorted(
                snapshot.stages.values(), key=lambda r: (r.chapterIndex, r.lessonIndex, r.codingStageIndex)
            ),
            lessonCompletions=sorted(snapshot.lessons.values(), key=lambda r: (r.chapterIndex, r.lessonIndex)),
            lessons=store.lesson_statuses(),
        )
        return format_lambda_response(200, progress_model.model_dump(by_alias=True, exclude_none=True), event=event)

    def handle(self, event: dict) -> dict:
        user_id = get_user_id_from_event(event)
        if not user_id:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path = get_path(event)

        _LOGGER.info(f"UserProgressApiHandler: {http_method} {path} for user: {user_id}")

        try:
            if http_method == "GET" and path == "/progress":
                return self._handle_get_request(event, user_id)
            else:
                _LOGGER.warning(f"Unsupported path or method for User Progress: {http_method} {path}")
                return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        except Exception as e:
            _LOGGER.error(f"Unexpected error in UserProgressApiHandler for user {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def user_progress_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global user_progress_lambda_handler received event.")

    try:
        api_handler = UserProgressApiHandler(
            curriculum=get_curriculum(),
            stage_progress_table=StageProgressTable(get_stage_progress_table_name()),
            lesson_progress_table=LessonProgressTable(get_lesson_progress_table_name()),
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in user_progress_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during UserProgressApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
