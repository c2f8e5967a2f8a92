import logging
import typing

from codequest_backend.curriculum.curriculum import Curriculum
from codequest_backend.curriculum.loader import get_curriculum
from codequest_backend.models.curriculum_models import CodingStageModel
from codequest_backend.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_method,
    get_path,
)
from codequest_backend.utils.base_types import ChapterIndex, LessonIndex, StageIndex

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class CurriculumApiHandler:
    """Serves the static curriculum. Reference solutions are left out; GET /solution reveals them per unlocked stage."""

    def __init__(self, curriculum: Curriculum):
        self.curriculum = curriculum

    def _stage_payload(
        self,
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        stage_index: StageIndex,
    ) -> dict[str, typing.Any]:
        location = (chapter_index, lesson_index, stage_index)
        stage = self.curriculum.stage(*location)
        if isinstance(stage, CodingStageModel):
            payload = stage.model_dump(exclude={"solution"})
            payload["codingStageIndex"] = self.curriculum.coding_stage_index_of(*location)
            payload["codingStageNumber"] = self.curriculum.global_coding_stage_ordinal(*location)
        else:
            payload = stage.model_dump()
        payload["stageNumber"] = self.curriculum.global_stage_ordinal(*location)
        return payload

    def _lesson_payload(self, chapter_index: ChapterIndex, lesson_index: LessonIndex) -> dict[str, typing.Any]:
        lesson = self.curriculum.lesson(chapter_index, lesson_index)
        return {
            "name": lesson.name,
            "description": lesson.description,
            "icon": lesson.icon,
            "codingStageCount": self.curriculum.coding_stage_count(chapter_index, lesson_index),
            "stages": [
                self._stage_payload(chapter_index, lesson_index, StageIndex(stage_index))
                for stage_index in range(len(lesson.stages))
            ],
        }

    def _build_curriculum_payload(self) -> dict[str, typing.Any]:
        chapters = []
        for raw_chapter_index, chapter in enumerate(self.curriculum.chapters):
            chapter_index = ChapterIndex(raw_chapter_index)
            chapters.append(
                {
                    "title": chapter.title,
                    "description": chapter.description,
                    "imagePath": chapter.imagePath,
                    "details": chapter.details,
                    "stageCount": self.curriculum.stage_count(chapter_index),
                    "codingStageCount": self.curriculum.chapter_coding_stage_count(chapter_index),
                    "lessons": [
                        self._lesson_payload(chapter_index, LessonIndex(lesson_index))
                        for lesson_index in range(len(chapter.lessons))
                    ],
                }
            )
        return {"version": self.curriculum.version, "chapters": chapters}

    def handle(self, event: dict) -> dict:
        http_method = get_method(event).upper()
        path = get_path(event)

        _LOGGER.info(f"CurriculumApiHandler: {http_method} {path}")

        try:
            if http_method == "GET" and path == "/curriculum":
                return format_lambda_response(200, self._build_curriculum_payload(), event=event)
            else:
                _LOGGER.warning(f"Unsupported path or method for Curriculum: {http_method} {path}")
                return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        except Exception as e:
            _LOGGER.error(f"Unexpected error in CurriculumApiHandler: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def curriculum_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global curriculum_lambda_handler received event.")

    try:
        api_handler = CurriculumApiHandler(curriculum=get_curriculum())
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in curriculum_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during CurriculumApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
