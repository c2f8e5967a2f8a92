import dataclasses
import enum
import logging
import typing

from codequest_backend.curriculum.curriculum import Curriculum
from codequest_backend.grading.stage_run import StageRun
from codequest_backend.models.curriculum_models import CodingStageModel, StageModel
from codequest_backend.utils.base_types import (
    ChapterIndex,
    CodingStageIndex,
    LessonIndex,
    StageIndex,
)

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class ProgressGate(typing.Protocol):
    def is_stage_unlocked(
        self, chapter_index: ChapterIndex, lesson_index: LessonIndex, coding_stage_index: CodingStageIndex
    ) -> bool: ...

    def is_stage_completed(
        self, chapter_index: ChapterIndex, lesson_index: LessonIndex, coding_stage_index: CodingStageIndex
    ) -> bool: ...

    def is_lesson_completed(self, chapter_index: ChapterIndex, lesson_index: LessonIndex) -> bool: ...


class StageIndicator(str, enum.Enum):
    """Status of one coding stage in the lesson's progress dots."""

    CURRENT = "current"
    COMPLETED = "completed"
    VISITED = "visited"
    UPCOMING = "upcoming"


@dataclasses.dataclass
class LessonNavigator:
    """
    Moves between the coding stages of one lesson.

    The position is an index into the lesson's coding stage table, not a raw stage index. Moving back is
    always allowed; moving forward requires the gate to report the target stage as unlocked. Every move
    resets the attached StageRun so results of the stage being left are never applied.
    """

    curriculum: Curriculum
    gate: ProgressGate
    chapter_index: ChapterIndex
    lesson_index: LessonIndex
    stage_run: typing.Optional[StageRun] = None
    position: int = dataclasses.field(init=False, default=0)

    def __post_init__(self) -> None:
        self.enter_lesson(self.chapter_index, self.lesson_index)

    def enter_lesson(self, chapter_index: ChapterIndex, lesson_index: LessonIndex) -> None:
        """Starts a lesson at its first coding stage (or its first stage for a text-only lesson)."""
        self.curriculum.lesson(chapter_index, lesson_index)
        self.chapter_index = chapter_index
        self.lesson_index = lesson_index
        self._move_to(0)

    @property
    def coding_stage_indices(self) -> list[StageIndex]:
        return self.curriculum.coding_stage_indices(self.chapter_index, self.lesson_index)

    @property
    def total_coding_stages(self) -> int:
        return len(self.coding_stage_indices)

    @property
    def is_text_only(self) -> bool:
        return self.total_coding_stages == 0

    @property
    def current_stage_index(self) -> StageIndex:
        """Raw index of the stage on screen."""
        if self.is_text_only:
            return StageIndex(0)
        return self.coding_stage_indices[self.position]

    @property
    def current_coding_stage_index(self) -> typing.Optional[CodingStageIndex]:
        return None if self.is_text_only else CodingStageIndex(self.position)

    @property
    def current_stage(self) -> typing.Optional[StageModel]:
        lesson = self.curriculum.lesson(self.chapter_index, self.lesson_index)
        if not lesson.stages:
            return None
        return lesson.stages[self.current_stage_index]

    @property
    def display_stage_number(self) -> int:
        """1-based 'Stage X of Y' number within the lesson's coding stages."""
        return self.position + 1

    @property
    def can_go_previous(self) -> bool:
        return self.position > 0

    @property
    def can_go_next(self) -> bool:
        target = self.position + 1
        if target >= self.total_coding_stages:
            return False
        return self.gate.is_stage_unlocked(self.chapter_index, self.lesson_index, CodingStageIndex(target))

    @property
    def can_complete_lesson(self) -> bool:
        return self.gate.is_lesson_completed(self.chapter_index, self.lesson_index)

    def next(self) -> bool:
        if not self.can_go_next:
            _LOGGER.debug(f"Next stage locked at position {self.position}.")
            return False
        self._move_to(self.position + 1)
        return True

    def go_to(self, coding_stage_index: CodingStageIndex) -> bool:
        """Jumps straight to a coding stage of the lesson. Forward jumps need the target to be unlocked."""
        if not 0 <= coding_stage_index < self.total_coding_stages:
            raise IndexError(
                f"Coding stage {coding_stage_index} out of range for lesson {self.chapter_index}/{self.lesson_index}"
            )
        if coding_stage_index > self.position and not self.gate.is_stage_unlocked(
            self.chapter_index, self.lesson_index, coding_stage_index
        ):
            _LOGGER.debug(f"Coding stage {coding_stage_index} is locked.")
            return False
        self._move_to(coding_stage_index)
        return True

    def previous(self) -> bool:
        if not self.can_go_previous:
            return False
        self._move_to(self.position - 1)
        return True

    def stage_indicators(self) -> list[StageIndicator]:
        indicators = []
        for position in range(self.total_coding_stages):
            if position == self.position:
                indicators.append(StageIndicator.CURRENT)
            elif self.gate.is_stage_completed(self.chapter_index, self.lesson_index, CodingStageIndex(position)):
                indicators.append(StageIndicator.COMPLETED)
            elif position < self.position:
                indicators.append(StageIndicator.VISITED)
            else:
                indicators.append(StageIndicator.UPCOMING)
        return indicators

    def _move_to(self, position: int) -> None:
        self.position = position
        if self.stage_run is None:
            return
        stage = self.current_stage
        if isinstance(stage, CodingStageModel):
            self.stage_run.load_stage(
                self.chapter_index,
                self.lesson_index,
                CodingStageIndex(position),
                stage,
            )
        else:
            self.stage_run.unload_stage()
