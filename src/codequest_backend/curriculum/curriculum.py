import typing

from codequest_backend.models.curriculum_models import (
    ChapterModel,
    CodingStageModel,
    CurriculumModel,
    LessonModel,
    StageModel,
)
from codequest_backend.utils.base_types import (
    ChapterIndex,
    CodingStageIndex,
    LessonIndex,
    StageIndex,
)


def _check_index(index: int, size: int, what: str) -> None:
    if index < 0 or index >= size:
        raise IndexError(f"{what} index {index} out of range (0..{size - 1})")


class Curriculum:
    """
    Read-only view over the static curriculum with numbering and lookup helpers.

    Two stage numbering schemes coexist:
      - raw stage index: position among all stages of a lesson (used for display)
      - coding stage index: rank among the coding stages of a lesson (persisted and used for gating)

    Lookups are total for in-range indices; out-of-range indices raise IndexError.
    """

    def __init__(self, model: CurriculumModel) -> None:
        self.model = model
        # lesson (chapter, lesson) -> raw stage indices of its coding stages
        self._coding_indices: dict[tuple[int, int], list[StageIndex]] = {}
        for chapter_index, chapter in enumerate(model.chapters):
            for lesson_index, lesson in enumerate(chapter.lessons):
                self._coding_indices[(chapter_index, lesson_index)] = [
                    StageIndex(stage_index)
                    for stage_index, stage in enumerate(lesson.stages)
                    if isinstance(stage, CodingStageModel)
                ]

    @property
    def version(self) -> str:
        return self.model.version

    @property
    def chapters(self) -> list[ChapterModel]:
        return self.model.chapters

    def chapter(self, chapter_index: ChapterIndex) -> ChapterModel:
        _check_index(chapter_index, len(self.model.chapters), "Chapter")
        return self.model.chapters[chapter_index]

    def lesson(self, chapter_index: ChapterIndex, lesson_index: LessonIndex) -> LessonModel:
        chapter = self.chapter(chapter_index)
        _check_index(lesson_index, len(chapter.lessons), "Lesson")
        return chapter.lessons[lesson_index]

    def stage(self, chapter_index: ChapterIndex, lesson_index: LessonIndex, stage_index: StageIndex) -> StageModel:
        lesson = self.lesson(chapter_index, lesson_index)
        _check_index(stage_index, len(lesson.stages), "Stage")
        return lesson.stages[stage_index]

    def lesson_count(self, chapter_index: ChapterIndex) -> int:
        return len(self.chapter(chapter_index).lessons)

    def stage_count(self, chapter_index: ChapterIndex) -> int:
        """Number of stages of every type in a chapter."""
        return sum(len(lesson.stages) for lesson in self.chapter(chapter_index).lessons)

    def chapter_coding_stage_count(self, chapter_index: ChapterIndex) -> int:
        return sum(
            self.coding_stage_count(chapter_index, LessonIndex(lesson_index))
            for lesson_index in range(self.lesson_count(chapter_index))
        )

    def coding_stage_count(self, chapter_index: ChapterIndex, lesson_index: LessonIndex) -> int:
        return len(self.coding_stage_indices(chapter_index, lesson_index))

    def coding_stage_indices(self, chapter_index: ChapterIndex, lesson_index: LessonIndex) -> list[StageIndex]:
        """
        Translation table from coding stage index to raw stage index:
        `coding_stage_indices(c, l)[k]` is the raw index of the k-th coding stage of the lesson.
        """
        self.lesson(chapter_index, lesson_index)
        return list(self._coding_indices[(chapter_index, lesson_index)])

    def coding_stage_index_of(
        self,
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        stage_index: StageIndex,
    ) -> typing.Optional[CodingStageIndex]:
        """Coding stage index of a raw stage, or None for a text stage."""
        self.stage(chapter_index, lesson_index, stage_index)
        indices = self._coding_indices[(chapter_index, lesson_index)]
        if stage_index not in indices:
            return None
        return CodingStageIndex(indices.index(stage_index))

    def coding_stage(
        self,
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        coding_stage_index: CodingStageIndex,
    ) -> CodingStageModel:
        indices = self.coding_stage_indices(chapter_index, lesson_index)
        _check_index(coding_stage_index, len(indices), "Coding stage")
        stage = self.stage(chapter_index, lesson_index, indices[coding_stage_index])
        assert isinstance(stage, CodingStageModel)
        return stage

    def global_stage_ordinal(
        self,
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        stage_index: StageIndex,
    ) -> int:
        """1-based position of a stage across the entire curriculum, counting every stage type."""
        self.stage(chapter_index, lesson_index, stage_index)
        ordinal = 1
        for previous_chapter in range(chapter_index):
            ordinal += self.stage_count(ChapterIndex(previous_chapter))
        for previous_lesson in self.chapter(chapter_index).lessons[:lesson_index]:
            ordinal += len(previous_lesson.stages)
        return ordinal + stage_index

    def global_coding_stage_ordinal(
        self,
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        stage_index: StageIndex,
    ) -> typing.Optional[int]:
        """1-based position among the coding stages of the entire curriculum; None for text stages."""
        coding_stage_index = self.coding_stage_index_of(chapter_index, lesson_index, stage_index)
        if coding_stage_index is None:
            return None
        ordinal = 1
        for previous_chapter in range(chapter_index):
            ordinal += self.chapter_coding_stage_count(ChapterIndex(previous_chapter))
        for previous_lesson in range(lesson_index):
            ordinal += self.coding_stage_count(chapter_index, LessonIndex(previous_lesson))
        return ordinal + coding_stage_index

    def has_coding_stage(
        self,
        chapter_index: int,
        lesson_index: int,
        coding_stage_index: int,
    ) -> bool:
        """Range check that never raises, for validating persisted keys against the current content."""
        indices = self._coding_indices.get((chapter_index, lesson_index))
        return indices is not None and 0 <= coding_stage_index < len(indices)

    def has_lesson(self, chapter_index: int, lesson_index: int) -> bool:
        return (chapter_index, lesson_index) in self._coding_indices
