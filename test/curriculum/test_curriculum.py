import pytest
from pydantic import ValidationError

from codequest_backend.curriculum.curriculum import Curriculum
from codequest_backend.models.curriculum_models import CodingStageModel, CurriculumModel, TextStageModel


def test_basic_lookups(sample_curriculum: Curriculum):
    assert sample_curriculum.version == "test-1"
    assert len(sample_curriculum.chapters) == 2
    assert sample_curriculum.lesson(0, 1).name == "Sums"
    assert isinstance(sample_curriculum.stage(0, 0, 0), TextStageModel)
    assert isinstance(sample_curriculum.stage(0, 0, 1), CodingStageModel)


def test_counts(sample_curriculum: Curriculum):
    assert sample_curriculum.lesson_count(0) == 4
    assert sample_curriculum.stage_count(0) == 7
    assert sample_curriculum.chapter_coding_stage_count(0) == 4
    assert sample_curriculum.coding_stage_count(0, 0) == 2
    assert sample_curriculum.coding_stage_count(0, 2) == 0


def test_coding_stage_translation_table(sample_curriculum: Curriculum):
    assert sample_curriculum.coding_stage_indices(0, 0) == [1, 3]
    assert sample_curriculum.coding_stage_indices(0, 2) == []
    assert sample_curriculum.coding_stage(0, 0, 1).title == "Reverse"


def test_coding_stage_indices_returns_copy(sample_curriculum: Curriculum):
    indices = sample_curriculum.coding_stage_indices(0, 0)
    indices.append(99)
    assert sample_curriculum.coding_stage_indices(0, 0) == [1, 3]


def test_coding_stage_index_of(sample_curriculum: Curriculum):
    assert sample_curriculum.coding_stage_index_of(0, 0, 1) == 0
    assert sample_curriculum.coding_stage_index_of(0, 0, 3) == 1
    assert sample_curriculum.coding_stage_index_of(0, 0, 2) is None


def test_global_stage_ordinal(sample_curriculum: Curriculum):
    assert sample_curriculum.global_stage_ordinal(0, 0, 0) == 1
    assert sample_curriculum.global_stage_ordinal(0, 0, 3) == 4
    assert sample_curriculum.global_stage_ordinal(0, 1, 0) == 5
    assert sample_curriculum.global_stage_ordinal(1, 0, 0) == 8


def test_global_coding_stage_ordinal(sample_curriculum: Curriculum):
    assert sample_curriculum.global_coding_stage_ordinal(0, 0, 0) is None
    assert sample_curriculum.global_coding_stage_ordinal(0, 0, 1) == 1
    assert sample_curriculum.global_coding_stage_ordinal(0, 0, 3) == 2
    assert sample_curriculum.global_coding_stage_ordinal(0, 3, 0) == 4
    assert sample_curriculum.global_coding_stage_ordinal(1, 0, 0) == 5


@pytest.mark.parametrize(
    "lookup",
    [
        lambda c: c.chapter(2),
        lambda c: c.lesson(0, 4),
        lambda c: c.stage(0, 0, 4),
        lambda c: c.coding_stage(0, 0, 2),
        lambda c: c.coding_stage(0, 2, 0),
        lambda c: c.chapter(-1),
    ],
)
def test_out_of_range_lookups_raise(sample_curriculum: Curriculum, lookup):
    with pytest.raises(IndexError):
        lookup(sample_curriculum)


def test_range_checks_never_raise(sample_curriculum: Curriculum):
    assert sample_curriculum.has_coding_stage(0, 0, 1)
    assert not sample_curriculum.has_coding_stage(0, 0, 2)
    assert not sample_curriculum.has_coding_stage(5, 0, 0)
    assert sample_curriculum.has_lesson(0, 2)
    assert not sample_curriculum.has_lesson(1, 1)


def test_coding_stage_requires_test_cases():
    with pytest.raises(ValidationError):
        CurriculumModel.model_validate(
            {
                "version": "bad",
                "chapters": [
                    {
                        "title": "t",
                        "description": "d",
                        "imagePath": "/x.png",
                        "details": "",
                        "lessons": [
                            {
                                "name": "n",
                                "description": "d",
                                "icon": "i",
                                "stages": [
                                    {
                                        "type": "coding",
                                        "title": "no cases",
                                        "description": "d",
                                        "starterCode": "",
                                        "testCases": [],
                                    }
                                ],
                            }
                        ],
                    }
                ],
            }
        )


def test_unknown_stage_type_rejected():
    with pytest.raises(ValidationError):
        CurriculumModel.model_validate(
            {
                "version": "bad",
                "chapters": [
                    {
                        "title": "t",
                        "description": "d",
                        "imagePath": "/x.png",
                        "details": "",
                        "lessons": [
                            {"name": "n", "description": "d", "icon": "i", "stages": [{"type": "video", "title": "v"}]}
                        ],
                    }
                ],
            }
        )
