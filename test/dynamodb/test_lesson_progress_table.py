from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from codequest_backend.dynamodb.lesson_progress_table import LessonProgressTable
from codequest_backend.utils.base_types import IsoTimestamp, UserId

LESSON_PROGRESS_TABLE_NAME = "test-lesson-progress-table"


@pytest.fixture
def lesson_table(progress_dynamodb) -> LessonProgressTable:
    return LessonProgressTable(LESSON_PROGRESS_TABLE_NAME)


def test_make_lesson_key():
    assert LessonProgressTable.make_lesson_key(3, 4) == "3#4"


def test_upsert_lesson_completion(lesson_table: LessonProgressTable):
    user_id = UserId("learner1")
    record = lesson_table.upsert_lesson_completion(
        user_id, 0, 2, curriculum_version="v1", timestamp_iso=IsoTimestamp("2026-03-01T00:00:00+00:00")
    )

    assert record.lessonKey == "0#2"
    assert (record.chapterIndex, record.lessonIndex) == (0, 2)
    assert record.completed is True
    assert record.curriculumVersion == "v1"


def test_upsert_lesson_completion_keeps_first_timestamp(lesson_table: LessonProgressTable):
    user_id = UserId("learner2")
    lesson_table.upsert_lesson_completion(user_id, 0, 0, timestamp_iso=IsoTimestamp("2026-03-01T00:00:00+00:00"))
    again = lesson_table.upsert_lesson_completion(
        user_id, 0, 0, timestamp_iso=IsoTimestamp("2026-04-01T00:00:00+00:00")
    )

    assert again.completedAt == "2026-03-01T00:00:00+00:00"
    assert len(lesson_table.get_all_lesson_completions_for_user(user_id)) == 1


def test_get_all_lesson_completions_for_user(lesson_table: LessonProgressTable):
    user_id = UserId("learner3")
    assert lesson_table.get_all_lesson_completions_for_user(user_id) == []

    lesson_table.upsert_lesson_completion(user_id, 0, 0)
    lesson_table.upsert_lesson_completion(user_id, 0, 1)
    lesson_table.upsert_lesson_completion(UserId("other"), 0, 2)

    results = lesson_table.get_all_lesson_completions_for_user(user_id)
    assert {record.lessonKey for record in results} == {"0#0", "0#1"}


def test_query_failure_propagates():
    table = LessonProgressTable.__new__(LessonProgressTable)
    table.table = Mock()
    table.table.query.side_effect = ClientError(
        {"Error": {"Code": "InternalServerError", "Message": "boom"}}, "Query"
    )

    with pytest.raises(ClientError):
        table.get_all_lesson_completions_for_user(UserId("learner"))
