import pytest

from codequest_backend.utils.aws_env_vars import (
    DEFAULT_GRADING_CASE_TIMEOUT_SECONDS,
    get_curriculum_path,
    get_grading_case_timeout_seconds,
    get_grading_lock_table_name,
    get_lesson_progress_table_name,
    get_stage_progress_table_name,
)


def test_table_names_from_environment():
    assert get_stage_progress_table_name() == "test-stage-progress-table"
    assert get_lesson_progress_table_name() == "test-lesson-progress-table"
    assert get_grading_lock_table_name() == "test-grading-lock-table"


def test_missing_table_name(monkeypatch):
    monkeypatch.delenv("STAGE_PROGRESS_TABLE_NAME")
    with pytest.raises(ValueError, match="STAGE_PROGRESS_TABLE_NAME"):
        get_stage_progress_table_name()


def test_curriculum_path(monkeypatch):
    monkeypatch.delenv("CURRICULUM_PATH", raising=False)
    assert get_curriculum_path() is None
    monkeypatch.setenv("CURRICULUM_PATH", "/tmp/curriculum.json")
    assert get_curriculum_path() == "/tmp/curriculum.json"


def test_grading_timeout_default(monkeypatch):
    monkeypatch.delenv("GRADING_CASE_TIMEOUT_SECONDS", raising=False)
    assert get_grading_case_timeout_seconds() == DEFAULT_GRADING_CASE_TIMEOUT_SECONDS


def test_grading_timeout_override(monkeypatch):
    monkeypatch.setenv("GRADING_CASE_TIMEOUT_SECONDS", "0.5")
    assert get_grading_case_timeout_seconds() == 0.5


@pytest.mark.parametrize("raw_value", ["soon", "0", "-1"])
def test_grading_timeout_invalid(monkeypatch, raw_value):
    monkeypatch.setenv("GRADING_CASE_TIMEOUT_SECONDS", raw_value)
    with pytest.raises(ValueError):
        get_grading_case_timeout_seconds()
