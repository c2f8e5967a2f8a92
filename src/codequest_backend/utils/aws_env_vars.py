import os
import typing

DEFAULT_GRADING_CASE_TIMEOUT_SECONDS = 2.0


def _get_resource_by_env_var(env_var: str) -> str:
    table_name = os.environ.get(env_var)
    if not table_name:
        raise ValueError(f"Missing environment variable: {env_var}")
    return table_name


def get_aws_region() -> str:
    return _get_resource_by_env_var("AWS_REGION")


def get_stage_progress_table_name() -> str:
    return _get_resource_by_env_var("STAGE_PROGRESS_TABLE_NAME")


def get_lesson_progress_table_name() -> str:
    return _get_resource_by_env_var("LESSON_PROGRESS_TABLE_NAME")


def get_curriculum_path() -> typing.Optional[str]:
    """
    Path to a curriculum JSON file overriding the bundled content.
    Returns None when unset so the bundled curriculum is used.
    """
    return os.environ.get("CURRICULUM_PATH") or None


def get_grading_case_timeout_seconds() -> float:
    """
    Per test case time limit for learner code.
    Defaults to DEFAULT_GRADING_CASE_TIMEOUT_SECONDS if not set; invalid or non-positive values are rejected.
    """
    raw_value = os.environ.get("GRADING_CASE_TIMEOUT_SECONDS")
    if not raw_value:
        return DEFAULT_GRADING_CASE_TIMEOUT_SECONDS
    try:
        timeout = float(raw_value)
    except ValueError:
        raise ValueError(f"Invalid GRADING_CASE_TIMEOUT_SECONDS: {raw_value}")
    if timeout <= 0:
        raise ValueError(f"GRADING_CASE_TIMEOUT_SECONDS must be positive, got {raw_value}")
    return timeout


def get_grading_lock_table_name() -> str:
    return _get_resource_by_env_var("GRADING_LOCK_TABLE_NAME")
