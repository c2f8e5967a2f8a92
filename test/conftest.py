"""
Pytest configuration and fixtures for all tests.

This file contains fixtures that are automatically available to all test files.
"""

import os
import typing

import boto3
import pytest
from moto import mock_aws

from codequest_backend.curriculum.curriculum import Curriculum
from codequest_backend.models.curriculum_models import CurriculumModel

REGION = "us-west-1"
STAGE_PROGRESS_TABLE_NAME = "test-stage-progress-table"
LESSON_PROGRESS_TABLE_NAME = "test-lesson-progress-table"
GRADING_LOCK_TABLE_NAME = "test-grading-lock-table"


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """
    Sets up environment variables required for all tests.

    This fixture runs once per test session and automatically applies to all tests
    (autouse=True). It sets environment variables that the application expects to be
    present at runtime.
    """
    os.environ["AWS_REGION"] = REGION
    os.environ["AWS_DEFAULT_REGION"] = REGION

    os.environ["STAGE_PROGRESS_TABLE_NAME"] = STAGE_PROGRESS_TABLE_NAME
    os.environ["LESSON_PROGRESS_TABLE_NAME"] = LESSON_PROGRESS_TABLE_NAME
    os.environ["GRADING_LOCK_TABLE_NAME"] = GRADING_LOCK_TABLE_NAME

    yield


@pytest.fixture(scope="function")
def aws_credentials() -> typing.Iterator[None]:
    """
    Mocks AWS credentials for moto (AWS mocking library).

    Used by the DynamoDB table tests that run inside moto's mock_aws context.
    """
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = REGION
    yield
    del os.environ["AWS_ACCESS_KEY_ID"]
    del os.environ["AWS_SECRET_ACCESS_KEY"]
    del os.environ["AWS_SECURITY_TOKEN"]
    del os.environ["AWS_SESSION_TOKEN"]
    os.environ["AWS_DEFAULT_REGION"] = REGION


@pytest.fixture
def progress_dynamodb(aws_credentials) -> typing.Iterator:
    """Creates both progress tables and the grading lock table inside moto's mock."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name=REGION)
        for table_name, sort_key in (
            (STAGE_PROGRESS_TABLE_NAME, "stageKey"),
            (LESSON_PROGRESS_TABLE_NAME, "lessonKey"),
        ):
            table = dynamodb.create_table(
                TableName=table_name,
                KeySchema=[
                    {"AttributeName": "userId", "KeyType": "HASH"},  # Partition Key
                    {"AttributeName": sort_key, "KeyType": "RANGE"},  # Sort Key
                ],
                AttributeDefinitions=[
                    {"AttributeName": "userId", "AttributeType": "S"},
                    {"AttributeName": sort_key, "AttributeType": "S"},
                ],
                BillingMode="PAY_PER_REQUEST",
            )
            table.wait_until_exists()

        lock_table = dynamodb.create_table(
            TableName=GRADING_LOCK_TABLE_NAME,
            KeySchema=[{"AttributeName": "userId", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "userId", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        lock_table.wait_until_exists()
        yield dynamodb


def _coding_stage(title: str, test_cases: list[dict]) -> dict:
    return {
        "type": "coding",
        "title": title,
        "description": f"{title} description",
        "starterCode": "def solve(values):\n    pass\n",
        "solution": "def solve(values):\n    return values\n",
        "hints": ["Think it through"],
        "testCases": test_cases,
    }


SAMPLE_CURRICULUM = {
    "version": "test-1",
    "chapters": [
        {
            "title": "Chapter One",
            "description": "First chapter",
            "imagePath": "/one.png",
            "details": "Details one",
            "lessons": [
                {
                    "name": "Lists",
                    "description": "List basics",
                    "icon": "L",
                    "stages": [
                        {"type": "text", "title": "Intro", "content": "Welcome"},
                        _coding_stage(
                            "First element",
                            [
                                {"input": [[1, 2, 3]], "expectedOutput": 1, "description": "numbers"},
                                {"input": [[]], "expectedOutput": None, "description": "empty"},
                            ],
                        ),
                        {"type": "text", "title": "Interlude", "content": "Keep going"},
                        _coding_stage(
                            "Reverse",
                            [{"input": [[1, 2, 3]], "expectedOutput": [3, 2, 1], "description": "numbers"}],
                        ),
                    ],
                },
                {
                    "name": "Sums",
                    "description": "Adding things",
                    "icon": "S",
                    "stages": [
                        _coding_stage(
                            "Add",
                            [
                                {"input": [1, 2], "expectedOutput": 3, "description": "small"},
                                {"input": [-1, 1], "expectedOutput": 0, "description": "zero"},
                            ],
                        ),
                    ],
                },
                {
                    "name": "Reading",
                    "description": "Text only",
                    "icon": "R",
                    "stages": [{"type": "text", "title": "Story", "content": "Once upon a time"}],
                },
                {
                    "name": "Records",
                    "description": "Dictionaries",
                    "icon": "D",
                    "stages": [
                        _coding_stage(
                            "Make record",
                            [{"input": ["a", 1], "expectedOutput": {"key": "a", "value": 1}, "description": "pair"}],
                        ),
                    ],
                },
            ],
        },
        {
            "title": "Chapter Two",
            "description": "Second chapter",
            "imagePath": "/two.png",
            "details": "Details two",
            "lessons": [
                {
                    "name": "Sorting",
                    "description": "Order",
                    "icon": "O",
                    "stages": [
                        _coding_stage(
                            "Sort",
                            [{"input": [[3, 1, 2]], "expectedOutput": [1, 2, 3], "description": "three"}],
                        ),
                    ],
                },
            ],
        },
    ],
}


@pytest.fixture
def sample_curriculum() -> Curriculum:
    """
    Chapter 0: lesson 0 = [text, coding, text, coding], lesson 1 = [coding], lesson 2 = [text],
    lesson 3 = [coding]. Chapter 1: lesson 0 = [coding].
    """
    return Curriculum(CurriculumModel.model_validate(SAMPLE_CURRICULUM))
