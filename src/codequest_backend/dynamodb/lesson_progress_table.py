import logging
import typing
from datetime import datetime, timezone

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from pydantic import ValidationError

from codequest_backend.models.progress_models import LessonCompletionModel
from codequest_backend.utils.base_types import (
    ChapterIndex,
    IsoTimestamp,
    LessonIndex,
    LessonKey,
    UserId,
)

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class LessonProgressTable:
    """
    Data Abstraction Layer for per-learner lesson completions.

    Table Schema:
      - PK: userId (String)
      - SK: lessonKey (String - "chapterIndex#lessonIndex")
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    @staticmethod
    def make_lesson_key(chapter_index: ChapterIndex, lesson_index: LessonIndex) -> LessonKey:
        return LessonKey(f"{chapter_index}#{lesson_index}")

    def upsert_lesson_completion(
        self,
        user_id: UserId,
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        curriculum_version: typing.Optional[str] = None,
        timestamp_iso: typing.Optional[IsoTimestamp] = None,
    ) -> LessonCompletionModel:
        """
        Marks a lesson as completed for a learner, keeping the first completion timestamp on repeats.

        :return: The stored item as confirmed by DynamoDB.
        :raises ClientError: If the write fails.
        """
        if timestamp_iso is None:
            timestamp_iso = IsoTimestamp(datetime.now(timezone.utc).isoformat())

        lesson_key = self.make_lesson_key(chapter_index, lesson_index)
        update_expression = (
            "SET #completed = :completed, #completedAt = if_not_exists(#completedAt, :completedAt), "
            "#chapterIndex = :chapterIndex, #lessonIndex = :lessonIndex"
        )
        expression_attribute_names = {
            "#completed": "completed",
            "#completedAt": "completedAt",
            "#chapterIndex": "chapterIndex",
            "#lessonIndex": "lessonIndex",
        }
        expression_attribute_values: dict[str, typing.Any] = {
            ":completed": True,
            ":completedAt": timestamp_iso,
            ":chapterIndex": chapter_index,
            ":lessonIndex": lesson_index,
        }
        if curriculum_version is not None:
            update_expression += ", #curriculumVersion = if_not_exists(#curriculumVersion, :curriculumVersion)"
            expression_attribute_names["#curriculumVersion"] = "curriculumVersion"
            expression_attribute_values[":curriculumVersion"] = curriculum_version

        try:
            response = self.table.update_item(
                Key={"userId": user_id, "lessonKey": lesson_key},
                UpdateExpression=update_expression,
                ExpressionAttributeNames=expression_attribute_names,
                ExpressionAttributeValues=expression_attribute_values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            _LOGGER.error(
                f"Failed to upsert lesson completion {lesson_key} for user {user_id}: {e.response['Error']['Message']}"
            )
            raise

        _LOGGER.info(f"Lesson completion {lesson_key} stored for user {user_id}.")
        return LessonCompletionModel.model_validate(response["Attributes"])

    def get_all_lesson_completions_for_user(self, user_id: UserId) -> list[LessonCompletionModel]:
        """
        Retrieves every lesson completion of a learner by querying on the partition key.
        Invalid items are skipped with a warning.
        """
        _LOGGER.info(f"Fetching all lesson completions for user_id: {user_id}")
        completions: list[LessonCompletionModel] = []
        try:
            response = self.table.query(KeyConditionExpression=Key("userId").eq(user_id))
            for item_data in response.get("Items", []):
                try:
                    completions.append(LessonCompletionModel.model_validate(item_data))
                except ValidationError as ve:
                    _LOGGER.warning(f"Skipping invalid lesson item for user {user_id}: {item_data}. Error: {ve}")

            while "LastEvaluatedKey" in response:
                _LOGGER.info(f"Fetching next page of lesson completions for user_id: {user_id}")
                response = self.table.query(
                    KeyConditionExpression=Key("userId").eq(user_id),
                    ExclusiveStartKey=response["LastEvaluatedKey"],
                )
                for item_data in response.get("Items", []):
                    try:
                        completions.append(LessonCompletionModel.model_validate(item_data))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid lesson item for user {user_id}: {item_data}. Error: {ve}")

        except ClientError as e:
            _LOGGER.error(f"Failed to query lesson completions for user {user_id}: {e.response['Error']['Message']}")
            raise
        return completions
