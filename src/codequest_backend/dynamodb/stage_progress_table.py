import logging
import typing
from datetime import datetime, timezone

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from pydantic import ValidationError

from codequest_backend.models.progress_models import StageCompletionModel
from codequest_backend.utils.base_types import (
    ChapterIndex,
    CodingStageIndex,
    IsoTimestamp,
    LessonIndex,
    StageKey,
    UserId,
)

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class StageProgressTable:
    """
    Data Abstraction Layer for per-learner coding stage completions.

    Table Schema:
      - PK: userId (String)
      - SK: stageKey (String - "chapterIndex#lessonIndex#codingStageIndex")

    Items are only ever upserted, never deleted. The key tuple is unique, so repeating a completion
    leaves a single item and keeps the timestamp of the first success.
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)

    @staticmethod
    def make_stage_key(
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        coding_stage_index: CodingStageIndex,
    ) -> StageKey:
        return StageKey(f"{chapter_index}#{lesson_index}#{coding_stage_index}")

    def upsert_stage_completion(
        self,
        user_id: UserId,
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        coding_stage_index: CodingStageIndex,
        curriculum_version: typing.Optional[str] = None,
        timestamp_iso: typing.Optional[IsoTimestamp] = None,
    ) -> StageCompletionModel:
        """
        Marks a coding stage as completed for a learner.

        :param user_id: The ID of the learner.
        :param chapter_index: Chapter position in the curriculum.
        :param lesson_index: Lesson position in the chapter.
        :param coding_stage_index: Rank of the stage among the lesson's coding stages.
        :param curriculum_version: Content version the completion was earned on (kept from the first write).
        :param timestamp_iso: Completion time, defaults to now. Ignored if the item already has one.
        :return: The stored item as confirmed by DynamoDB.
        :raises ClientError: If the write fails.
        """
        if timestamp_iso is None:
            timestamp_iso = IsoTimestamp(datetime.now(timezone.utc).isoformat())

        stage_key = self.make_stage_key(chapter_index, lesson_index, coding_stage_index)
        update_parts = [
            "#completed = :completed",
            "#completedAt = if_not_exists(#completedAt, :completedAt)",
            "#chapterIndex = :chapterIndex",
            "#lessonIndex = :lessonIndex",
            "#codingStageIndex = :codingStageIndex",
        ]
        expression_attribute_names = {
            "#completed": "completed",
            "#completedAt": "completedAt",
            "#chapterIndex": "chapterIndex",
            "#lessonIndex": "lessonIndex",
            "#codingStageIndex": "codingStageIndex",
        }
        expression_attribute_values: dict[str, typing.Any] = {
            ":completed": True,
            ":completedAt": timestamp_iso,
            ":chapterIndex": chapter_index,
            ":lessonIndex": lesson_index,
            ":codingStageIndex": coding_stage_index,
        }
        if curriculum_version is not None:
            update_parts.append("#curriculumVersion = if_not_exists(#curriculumVersion, :curriculumVersion)")
            expression_attribute_names["#curriculumVersion"] = "curriculumVersion"
            expression_attribute_values[":curriculumVersion"] = curriculum_version

        try:
            response = self.table.update_item(
                Key={"userId": user_id, "stageKey": stage_key},
                UpdateExpression="SET " + ", ".join(update_parts),
                ExpressionAttributeNames=expression_attribute_names,
                ExpressionAttributeValues=expression_attribute_values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            _LOGGER.error(
                f"Failed to upsert stage completion {stage_key} for user {user_id}: {e.response['Error']['Message']}"
            )
            raise

        _LOGGER.info(f"Stage completion {stage_key} stored for user {user_id}.")
        return StageCompletionModel.model_validate(response["Attributes"])

    def get_stage_completion(
        self,
        user_id: UserId,
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        coding_stage_index: CodingStageIndex,
    ) -> typing.Optional[StageCompletionModel]:
        stage_key = self.make_stage_key(chapter_index, lesson_index, coding_stage_index)
        try:
            response = self.table.get_item(Key={"userId": user_id, "stageKey": stage_key})
            item_data = response.get("Item")
            if item_data:
                return StageCompletionModel.model_validate(item_data)
            _LOGGER.debug(f"No stage completion {stage_key} for user {user_id}")
            return None
        except ClientError as e:
            _LOGGER.error(f"Failed to get stage {stage_key} for user {user_id}: {e.response['Error']['Message']}")
            raise
        except ValidationError as ve:
            _LOGGER.error(f"Failed to validate stage {stage_key} for user {user_id}: {ve}", exc_info=True)
            return None

    def get_all_stage_completions_for_user(self, user_id: UserId) -> list[StageCompletionModel]:
        """
        Retrieves every stage completion of a learner by querying on the partition key.
        Invalid items are skipped with a warning.
        """
        _LOGGER.info(f"Fetching all stage completions for user_id: {user_id}")
        completions: list[StageCompletionModel] = []
        query_kwargs: dict[str, typing.Any] = {"KeyConditionExpression": Key("userId").eq(user_id)}
        try:
            while True:
                response = self.table.query(**query_kwargs)
                for item_data in response.get("Items", []):
                    try:
                        completions.append(StageCompletionModel.model_validate(item_data))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid stage item for user {user_id}: {item_data}. Error: {ve}")

                if "LastEvaluatedKey" not in response:
                    break
                _LOGGER.info(f"Fetching next page of stage completions for user_id: {user_id}")
                query_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        except ClientError as e:
            _LOGGER.error(f"Failed to query stage completions for user {user_id}: {e.response['Error']['Message']}")
            raise
        return completions
