import logging
import time
import typing
import uuid

import boto3
from botocore.exceptions import ClientError

from codequest_backend.utils.base_types import UserId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

DEFAULT_GRADING_LOCK_TTL_SECONDS = 120


class GradingInProgressError(Exception):
    def __init__(self, user_id: UserId) -> None:
        self.user_id = user_id
        super().__init__(f"A grading attempt is already in flight for user {user_id}")


class GradingLockContext:
    def __init__(self, lock_table: "GradingLockTable", user_id: UserId, ttl_seconds: int):
        self.lock_table = lock_table
        self.user_id = user_id
        self.ttl_seconds = ttl_seconds
        self.lock_id = ""

        self.acquired_in_enter = False

    def __enter__(self):
        self.lock_id = str(uuid.uuid4())
        if not self.lock_table.acquire(self.user_id, self.lock_id, self.ttl_seconds):
            _LOGGER.warning(f"Rejected overlapping grading attempt for user {self.user_id}")
            raise GradingInProgressError(self.user_id)

        self.acquired_in_enter = True
        _LOGGER.debug(f"Grading lock {self.lock_id} acquired for user {self.user_id}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.acquired_in_enter:
            try:
                self.lock_table.release(self.user_id, self.lock_id)
            except ClientError as e:
                # The TTL expiry frees the lock eventually.
                _LOGGER.error(f"Failed to release grading lock for {self.user_id}: {e.response['Error']['Message']}")
        return False


class GradingLockTable:
    """
    Data Abstraction Layer for the per-learner grading lock.

    Table Schema:
      - PK: userId (String)
      - lockId (String), expiresAt (Number), ttl (Number, DynamoDB TTL attribute)

    At most one item exists per learner while a grading attempt is in flight. An item whose expiresAt has
    passed is treated as free, so a crashed attempt never blocks the learner for longer than the TTL.
    """

    def __init__(self, table_name: str) -> None:
        self.client = boto3.resource("dynamodb")
        self.table = self.client.Table(table_name)
        _LOGGER.info(f"GradingLockTable DAL initialized for table: {table_name}")

    def acquire(
        self,
        user_id: UserId,
        lock_id: str,
        ttl_seconds: int = DEFAULT_GRADING_LOCK_TTL_SECONDS,
        now_epoch: typing.Optional[int] = None,
    ) -> bool:
        """
        Takes the grading lock for a learner.

        :return: True if the lock was taken, False if another attempt holds an unexpired lock.
        """
        now = now_epoch if now_epoch is not None else int(time.time())
        expires_at = now + ttl_seconds
        try:
            self.table.put_item(
                Item={"userId": user_id, "lockId": lock_id, "expiresAt": expires_at, "ttl": expires_at},
                ConditionExpression="attribute_not_exists(userId) OR expiresAt < :now",
                ExpressionAttributeValues={":now": now},
            )
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                _LOGGER.info(f"Grading lock for user {user_id} is already held.")
                return False
            _LOGGER.error(f"Error acquiring grading lock for {user_id}: {e.response['Error']['Message']}")
            raise

    def release(self, user_id: UserId, lock_id: str) -> None:
        """Frees the lock, but only if it is still the one identified by lock_id."""
        try:
            self.table.delete_item(
                Key={"userId": user_id},
                ConditionExpression="lockId = :lockId",
                ExpressionAttributeValues={":lockId": lock_id},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                _LOGGER.warning(f"Grading lock {lock_id} for user {user_id} expired and was taken over.")
                return
            _LOGGER.error(f"Error releasing grading lock for {user_id}: {e.response['Error']['Message']}")
            raise

    def hold(self, user_id: UserId, ttl_seconds: int = DEFAULT_GRADING_LOCK_TTL_SECONDS) -> GradingLockContext:
        """
        Returns a context manager that holds the learner's grading lock for the duration of the block.
        Raises GradingInProgressError from __enter__ if another attempt is in flight.
        """
        return GradingLockContext(self, user_id, ttl_seconds)
