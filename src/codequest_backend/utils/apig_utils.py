import base64
import enum
import json
import logging
import re
import typing

from codequest_backend.utils.base_types import UserId

_LOGGER = logging.getLogger(__name__)


class ErrorCode(enum.Enum):
    """Error codes returned to API clients, paired with an HTTP status and a default message."""

    VALIDATION_ERROR = (400, "Invalid request data")
    AUTHENTICATION_FAILED = (401, "User identification failed")
    AUTHORIZATION_FAILED = (403, "Access denied")
    STAGE_LOCKED = (403, "Stage is locked")
    RESOURCE_NOT_FOUND = (404, "Resource not found or method not allowed")
    METHOD_NOT_ALLOWED = (405, "Method not allowed")
    GRADING_IN_PROGRESS = (409, "A grading attempt is already running, wait for its result")
    INTERNAL_ERROR = (500, "An unexpected error occurred")
    PROGRESS_STORE_UNAVAILABLE = (503, "Progress could not be saved, please retry")

    def __init__(self, status_code: int, default_message: str) -> None:
        self.status_code = status_code
        self.default_message = default_message


def get_event_body(event: dict) -> bytes:
    if "isBase64Encoded" in event and event["isBase64Encoded"]:
        return base64.b64decode(event["body"])
    else:
        return event["body"].encode("utf-8")


def get_method(event: dict) -> str:
    return event.get("requestContext", {}).get("http", {}).get("method", "UNKNOWN")


def get_path(event: dict) -> str:
    return event.get("requestContext", {}).get("http", {}).get("path", "")


def get_query_string_parameters(event: dict) -> dict[str, str]:
    # API Gateway sends null when the request has no query string
    return event.get("queryStringParameters") or {}


def get_user_id_from_event(event: dict[str, typing.Any]) -> typing.Optional[UserId]:
    """
    Extracts the learner ID from the Lambda event context provided by the custom Lambda Authorizer.
    The authorizer places the decoded JWT payload into the 'lambda' key.
    """
    try:
        user_id = event.get("requestContext", {}).get("authorizer", {}).get("lambda", {}).get("sub")
        if user_id:
            return UserId(str(user_id))

        _LOGGER.warning("User ID ('sub') not found in authorizer's lambda context.")
        return None
    except Exception as e:
        _LOGGER.error("Error extracting user_id from event: %s", str(e))
        return None


def get_allowed_origin(event: dict[str, typing.Any]) -> str:
    """
    Validates the Origin header against allowed patterns and returns it if valid.

    Allowed Origins:
    - localhost/127.0.0.1 (any port) - for local development
    - *.github.io - for GitHub Pages deployments

    :returns: The origin if valid, otherwise "null" (which causes browser to deny the response)
    """
    origin = event.get("headers", {}).get("origin", "")

    # No origin header present (e.g., curl testing, direct API calls)
    if not origin:
        return "*"

    if origin.startswith("http://localhost:") or origin.startswith("http://127.0.0.1:"):
        return origin

    allowed_patterns = [r"^https://.*\.github\.io$"]
    for pattern in allowed_patterns:
        if re.match(pattern, origin):
            return origin

    _LOGGER.warning(f"Origin not in allowed patterns: {origin}")
    return "null"


def format_lambda_response(
    status_code: int,
    body: typing.Any,
    *,
    event: typing.Optional[dict[str, typing.Any]] = None,
    additional_headers: typing.Optional[dict[str, str]] = None,
) -> dict[str, typing.Any]:
    """
    Formats API Gateway proxy responses with CORS headers.
    """
    allowed_origin = get_allowed_origin(event) if event else "*"

    headers = {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": allowed_origin,
        "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Amz-Date,X-Api-Key,X-Amz-Security-Token",
        "Access-Control-Allow-Methods": "OPTIONS,GET,POST",
    }
    if additional_headers:
        headers.update(additional_headers)

    return {
        "statusCode": status_code,
        "headers": headers,
        "body": json.dumps(body) if body is not None else None,
    }


def create_error_response(
    error_code: ErrorCode,
    message: typing.Optional[str] = None,
    *,
    details: typing.Any = None,
    event: typing.Optional[dict[str, typing.Any]] = None,
    extra: typing.Optional[dict[str, typing.Any]] = None,
) -> dict[str, typing.Any]:
    """
    Builds an error response with a stable `errorCode`, a human readable `message`
    and optional `details` (e.g. pydantic validation errors).
    """
    body: dict[str, typing.Any] = {
        "message": message or error_code.default_message,
        "errorCode": error_code.name,
    }
    if details is not None:
        body["details"] = details
    if extra:
        body.update(extra)
    return format_lambda_response(error_code.status_code, body, event=event)
