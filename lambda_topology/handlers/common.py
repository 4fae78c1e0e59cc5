"""Shared helpers for the API Gateway and SNS handlers."""

import json
import logging
import os
from typing import Any

log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, log_level, logging.INFO))
logger = logging.getLogger(__name__)


class InvalidEventDataError(Exception):
    """Raised when an event body is missing or is not valid JSON."""


def log_event(event: Any) -> None:
    """Log the raw inbound event."""
    logger.info("Received event: %s", json.dumps(event, indent=2, default=str))


def handle_error(error: Exception) -> dict[str, Any]:
    """Convert an exception into a 500 response."""
    logger.error("An error occurred: %s", error)
    return {
        "statusCode": 500,
        "body": json.dumps({"error": str(error)}),
    }


def parse_event_data(event: Any) -> Any:
    """
    Parse the JSON body of an API Gateway event.

    Args:
        event: API Gateway proxy event with a JSON-encoded ``body`` string.

    Returns:
        The decoded body.

    Raises:
        InvalidEventDataError: If the body is missing or malformed.
    """
    try:
        body = event.get("body") if isinstance(event, dict) else None
        if not body:
            raise ValueError("Missing event body")
        return json.loads(body)
    except (ValueError, TypeError) as e:
        raise InvalidEventDataError("Invalid event data") from e
