"""SNS subscription handler."""

import json
import logging
from typing import Any

from .common import handle_error, log_event

logger = logging.getLogger(__name__)


def handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    """
    Log every SNS message in the event.

    Records are not isolated from each other: a record without an ``Sns``
    envelope fails the whole invocation with a 500.
    """
    try:
        log_event(event)

        records = event.get("Records", [])
        for record in records:
            message = record["Sns"].get("Message")
            logger.info("Message received from SNS: %s", message)

        return {
            "statusCode": 200,
            "body": json.dumps({"message": "Hello from SNS!"}),
        }
    except Exception as e:  # pylint: disable=broad-exception-caught
        return handle_error(e)
