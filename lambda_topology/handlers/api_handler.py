"""API Gateway (HTTP API, payload v2.0) handler."""

import json
from typing import Any

from .common import handle_error, log_event, parse_event_data


def handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    """Echo the parsed request body back to the caller."""
    try:
        log_event(event)
        data = parse_event_data(event)
        return {
            "statusCode": 200,
            "body": json.dumps(
                {"message": "Hello from API Gateway!", "data": data}
            ),
        }
    except Exception as e:  # pylint: disable=broad-exception-caught
        return handle_error(e)
