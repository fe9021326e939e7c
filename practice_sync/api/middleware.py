import json
import logging

from aiohttp import web
from pydantic import ValidationError

from practice_sync.core.exceptions import (
    InvalidSubmissionError, QuestionNotFoundError, SessionNotFoundError,
)

logger = logging.getLogger(__name__)

# Set by the authenticating gateway in front of this service
USER_HEADER = "X-User-Id"


def error_response(message: str, status: int) -> web.Response:
    return web.json_response({"success": False, "error": message}, status=status)


@web.middleware
async def identity_middleware(request: web.Request, handler):
    """Reject requests without a resolved user; expose the id as request["user_id"]."""
    user_id = request.headers.get(USER_HEADER, "").strip()
    if not user_id:
        return error_response("Unauthorized", 401)

    request["user_id"] = user_id
    return await handler(request)


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Map domain exceptions to JSON error responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except (SessionNotFoundError, QuestionNotFoundError) as e:
        logger.info("%s %s: %s", request.method, request.path, e)
        return error_response(str(e), 404)
    except (InvalidSubmissionError, ValidationError, json.JSONDecodeError, ValueError) as e:
        logger.info("Bad request %s %s: %s", request.method, request.path, e)
        return error_response(f"Invalid request: {e}", 400)
    except Exception:
        logger.exception("Unhandled error in %s %s", request.method, request.path)
        return error_response("Internal server error", 500)
