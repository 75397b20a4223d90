from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class GameError(Exception):
    """Base class for domain errors surfaced to API callers.

    Each subclass carries the HTTP status it maps to and a short machine
    readable code. Messages must never include the target word or cipher
    generation metadata.
    """

    status_code = 400
    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotFound(GameError):
    status_code = 404
    code = "not_found"


class Forbidden(GameError):
    status_code = 403
    code = "forbidden"


class InvalidInput(GameError, ValueError):
    status_code = 400
    code = "invalid_input"


class InvalidMode(InvalidInput):
    code = "invalid_mode"


class InvalidHintKind(InvalidInput):
    code = "invalid_kind"


class LimitReached(GameError):
    status_code = 429
    code = "limit_reached"


class AlreadyUsed(GameError):
    status_code = 409
    code = "already_used"


class AlreadyCompleted(GameError):
    status_code = 409
    code = "already_completed"


class Conflict(GameError):
    status_code = 409
    code = "conflict"


class BankEntryInvalid(GameError):
    """A stored bank word cannot be turned into a puzzle; a data problem, not a client one."""

    status_code = 500
    code = "bank_entry_invalid"


# PUBLIC_INTERFACE
def game_exception_handler(exc, context):
    """DRF exception handler rendering GameError as {"error", "code"}.

    Anything else falls through to REST framework's default handler.
    """
    from rest_framework.response import Response
    from rest_framework.views import exception_handler

    if isinstance(exc, GameError):
        view = context.get("view")
        logger.info(
            "Request rejected by %s: %s (%s)",
            view.__class__.__name__ if view is not None else "view",
            exc.code,
            exc.message,
        )
        return Response({"error": exc.message, "code": exc.code}, status=exc.status_code)
    return exception_handler(exc, context)
