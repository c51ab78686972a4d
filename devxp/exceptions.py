"""
Exception hierarchy for devxp

Normal inputs never raise: unknown activities fall back, levels clamp and
multiplier products are capped with a warning. What remains are caller bugs
in settings or in supplied hooks, reported through ConfigurationError.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)

DEFAULT_USER_MESSAGE = "An error occurred. Please try again."


class DevXPError(Exception):
    """
    Root of every devxp error

    Each instance carries a request id for correlating logs, the operation
    and user it happened for, free-form context, the wrapped cause and a
    message safe to show to end users. Instances log themselves when built.

    Example:
        raise DevXPError(
            message="Failed to evaluate achievements",
            user_id="dev-1",
            operation="evaluate_achievements",
            context={"achievement_id": "git_commit_10"}
        )
    """

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.operation = operation
        self.context = dict(context) if context else {}
        self.cause = cause
        self.user_message = user_message or DEFAULT_USER_MESSAGE
        self.request_id = request_id or str(uuid4())
        self.timestamp = datetime.now(timezone.utc)

        self._log_error()

    def _log_error(self) -> None:
        # 'message' is reserved on LogRecord, hence error_message
        details = {
            "error_type": type(self).__name__,
            "error_message": self.message,
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.cause is not None:
            details["cause"] = repr(self.cause)

        logger.error(
            f"{type(self).__name__}: {self.message}",
            extra=details,
            exc_info=self.cause,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data form for hosts that report errors upstream"""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "operation": self.operation,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class ConfigurationError(DevXPError):
    """
    Invalid engine settings, or a caller-supplied hook that misbehaved

    Raised by settings validation and when a custom progression formula or
    an achievement predicate throws or returns garbage.

    Example:
        raise ConfigurationError(
            message="Custom progression formula failed for level 3",
            config_key="progression.custom_formula",
            cause=exc
        )
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        self.config_key = config_key
        merged = {"config_key": config_key}
        merged.update(context or {})
        kwargs.setdefault("user_message", "The gamification engine is not properly configured.")
        super().__init__(message=message, context=merged, **kwargs)
