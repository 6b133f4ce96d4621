"""
Task Board Error Taxonomy

Every failure the board services report is a TaskBoardError carrying a
category. Routes map the category to an HTTP status and serialize the
error with ``to_dict()``.
"""

from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class ErrorCategory(str, Enum):
    """Error categories for classification."""
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID_ARGUMENT = "invalid_argument"
    STORAGE_FAILURE = "storage_failure"


HTTP_STATUS_BY_CATEGORY = {
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.FORBIDDEN: 403,
    ErrorCategory.INVALID_ARGUMENT: 400,
    ErrorCategory.STORAGE_FAILURE: 500,
}


class TaskBoardError(Exception):
    """Base exception for task board errors."""
    category = ErrorCategory.STORAGE_FAILURE

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now()

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CATEGORY[self.category]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'message': self.message,
            'category': self.category.value,
            'context': self.context,
            'timestamp': self.timestamp.isoformat()
        }


class NotFoundError(TaskBoardError):
    """A referenced task or project does not exist."""
    category = ErrorCategory.NOT_FOUND


class ForbiddenError(TaskBoardError):
    """The access-control check denied the caller."""
    category = ErrorCategory.FORBIDDEN


class InvalidArgumentError(TaskBoardError):
    """Malformed request: bad instruction shape, empty batch, mixed projects."""
    category = ErrorCategory.INVALID_ARGUMENT


class StorageFailureError(TaskBoardError):
    """A read or write against the store failed. Carries the store's message."""
    category = ErrorCategory.STORAGE_FAILURE
