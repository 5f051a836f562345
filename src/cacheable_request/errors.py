"""
Errors emitted by cacheable requests.

Every error reaching a caller is either a ``CacheError`` (store or policy
failure) or a ``RequestError`` (request function or transport failure).
"""
from typing import Optional, Union


class CacheableRequestError(Exception):
    """Base class for categorized cacheable request errors."""

    def __init__(self, original: Union[BaseException, str]) -> None:
        if isinstance(original, BaseException):
            message = str(original) or type(original).__name__
            self.original: Optional[BaseException] = original
        else:
            message = original
            self.original = None
        super().__init__(message)
        self.__cause__ = self.original


class CacheError(CacheableRequestError):
    """Store lookup/write/delete failure or unreadable cache entry."""


class RequestError(CacheableRequestError):
    """Request construction or dispatch failure, including aborts."""


class RequestAbortedError(Exception):
    """Raised when an outgoing request is aborted by its caller."""

    def __init__(self, message: str = "Request aborted") -> None:
        super().__init__(message)
