"""Base class for all the exceptions that are thrown from the curlish package."""

__all__ = ("Error",)


class Error(RuntimeError):
    """Base class for all exceptions that are thrown from the curlish package."""

    pass
