class RecipeStorageError(Exception):
    """Base class for every error raised by the recipe storage layer."""


class InvalidIdentifierError(RecipeStorageError, ValueError):
    def __init__(self, message: str = "invalid id") -> None:
        super().__init__(message)


class InvalidPageError(RecipeStorageError, ValueError):
    def __init__(self, message: str = "invalid page") -> None:
        super().__init__(message)


class StoreAccessError(RecipeStorageError):
    """Raised when the key-value store rejects or fails a command.

    The message is the one reported by the store client, the original
    exception is available as ``__cause__``.
    """


class DecodeError(RecipeStorageError, ValueError):
    """Raised when a request payload cannot be turned into a recipe."""


__all__ = [
    "DecodeError",
    "InvalidIdentifierError",
    "InvalidPageError",
    "RecipeStorageError",
    "StoreAccessError",
]
