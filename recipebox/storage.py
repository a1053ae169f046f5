from __future__ import annotations

from typing import List, Protocol

from .errors import (
    DecodeError,
    InvalidIdentifierError,
    InvalidPageError,
    RecipeStorageError,
    StoreAccessError,
)
from .models import Recipe

PAGE_SIZE = 20


class RecipeRepository(Protocol):
    """Protocol describing the behaviour required by the web layer."""

    def save(self, recipe: Recipe) -> None:
        """Create the recipe when its id is ``0``, otherwise update it in place.

        On create the freshly allocated id is written back to ``recipe.id``.
        List attributes are write-once: a list that already exists in the
        store is never replaced.
        """

    def load(self, recipe_id: int) -> Recipe:
        """Return the full recipe stored under ``recipe_id``.

        Raises :class:`InvalidIdentifierError` for a non-positive id. An id
        that was never saved is not an error, it yields an empty recipe.
        """

    def list_recipes(self, page: int) -> List[Recipe]:
        """Return one page of ``PAGE_SIZE`` id/title summaries, 1-based."""


__all__ = [
    "DecodeError",
    "InvalidIdentifierError",
    "InvalidPageError",
    "PAGE_SIZE",
    "RecipeRepository",
    "RecipeStorageError",
    "StoreAccessError",
]
