"""Redis key names used to store recipes.

``recipe_id`` is the id counter, ``recipes`` the ordered index of every id,
``recipe:<id>`` the hash of scalar fields and ``recipe:<id>:<attr>`` one list
per list-valued attribute.
"""

ID_COUNTER_KEY = "recipe_id"
INDEX_KEY = "recipes"

LIST_ATTRIBUTES = ("categories", "ingredients", "images")


def recipe_key(recipe_id: int) -> str:
    return f"recipe:{recipe_id}"


def recipe_list_key(recipe_id: int, name: str) -> str:
    if name not in LIST_ATTRIBUTES:
        raise ValueError(f"Unknown list attribute '{name}'.")
    return f"{recipe_key(recipe_id)}:{name}"


__all__ = [
    "ID_COUNTER_KEY",
    "INDEX_KEY",
    "LIST_ATTRIBUTES",
    "recipe_key",
    "recipe_list_key",
]
