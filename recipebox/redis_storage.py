from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional, Tuple

import redis

from .errors import StoreAccessError
from .keys import ID_COUNTER_KEY, INDEX_KEY, LIST_ATTRIBUTES, recipe_key, recipe_list_key
from .models import Recipe, validate_page, validate_recipe_id
from .storage import PAGE_SIZE, RecipeRepository

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = "localhost:6379"

_TRUE_VALUES = {"1", "t", "T", "true", "TRUE", "True"}
_FALSE_VALUES = {"0", "f", "F", "false", "FALSE", "False"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    logger.warning("Could not parse %s=%r as a boolean, defaulting to %s", name, raw, default)
    return default


def _split_address(address: str) -> Tuple[str, int]:
    host, separator, port = address.rpartition(":")
    if not separator:
        return address, 6379
    return host or "localhost", int(port)


def _summary(index_id: str, stored_id: Optional[str], title: Optional[str]) -> Recipe:
    return Recipe(id=int(stored_id or index_id), title=title or "")


class RedisRecipeStorage(RecipeRepository):
    """Recipe storage backed by Redis hashes and lists.

    A recipe is spread over several keys (see :mod:`recipebox.keys`): the
    scalar fields live in one hash, each list attribute in its own list, and
    every id is appended once to the ``recipes`` index which drives paging.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_env(cls) -> "RedisRecipeStorage":
        """Build a storage instance from environment variables."""

        address = os.environ.get("REDIS_HOST") or DEFAULT_ADDRESS
        host, port = _split_address(address)
        password = os.environ.get("REDIS_PASSWORD") or None
        db = int(os.environ.get("REDIS_DB", "0"))
        use_tls = _env_flag("REDIS_TLS", True)
        insecure = _env_flag("REDIS_INSECURE_SKIP_VERIFY", False)

        client = redis.Redis(
            host=host,
            port=port,
            db=db,
            password=password,
            ssl=use_tls,
            ssl_cert_reqs="none" if insecure else "required",
            ssl_check_hostname=not insecure,
            decode_responses=True,
        )
        logger.info("Using Redis at %s:%s (tls=%s, db=%s)", host, port, use_tls, db)
        return cls(client)

    def save(self, recipe: Recipe) -> None:
        if not recipe.is_new:
            validate_recipe_id(recipe.id)

        created = recipe.is_new
        try:
            if created:
                # Never handed back: a failed transaction below leaves a gap.
                recipe.id = int(self._client.incr(ID_COUNTER_KEY))
            self._write(recipe, created=created)
        except redis.RedisError as exc:
            raise StoreAccessError(str(exc)) from exc

        logger.info("%s recipe %s", "Created" if created else "Updated", recipe.id)

    def _write(self, recipe: Recipe, *, created: bool) -> None:
        list_keys: Dict[str, str] = {
            name: recipe_list_key(recipe.id, name)
            for name, values in recipe.list_attributes().items()
            if values is not None
        }

        with self._client.pipeline(transaction=True) as pipe:
            if list_keys:
                # EXEC fails if any of these lists is written after the check.
                pipe.watch(*list_keys.values())

            pending: List[Tuple[str, List[str]]] = []
            for name, key in list_keys.items():
                if pipe.exists(key):
                    logger.debug("Recipe %s already has %s, leaving it unchanged", recipe.id, name)
                    continue
                values = getattr(recipe, name)
                if values:
                    pending.append((key, values))

            pipe.multi()
            if created:
                pipe.rpush(INDEX_KEY, recipe.id)
            pipe.hset(recipe_key(recipe.id), mapping=recipe.to_hash())
            for key, values in pending:
                pipe.rpush(key, *values)
            pipe.execute()

    def load(self, recipe_id: int) -> Recipe:
        recipe_id = validate_recipe_id(recipe_id)

        try:
            with self._client.pipeline(transaction=False) as pipe:
                pipe.hgetall(recipe_key(recipe_id))
                for name in LIST_ATTRIBUTES:
                    pipe.lrange(recipe_list_key(recipe_id, name), 0, -1)
                fields, *lists = pipe.execute()
        except redis.RedisError as exc:
            raise StoreAccessError(str(exc)) from exc

        try:
            recipe = Recipe.from_hash(recipe_id, fields)
        except ValueError as exc:
            raise StoreAccessError(f"recipe {recipe_id} is corrupt: {exc}") from exc

        for name, values in zip(LIST_ATTRIBUTES, lists):
            setattr(recipe, name, list(values))
        return recipe

    def list_recipes(self, page: int) -> List[Recipe]:
        page = validate_page(page)
        start, stop = (page - 1) * PAGE_SIZE, page * PAGE_SIZE - 1

        try:
            recipe_ids = self._client.lrange(INDEX_KEY, start, stop)
            if not recipe_ids:
                return []

            with self._client.pipeline(transaction=False) as pipe:
                for recipe_id in recipe_ids:
                    pipe.hmget(recipe_key(int(recipe_id)), "id", "title")
                rows = pipe.execute()
        except redis.RedisError as exc:
            raise StoreAccessError(str(exc)) from exc

        return [
            _summary(index_id, stored_id, title)
            for index_id, (stored_id, title) in zip(recipe_ids, rows)
        ]


__all__ = ["RedisRecipeStorage"]
