import logging
import re
from typing import Optional, Tuple, Type

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import BadRequest

from .errors import InvalidIdentifierError, InvalidPageError, RecipeStorageError
from .models import MAX_ID, Recipe
from .redis_storage import RedisRecipeStorage
from .storage import RecipeRepository

logger = logging.getLogger(__name__)

_DECIMAL = re.compile(r"[+-]?[0-9]+")


def create_app(storage: Optional[RecipeRepository] = None) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    storage:
        Optional recipe repository. When ``None`` the application will use
        :class:`RedisRecipeStorage` configured through environment variables.
    """

    app = Flask(__name__)

    if storage is None:
        storage = RedisRecipeStorage.from_env()
    app.config["RECIPE_STORAGE"] = storage

    @app.errorhandler(RecipeStorageError)
    def handle_storage_error(exc: RecipeStorageError) -> Tuple[str, int, dict]:
        logger.warning("%s %s failed: %s", request.method, request.path, exc)
        return _plain_text(str(exc))

    @app.errorhandler(BadRequest)
    def handle_bad_request(exc: BadRequest) -> Tuple[str, int, dict]:
        logger.warning("%s %s rejected: %s", request.method, request.path, exc.description)
        return _plain_text(exc.description or "bad request")

    @app.post("/recipe")
    def create_recipe() -> Tuple[Response, int]:
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]

        recipe = Recipe.from_dict(request.get_json(force=True))
        recipe.id = 0
        storage_backend.save(recipe)

        return jsonify(id=recipe.id), 201

    @app.put("/recipe/<recipe_id>")
    def update_recipe(recipe_id: str) -> Response:
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]

        parsed_id = _parse_positive(recipe_id, InvalidIdentifierError)
        recipe = Recipe.from_dict(request.get_json(force=True))
        recipe.id = parsed_id
        storage_backend.save(recipe)

        return jsonify(id=recipe.id)

    @app.get("/recipe/<recipe_id>")
    def get_recipe(recipe_id: str) -> Response:
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]

        recipe = storage_backend.load(_parse_positive(recipe_id, InvalidIdentifierError))
        return jsonify(recipe.to_dict())

    @app.get("/recipes")
    def list_recipes() -> Response:
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]

        page = request.args.get("page")
        if page is None:
            raise BadRequest("missing page parameter")

        recipes = storage_backend.list_recipes(_parse_positive(page, InvalidPageError))
        return jsonify([recipe.to_summary() for recipe in recipes])

    return app


def _parse_positive(value: str, error: Type[RecipeStorageError]) -> int:
    if not _DECIMAL.fullmatch(value):
        raise error()
    parsed = int(value)
    if not 0 < parsed <= MAX_ID:
        raise error()
    return parsed


def _plain_text(message: str) -> Tuple[str, int, dict]:
    return message, 400, {"Content-Type": "text/plain; charset=utf-8"}


__all__ = ["create_app", "Recipe"]
