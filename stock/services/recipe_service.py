import logging
from typing import Dict, Any, List
from decimal import Decimal
from django.db.models import Avg, Count, Q

from stock.models import Ingredient, Recipe, RecipeIngredient
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, ConflictError,
    to_decimal, to_int, round_decimal, round_money
)
from stock.services.recipe_costing import rollup_cost
from stock.services.unit_of_work import atomic_operation, unit_of_work

logger = logging.getLogger(__name__)

SCALAR_FIELDS = (
    "name", "description", "portion_size", "preparation_time", "cooking_time",
    "difficulty", "instructions", "chef_notes", "active",
)


class RecipeIngredientService:

    @classmethod
    def serialize(cls, line: RecipeIngredient) -> Dict[str, Any]:
        return {
            "id": line.id,
            "ingredient_id": line.ingredient_id,
            "ingredient_name": line.ingredient.name,
            "quantity": str(line.quantity),
            "unit": line.unit,
            "cost_per_unit": str(line.cost_per_unit),
            "line_cost": str(round_money(line.quantity * line.cost_per_unit)),
            "current_cost_per_unit": str(line.ingredient.cost_per_unit),
            "notes": line.notes,
            "is_optional": line.is_optional,
            "preparation_step": line.preparation_step,
        }

    @classmethod
    def clean_lines(cls, ingredients: List[Dict]) -> List[Dict]:
        """
        Validate submitted ingredient lines without touching the database.
        Quantities and costs are quantized to the stored precision so the
        roll-up sees exactly what gets persisted.
        """
        if not ingredients:
            raise ValidationError("A recipe needs at least one ingredient", "ingredients")
        if not isinstance(ingredients, (list, tuple)):
            raise ValidationError("ingredients must be a list", "ingredients")

        cleaned = []
        for index, line in enumerate(ingredients):
            if not isinstance(line, dict):
                raise ValidationError(f"Ingredient line {index + 1} must be an object", "ingredients")

            ingredient_id = to_int(line.get("ingredient_id"), "ingredient_id")
            if ingredient_id is None:
                raise ValidationError(f"Ingredient line {index + 1} is missing ingredient_id", "ingredient_id")

            quantity = round_decimal(to_decimal(line.get("quantity"), "quantity"))
            if quantity <= 0:
                raise ValidationError(f"Ingredient line {index + 1}: quantity must be positive", "quantity")

            cost = line.get("cost_per_unit")
            if cost is not None:
                cost = round_decimal(to_decimal(cost, "cost_per_unit"))
                if cost < 0:
                    raise ValidationError(f"Ingredient line {index + 1}: cost_per_unit cannot be negative", "cost_per_unit")

            cleaned.append({
                "ingredient_id": ingredient_id,
                "quantity": quantity,
                "unit": line.get("unit") or "g",
                "cost_per_unit": cost,
                "notes": line.get("notes") or "",
                "is_optional": bool(line.get("is_optional", False)),
                "preparation_step": to_int(line.get("preparation_step"), "preparation_step", index + 1),
            })
        return cleaned

    @classmethod
    def write_lines(cls, recipe: Recipe, lines: List[Dict]) -> List[RecipeIngredient]:
        """Insert cleaned lines. Must run inside the recipe's unit of work."""
        ids = {line["ingredient_id"] for line in lines}
        catalog = Ingredient.objects.in_bulk(ids)
        missing = sorted(ids - set(catalog))
        if missing:
            raise NotFoundError("Ingredient", ", ".join(str(i) for i in missing))

        rows = []
        for line in lines:
            ingredient = catalog[line["ingredient_id"]]
            cost = line["cost_per_unit"]
            if cost is None:
                # Snapshot the catalog price at the moment the line is written
                cost = ingredient.cost_per_unit
                line["cost_per_unit"] = cost
            rows.append(RecipeIngredient(
                recipe=recipe,
                ingredient=ingredient,
                quantity=line["quantity"],
                unit=line["unit"],
                cost_per_unit=cost,
                notes=line["notes"],
                is_optional=line["is_optional"],
                preparation_step=line["preparation_step"],
            ))
        return RecipeIngredient.objects.bulk_create(rows)


class RecipeService(BaseService):
    model = Recipe
    create_fields = ("ingredients", *SCALAR_FIELDS)

    @classmethod
    def serialize(cls, recipe: Recipe, include_ingredients: bool = True) -> Dict[str, Any]:
        data = {
            "id": recipe.id,
            "uuid": str(recipe.uuid),
            "name": recipe.name,
            "description": recipe.description,
            "portion_size": str(recipe.portion_size),
            "preparation_time": recipe.preparation_time,
            "cooking_time": recipe.cooking_time,
            "total_time": recipe.preparation_time + recipe.cooking_time,
            "difficulty": recipe.difficulty,
            "difficulty_display": recipe.get_difficulty_display(),
            "instructions": recipe.instructions,
            "chef_notes": recipe.chef_notes,
            "total_cost": str(recipe.total_cost),
            "version": recipe.version,
            "active": recipe.active,
            "created_at": recipe.created_at.isoformat(),
            "updated_at": recipe.updated_at.isoformat(),
        }

        if include_ingredients:
            data["ingredients"] = [
                RecipeIngredientService.serialize(line)
                for line in recipe.ingredients.select_related("ingredient").order_by("preparation_step", "id")
            ]
            data["ingredient_count"] = len(data["ingredients"])

        return data

    @classmethod
    def serialize_brief(cls, recipe: Recipe) -> Dict[str, Any]:
        return {
            "id": recipe.id,
            "name": recipe.name,
            "difficulty": recipe.difficulty,
            "portion_size": str(recipe.portion_size),
            "total_cost": str(recipe.total_cost),
            "ingredient_count": getattr(recipe, "ingredient_count", None),
            "version": recipe.version,
            "active": recipe.active,
        }

    @classmethod
    def _clean_fields(cls, fields: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - set(SCALAR_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown recipe fields: {', '.join(sorted(unknown))}")

        cleaned = {}
        for name, value in fields.items():
            if name == "name":
                value = (value or "").strip()
                if not value:
                    raise ValidationError("Recipe name is required", "name")
            elif name == "portion_size":
                value = round_decimal(to_decimal(value, "portion_size"), 2)
                if value <= 0:
                    raise ValidationError("portion_size must be positive", "portion_size")
            elif name in ("preparation_time", "cooking_time"):
                value = to_int(value, name, 0)
                if value < 0:
                    raise ValidationError(f"{name} cannot be negative", name)
            elif name == "difficulty":
                if value not in Recipe.Difficulty.values:
                    raise ValidationError(
                        f"Invalid difficulty. Valid: {list(Recipe.Difficulty.values)}", "difficulty"
                    )
            elif name == "active":
                value = bool(value)
            else:
                value = value or ""
            cleaned[name] = value
        return cleaned

    @classmethod
    def _lock(cls, recipe_id: int, expected_version: int = None) -> Recipe:
        expected_version = to_int(expected_version, "expected_version")
        recipe = cls.lock_or_404(recipe_id, "Recipe")
        if expected_version is not None and expected_version != recipe.version:
            raise ConflictError(
                f"Recipe {recipe_id} was modified: expected version {expected_version}, "
                f"current version {recipe.version}",
                "stale_version",
                {"expected_version": expected_version, "current_version": recipe.version},
            )
        return recipe

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             search: str = None,
             difficulty: str = None,
             active: bool = None) -> Dict[str, Any]:
        queryset = cls.model.objects.annotate(ingredient_count=Count("ingredients"))

        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(description__icontains=search)
            )

        if difficulty:
            queryset = queryset.filter(difficulty=difficulty)

        if active is not None:
            queryset = queryset.filter(active=active)

        queryset = queryset.order_by("-active", "name")

        recipes, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "recipes": [cls.serialize_brief(r) for r in recipes],
            "pagination": pagination,
            "summary": cls._summary(),
            "difficulties": [{"value": c[0], "label": c[1]} for c in Recipe.Difficulty.choices],
        })

    @classmethod
    def _summary(cls) -> Dict[str, Any]:
        totals = cls.model.objects.aggregate(
            total=Count("id"),
            active=Count("id", filter=Q(active=True)),
            easy=Count("id", filter=Q(difficulty=Recipe.Difficulty.EASY)),
            medium=Count("id", filter=Q(difficulty=Recipe.Difficulty.MEDIUM)),
            hard=Count("id", filter=Q(difficulty=Recipe.Difficulty.HARD)),
            avg_cost=Avg("total_cost"),
        )
        totals["inactive"] = totals["total"] - totals["active"]
        totals["avg_cost"] = str(round_money(Decimal(str(totals["avg_cost"] or 0))))
        return totals

    @classmethod
    def get(cls, recipe_id: int) -> Dict[str, Any]:
        recipe = cls.get_or_404(recipe_id, "Recipe")
        return success_response({"recipe": cls.serialize(recipe)})

    @classmethod
    def create(cls,
               name: str,
               ingredients: List[Dict],
               description: str = "",
               portion_size: Decimal = Decimal("1.00"),
               preparation_time: int = 0,
               cooking_time: int = 0,
               difficulty: str = Recipe.Difficulty.MEDIUM,
               instructions: str = "",
               chef_notes: str = "",
               active: bool = True) -> Dict[str, Any]:
        fields = cls._clean_fields({
            "name": name,
            "description": description,
            "portion_size": portion_size,
            "preparation_time": preparation_time,
            "cooking_time": cooking_time,
            "difficulty": difficulty,
            "instructions": instructions,
            "chef_notes": chef_notes,
            "active": active,
        })
        lines = RecipeIngredientService.clean_lines(ingredients)

        with unit_of_work("recipe.create"):
            recipe = cls.model.objects.create(version=1, **fields)
            RecipeIngredientService.write_lines(recipe, lines)
            recipe.total_cost = rollup_cost(lines)
            recipe.save(update_fields=["total_cost", "updated_at"])

        logger.info("Recipe %s created with %d ingredients, cost %s", recipe.id, len(lines), recipe.total_cost)

        return success_response({
            "id": recipe.id,
            "total_cost": str(recipe.total_cost),
            "version": recipe.version,
            "recipe": cls.serialize(recipe),
        }, f"Recipe '{recipe.name}' created")

    @classmethod
    def replace_ingredients(cls,
                            recipe_id: int,
                            ingredients: List[Dict],
                            expected_version: int = None) -> Dict[str, Any]:
        lines = RecipeIngredientService.clean_lines(ingredients)

        with unit_of_work("recipe.replace_ingredients"):
            recipe = cls._lock(recipe_id, expected_version)
            cls._replace_lines(recipe, lines)
            recipe.version += 1
            recipe.save(update_fields=["total_cost", "version", "updated_at"])

        return success_response({
            "total_cost": str(recipe.total_cost),
            "version": recipe.version,
        }, "Recipe ingredients replaced")

    @classmethod
    def _replace_lines(cls, recipe: Recipe, lines: List[Dict]) -> None:
        deleted, _ = recipe.ingredients.all().delete()
        RecipeIngredientService.write_lines(recipe, lines)
        previous = recipe.total_cost
        recipe.total_cost = rollup_cost(lines)
        logger.info(
            "Recipe %s ingredients replaced (%d -> %d lines), cost %s -> %s",
            recipe.id, deleted, len(lines), previous, recipe.total_cost,
        )

    @classmethod
    def update(cls, recipe_id: int, expected_version: int = None, **kwargs) -> Dict[str, Any]:
        ingredients = kwargs.pop("ingredients", None)
        fields = cls._clean_fields(kwargs)
        lines = RecipeIngredientService.clean_lines(ingredients) if ingredients is not None else None
        if not fields and lines is None:
            raise ValidationError("Nothing to update")

        with unit_of_work("recipe.update"):
            recipe = cls._lock(recipe_id, expected_version)
            update_fields = ["version", "updated_at"]

            for name, value in fields.items():
                setattr(recipe, name, value)
                update_fields.append(name)

            if lines is not None:
                cls._replace_lines(recipe, lines)
                update_fields.append("total_cost")

            recipe.version += 1
            recipe.save(update_fields=update_fields)

        return success_response({
            "total_cost": str(recipe.total_cost),
            "version": recipe.version,
            "recipe": cls.serialize(recipe),
        }, "Recipe updated")

    @classmethod
    @atomic_operation("recipe.delete")
    def delete(cls, recipe_id: int) -> Dict[str, Any]:
        recipe = cls.lock_or_404(recipe_id, "Recipe")
        name = recipe.name
        recipe.delete()

        logger.info("Recipe %s (%s) deleted", recipe_id, name)
        return success_response(message=f"Recipe '{name}' deleted")

    @classmethod
    def get_stats(cls) -> Dict[str, Any]:
        stats = cls.model.objects.aggregate(
            total_recipes=Count("id"),
            active_recipes=Count("id", filter=Q(active=True)),
            avg_cost=Avg("total_cost"),
            avg_preparation_time=Avg("preparation_time"),
            avg_cooking_time=Avg("cooking_time"),
        )
        by_difficulty = {
            row["difficulty"]: row["count"]
            for row in cls.model.objects.values("difficulty").annotate(count=Count("id"))
        }

        return success_response({
            "stats": {
                "total_recipes": stats["total_recipes"],
                "active_recipes": stats["active_recipes"],
                "avg_cost": str(round_money(Decimal(str(stats["avg_cost"] or 0)))),
                "avg_preparation_time": round(stats["avg_preparation_time"] or 0),
                "avg_cooking_time": round(stats["avg_cooking_time"] or 0),
                "by_difficulty": {
                    value: by_difficulty.get(value, 0) for value in Recipe.Difficulty.values
                },
            }
        })
