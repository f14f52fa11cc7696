"""
Recipe catalog used as assistant context.

Recipes are read once from a YAML file shaped like::

    - slug: lamb-stew
      title: Lamb Stew
      tags: [stew, lamb]
      time_minutes: 120
      ingredients: [lamb shoulder, carrots, onion]
      steps: [Brown the lamb., Add vegetables., Simmer.]

A missing file gives an empty catalog; the assistant still works, it just
has nothing site-specific to link to.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from kitchen_gate.models import Recipe

logger = logging.getLogger(__name__)


class RecipeCatalog:
    def __init__(self, recipes: list[Recipe] | None = None) -> None:
        self._recipes: dict[str, Recipe] = {r.slug: r for r in recipes or []}

    @classmethod
    def from_yaml(cls, path: str | Path) -> RecipeCatalog:
        path = Path(path)
        if not path.exists():
            logger.info("No recipe catalog at %s; assistant runs without one", path)
            return cls()

        with path.open(encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or []

        recipes: list[Recipe] = []
        for entry in raw:
            try:
                recipes.append(Recipe.model_validate(entry))
            except ValidationError:
                logger.warning("Skipping malformed recipe entry in %s: %r", path, entry)
        logger.info("Loaded %d recipes from %s", len(recipes), path)
        return cls(recipes)

    def __len__(self) -> int:
        return len(self._recipes)

    def get(self, slug: str | None) -> Recipe | None:
        if not slug:
            return None
        return self._recipes.get(slug)

    @property
    def slugs(self) -> list[str]:
        return list(self._recipes)

    def summary(self) -> str:
        """One line per recipe: title, link, time, a few tags and ingredients."""
        lines = []
        for r in self._recipes.values():
            time = f"{r.time_minutes}m" if r.time_minutes is not None else "?m"
            tags = ", ".join(r.tags[:5])
            ingredients = ", ".join(r.ingredients[:5])
            line = f"- {r.title} (/recipes/{r.slug}) · {time} · {tags}"
            if ingredients:
                line += f" · {ingredients}"
            lines.append(line)
        return "\n".join(lines)
