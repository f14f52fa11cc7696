"""
Assembles the role-tagged message list sent to the text generator.

    [system]   persona + agent mode + catalog + current recipe + page context
    [history]  last 20 turns; anything not "assistant" is sent as "user"
    [user]     the new message

The persona wording lives in PERSONA / AGENT_MODES and can be edited freely;
nothing else depends on it.
"""

from __future__ import annotations

import re

from kitchen_gate.models import ChatMessage, HistoryMessage, PageContext, Recipe
from kitchen_gate.services.recipes import RecipeCatalog

MAX_HISTORY = 20

DEFAULT_AGENT = "chef"

PERSONA = (
    "You are Giuseppe's Kitchen AI, a cooking assistant built around the site's "
    "recipes. Keep answers short and practical. Never give medical advice."
)

AGENT_MODES: dict[str, str] = {
    "chef": "CHEF MODE: focus on flavour, texture and technique.",
    "nutrition": "NUTRITION MODE: talk about general nutrition only, no medical advice.",
    "planner": "MEAL PLANNER MODE: plan across meals, scale and batch recipes.",
}

LINKING_RULES = (
    "When you mention a recipe from the catalog, link it as a Markdown link to "
    "/recipes/<slug>. Only use slugs present in the catalog."
)


def resolve_agent(agent: str | None) -> str:
    return agent if agent in AGENT_MODES else DEFAULT_AGENT


def _recipe_block(recipe: Recipe | None) -> str:
    if recipe is None:
        return "No specific recipe was provided."
    ingredients = "\n".join(f"- {i}" for i in recipe.ingredients)
    steps = "\n".join(f"{n}. {s}" for n, s in enumerate(recipe.steps, start=1))
    time = recipe.time_minutes if recipe.time_minutes is not None else "unknown"
    return (
        f"TITLE: {recipe.title}\n"
        f"TAGS: {', '.join(recipe.tags)}\n"
        f"TIME: {time} minutes\n\n"
        f"INGREDIENTS:\n{ingredients}\n\n"
        f"STEPS:\n{steps}"
    )


def _page_block(ctx: PageContext | None) -> str:
    ctx = ctx or PageContext()
    scroll = str(ctx.scroll_y) if ctx.scroll_y is not None else "unknown"
    return (
        f"PATH: {ctx.path or 'unknown'}\n"
        f"SOURCE: {ctx.source or 'unknown'}\n"
        f"SECTION: {ctx.section or 'unknown'}\n"
        f"SCROLL_Y: {scroll}"
    )


def build_system_prompt(
    catalog: RecipeCatalog,
    agent: str,
    recipe: Recipe | None = None,
    page_context: PageContext | None = None,
) -> str:
    return "\n\n".join([
        PERSONA,
        f"Active agent:\n{AGENT_MODES[resolve_agent(agent)]}",
        LINKING_RULES,
        f"SITE RECIPE CATALOG:\n{catalog.summary() or '(empty)'}",
        f"Current recipe context:\n{_recipe_block(recipe)}",
        f"PAGE CONTEXT:\n{_page_block(page_context)}",
    ])


def build_messages(
    catalog: RecipeCatalog,
    message: str,
    *,
    history: list[HistoryMessage] | None = None,
    agent: str | None = None,
    recipe_slug: str | None = None,
    page_context: PageContext | None = None,
) -> list[ChatMessage]:
    recipe = catalog.get(recipe_slug)
    messages = [
        ChatMessage(
            role="system",
            content=build_system_prompt(catalog, resolve_agent(agent), recipe, page_context),
        ),
    ]
    for turn in (history or [])[-MAX_HISTORY:]:
        role = "assistant" if turn.role == "assistant" else "user"
        messages.append(ChatMessage(role=role, content=turn.content))
    messages.append(ChatMessage(role="user", content=message))
    return messages


def link_recipes(reply: str, slugs: list[str]) -> str:
    """Turn bare ``/slug`` and ``/recipes/slug`` mentions into Markdown links."""
    if not slugs:
        return reply
    alternatives = "|".join(re.escape(s) for s in slugs)

    prefixed = re.compile(rf"(^|[^/\w])/({alternatives})(?=[^a-z0-9-]|$)", re.IGNORECASE)
    reply = prefixed.sub(lambda m: f"{m.group(1)}/recipes/{m.group(2)}", reply)
    reply = reply.replace("/recipes/recipes/", "/recipes/")

    bare = re.compile(rf"(^|\s)(/recipes/(?:{alternatives}))(?=\s|[.,;!?)]|$)", re.IGNORECASE)
    return bare.sub(lambda m: f"{m.group(1)}[{m.group(2)}]({m.group(2)})", reply)
