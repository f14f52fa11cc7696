"""
Kitchen assistant endpoint.

The AI gate (ban → signup gate → per-minute → per-day) runs as a dependency,
so the text generator is only ever called for requests that passed it.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from kitchen_gate.dependencies import Catalog, Generator, require_gate
from kitchen_gate.exceptions import TextGenerationError
from kitchen_gate.models import ErrorResponse, KitchenAIRequest, KitchenAIResponse
from kitchen_gate.policies import AI_ASSISTANT
from kitchen_gate.services.prompt import build_messages, link_recipes, resolve_agent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["assistant"])

SERVICE_ERROR = "Something went wrong talking to the AI."


@router.post(
    "/kitchen-ai",
    response_model=KitchenAIResponse,
    responses={
        403: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    operation_id="askKitchenAI",
    summary="Ask the kitchen assistant a question",
    dependencies=[Depends(require_gate(AI_ASSISTANT))],
)
async def ask_kitchen_ai(
    body: KitchenAIRequest,
    catalog: Catalog,
    generator: Generator,
):
    agent = resolve_agent(body.agent)
    messages = build_messages(
        catalog,
        body.message,
        history=body.history,
        agent=agent,
        recipe_slug=body.recipe_slug,
        page_context=body.page_context,
    )

    try:
        reply = await generator.complete(
            messages,
            temperature=0.7 if agent == "chef" else 0.6,
        )
    except TextGenerationError:
        return JSONResponse({"error": SERVICE_ERROR}, status_code=status.HTTP_502_BAD_GATEWAY)

    return KitchenAIResponse(reply=link_recipes(reply, catalog.slugs))
