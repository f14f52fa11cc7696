"""
FastAPI application for Giuseppe's Kitchen request gating.

On startup the lifespan picks a key-value store (Upstash or in-memory),
builds the gate pipeline and verification service on top of it, loads the
recipe catalog and chooses a text generator.  Everything is kept on
``app.state`` and reached from routers through dependencies.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from kitchen_gate.config import RECIPES_PATH, VERSION, store_fail_open
from kitchen_gate.dependencies import GateDenied, gate_denied_handler
from kitchen_gate.gate import GatePipeline
from kitchen_gate.middleware import PageGateMiddleware
from kitchen_gate.routers import auth, health, kitchen_ai
from kitchen_gate.services.assistant import build_generator
from kitchen_gate.services.recipes import RecipeCatalog
from kitchen_gate.store import build_store
from kitchen_gate.verification import VerificationSession

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = build_store()
    generator = build_generator()

    app.state.store = store
    app.state.gate = GatePipeline(store, fail_open=store_fail_open())
    app.state.verification = VerificationSession(store)
    app.state.catalog = RecipeCatalog.from_yaml(RECIPES_PATH)
    app.state.generator = generator
    logger.info(
        "Gate ready (store=%s, fail_open=%s)", store.name, app.state.gate.fail_open,
    )
    try:
        yield
    finally:
        await generator.close()
        await store.close()


app = FastAPI(
    title="Giuseppe's Kitchen Gate",
    description="Rate limiting, bans and email verification in front of the kitchen assistant",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(PageGateMiddleware)
app.add_exception_handler(GateDenied, gate_denied_handler)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(kitchen_ai.router)
