"""Pydantic models for the Kitchen Gate API."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["system", "user", "assistant"]
AgentId = Literal["chef", "nutrition", "planner"]


# ── Errors ────────────────────────────────────────────────────────────────


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Machine-readable error or short message")
    require_signup: bool | None = Field(
        None, description="True when the client must verify an email address to continue",
    )


# ── Health ────────────────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    status: str
    version: str
    store: str = Field(..., description="Active key-value store backend")
    timestamp: datetime


# ── Verification ──────────────────────────────────────────────────────────


class VerificationStartRequest(BaseModel):
    # Format is checked loosely by the verification service, not here.
    email: str = ""


class VerificationStartResponse(BaseModel):
    ok: bool = True
    expires_in_seconds: int
    dev_code: str | None = Field(
        None, description="The issued code, only outside production",
    )


class VerificationStatusResponse(BaseModel):
    verified: bool


class VerificationSubmitRequest(BaseModel):
    code: str = ""


class OkResponse(BaseModel):
    ok: bool = True


# ── Assistant ─────────────────────────────────────────────────────────────


class ChatMessage(BaseModel):
    role: Role
    content: str


class HistoryMessage(BaseModel):
    role: str
    content: str


class PageContext(BaseModel):
    path: str | None = None
    source: str | None = None
    section: str | None = None
    scroll_y: float | None = Field(None, alias="scrollY")

    model_config = {"populate_by_name": True}


class KitchenAIRequest(BaseModel):
    message: str = Field(..., min_length=1)
    history: list[HistoryMessage] = Field(default_factory=list)
    recipe_slug: str | None = Field(None, alias="recipeSlug")
    page_context: PageContext | None = Field(None, alias="pageContext")
    agent: str | None = None

    model_config = {"populate_by_name": True}


class KitchenAIResponse(BaseModel):
    reply: str


# ── Recipes ───────────────────────────────────────────────────────────────


class Recipe(BaseModel):
    slug: str
    title: str
    tags: list[str] = Field(default_factory=list)
    time_minutes: int | None = None
    ingredients: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
