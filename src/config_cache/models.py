# Pydantic models for the config cache and the /config routes.
import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ConfigSnapshot(BaseModel):
    config: Dict[str, Any]
    fetched_at_ms: int


@dataclass
class InFlightRequest:
    """The single shared fetch; `generation` identifies which fetch owns the handle."""
    generation: int
    task: "asyncio.Task[Dict[str, Any]]"


class ConfigResponse(BaseModel):
    config: Dict[str, Any]
    fetched_at_ms: Optional[int] = None
    generation: int


class ConfigValueUpdate(BaseModel):
    value: Any = Field(..., description="New value, applied locally only")


class CacheStateResponse(BaseModel):
    cached: bool
    loading: bool
    error: Optional[str] = None
    generation: int
