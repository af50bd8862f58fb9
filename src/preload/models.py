# Pydantic models for the route guard / preload state.
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel


class PreloadState(str, Enum):
    IDLE = "idle"
    RESTORING = "restoring"
    PRELOADING = "preloading"
    READY = "ready"


class FeatureStatus(BaseModel):
    loading: bool
    refreshing: bool
    initialized: bool
    error: Optional[str] = None


class PreloadStateResponse(BaseModel):
    state: PreloadState
    features: Dict[str, FeatureStatus]
