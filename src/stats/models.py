# File: src/stats/models.py
# Usage-detail records and the statistics derived from them.

import math
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TokenCounts(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    input_tokens: Optional[float] = None
    output_tokens: Optional[float] = None
    reasoning_tokens: Optional[float] = None
    cached_tokens: Optional[float] = None
    cache_tokens: Optional[float] = None
    total_tokens: Optional[float] = None

    @field_validator("*", mode="before")
    @classmethod
    def _numeric_or_none(cls, value: Any) -> Optional[float]:
        # Malformed counts drop out instead of failing the whole record
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        if not math.isfinite(value):
            return None
        return value


class UsageDetail(BaseModel):
    """One historical API call. Never mutated once parsed."""
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True, protected_namespaces=())

    timestamp: Optional[str] = None
    source: Optional[str] = None
    auth_index: Optional[Any] = None
    failed: bool = False
    tokens: TokenCounts = Field(default_factory=TokenCounts)
    model_name: Optional[str] = Field(default=None, alias="__modelName")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _string_or_none(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) and value else None

    @field_validator("source", mode="before")
    @classmethod
    def _source_key(cls, value: Any) -> Optional[str]:
        # Numeric source ids are bucketed under their decimal string
        if isinstance(value, bool) or not value:
            return None
        if isinstance(value, str):
            return value
        if isinstance(value, float) and math.isfinite(value) and value.is_integer():
            return str(int(value))
        if isinstance(value, (int, float)):
            return str(value)
        return None

    @field_validator("failed", mode="before")
    @classmethod
    def _strict_failed(cls, value: Any) -> bool:
        return value is True

    @field_validator("tokens", mode="before")
    @classmethod
    def _tokens_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, TokenCounts)) else {}


class AccountLoadStats(BaseModel):
    id: str
    success_count: int
    failure_count: int
    total_requests: int
    success_rate: float  # 0-100
    load_rate: float  # 0-100


class LoadRateResult(BaseModel):
    total_requests: int = 0
    by_source: Dict[str, AccountLoadStats] = Field(default_factory=dict)
    by_auth_index: Dict[str, AccountLoadStats] = Field(default_factory=dict)


class RateStats(BaseModel):
    rpm: float
    tpm: float
    window_minutes: float
    request_count: int
    token_count: float


class ModelPrice(BaseModel):
    """USD per 1M tokens."""
    prompt: float = 0
    completion: float = 0
    cache: float = 0
