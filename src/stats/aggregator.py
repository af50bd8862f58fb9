"""
Usage statistics.

Pure functions folding usage-detail records into per-source / per-auth-index
load and success statistics, and trailing-window request/token rates.
Malformed or missing fields exclude a record from a bucket; nothing here raises
on bad input.
"""
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from stats.models import AccountLoadStats, LoadRateResult, ModelPrice, RateStats, UsageDetail

DEFAULT_WINDOW_MINUTES = 30
TOKENS_PER_PRICE_UNIT = 1_000_000

# The management API emits nanosecond fractions; fromisoformat takes at most microseconds
_FRACTION = re.compile(r"(\.\d{6})\d+")


def collect_usage_details(usage_data: Optional[Mapping[str, Any]]) -> List[UsageDetail]:
    """Flatten usage.apis[*].models[name].details[*], tagging each record with its model."""
    if not isinstance(usage_data, Mapping):
        return []
    apis = usage_data.get("apis")
    if not isinstance(apis, Mapping):
        return []

    details: List[UsageDetail] = []
    for api_entry in apis.values():
        models = api_entry.get("models") if isinstance(api_entry, Mapping) else None
        if not isinstance(models, Mapping):
            continue
        for model_name, model_entry in models.items():
            raw_details = model_entry.get("details") if isinstance(model_entry, Mapping) else None
            if not isinstance(raw_details, list):
                continue
            for raw in raw_details:
                if not isinstance(raw, Mapping):
                    continue
                try:
                    details.append(UsageDetail.model_validate({**raw, "__modelName": model_name}))
                except ValidationError:
                    continue
    return details


def normalize_auth_index(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None
    return None


def _build_stats(key: str, success: int, failure: int, global_total: int) -> AccountLoadStats:
    total = success + failure
    return AccountLoadStats(
        id=key,
        success_count=success,
        failure_count=failure,
        total_requests=total,
        success_rate=(success / total) * 100 if total > 0 else 100,
        load_rate=(total / global_total) * 100 if global_total > 0 else 0,
    )


def aggregate(details: Iterable[UsageDetail]) -> LoadRateResult:
    """
    Single pass over `details`. A record lands in the source bucket, the auth-index
    bucket, both or neither; the two maps are independent views of the same records.
    """
    by_source: Dict[str, List[int]] = {}
    by_auth_index: Dict[str, List[int]] = {}
    total_requests = 0

    for detail in details:
        total_requests += 1
        slot = 1 if detail.failed else 0

        if detail.source:
            by_source.setdefault(detail.source, [0, 0])[slot] += 1

        auth_index = normalize_auth_index(detail.auth_index)
        if auth_index:
            by_auth_index.setdefault(auth_index, [0, 0])[slot] += 1

    return LoadRateResult(
        total_requests=total_requests,
        by_source={k: _build_stats(k, s, f, total_requests) for k, (s, f) in by_source.items()},
        by_auth_index={k: _build_stats(k, s, f, total_requests) for k, (s, f) in by_auth_index.items()},
    )


def calculate_load_rate_stats(usage_data: Optional[Mapping[str, Any]]) -> LoadRateResult:
    return aggregate(collect_usage_details(usage_data))


def extract_total_tokens(detail: UsageDetail) -> float:
    tokens = detail.tokens
    if tokens.total_tokens is not None:
        return tokens.total_tokens
    cached = max(max(tokens.cached_tokens or 0, 0), max(tokens.cache_tokens or 0, 0))
    return (tokens.input_tokens or 0) + (tokens.output_tokens or 0) + (tokens.reasoning_tokens or 0) + cached


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """RFC 3339 / ISO 8601 to an aware datetime; naive values are taken as UTC."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(r"\1", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def calculate_recent_per_minute_rates(details: Iterable[UsageDetail],
                                      window_minutes: float = DEFAULT_WINDOW_MINUTES,
                                      now: Optional[datetime] = None) -> RateStats:
    """Requests and tokens per minute over [now - window, now]."""
    effective_window = window_minutes
    if not isinstance(effective_window, (int, float)) or not math.isfinite(effective_window) \
            or effective_window <= 0:
        effective_window = DEFAULT_WINDOW_MINUTES

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    window_start = now - timedelta(minutes=effective_window)

    request_count = 0
    token_count: float = 0
    for detail in details:
        timestamp = parse_timestamp(detail.timestamp)
        if timestamp is None or timestamp < window_start or timestamp > now:
            continue
        request_count += 1
        token_count += extract_total_tokens(detail)

    return RateStats(
        rpm=request_count / effective_window,
        tpm=token_count / effective_window,
        window_minutes=effective_window,
        request_count=request_count,
        token_count=token_count,
    )


def calculate_cost(detail: UsageDetail, model_prices: Mapping[str, ModelPrice]) -> float:
    price = model_prices.get(detail.model_name or "")
    if price is None:
        return 0

    tokens = detail.tokens
    input_tokens = max(tokens.input_tokens or 0, 0)
    completion_tokens = max(tokens.output_tokens or 0, 0)
    cached_tokens = max(max(tokens.cached_tokens or 0, 0), max(tokens.cache_tokens or 0, 0))
    prompt_tokens = max(input_tokens - cached_tokens, 0)

    total = (
        (prompt_tokens / TOKENS_PER_PRICE_UNIT) * price.prompt
        + (cached_tokens / TOKENS_PER_PRICE_UNIT) * price.cache
        + (completion_tokens / TOKENS_PER_PRICE_UNIT) * price.completion
    )
    return total if math.isfinite(total) and total > 0 else 0


def calculate_total_cost(details: Iterable[UsageDetail], model_prices: Mapping[str, ModelPrice]) -> float:
    if not model_prices:
        return 0
    return sum(calculate_cost(detail, model_prices) for detail in details)
