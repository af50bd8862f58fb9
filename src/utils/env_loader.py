# file: src/utils/env_loader.py
# Copyright (c) 2025 gangAI-labs. All rights reserved.
# This file is part of a demonstration project. See LICENSE for usage terms.
"""
Dotenv wrapper: env var loading with inline-comment trimming and safe casting.
Wraps python-decouple on top of python-dotenv. Call load_env() once (app.py does it),
then get_env() everywhere; get_env() loads lazily if nobody did.
Handles: "True # dev note" -> True (bool), "30000 # ms" -> 30000 (int).
"""

from typing import Union, Optional, Any
from dotenv import load_dotenv
from decouple import AutoConfig, UndefinedValueError

# Global config instance (loaded once)
_config: Optional[AutoConfig] = None

_TRUE_VALUES = ('true', '1', 'yes', 'on', 't', 'y')
_FALSE_VALUES = ('false', '0', 'no', 'off', 'f', 'n')


def load_env(env_path: str = ".env") -> None:
    """
    Load .env file once.
    Args:
        env_path: Path to .env (default: ".env" in the working directory).
    A missing file is not an error: values fall back to os.environ and defaults.
    """
    global _config
    if _config is not None:
        return

    # override=False: real environment wins over the .env file
    load_dotenv(env_path, override=False)
    _config = AutoConfig()


def _cast_value(key: str, trimmed: str, cast: Optional[Union[type, str]]) -> Any:
    if cast is None or cast == str:
        return trimmed

    if cast == bool:
        lower_trim = trimmed.lower()
        if lower_trim in _TRUE_VALUES:
            return True
        if lower_trim in _FALSE_VALUES:
            return False
        raise ValueError(f"Invalid bool value for {key}: '{trimmed}' (expected true/false-like)")

    if cast == int:
        return int(trimmed)

    if cast == float:
        return float(trimmed)

    raise ValueError(f"Unsupported cast '{cast}' for {key} (use bool/int/float/None)")


def get_env(key: str, default: Optional[Any] = None, cast: Optional[Union[type, str]] = None) -> Any:
    """
    Get env var with auto-trim (# comments) and safe cast.
    Args:
        key: Env var name (e.g., "CONFIG_CACHE_EXPIRY_MS").
        default: Fallback value if missing.
        cast: bool, int, float or None (str).
    Raises:
        ValueError: If the cast fails, with the offending key in the message.
    Example:
        get_env("SESSION_AUTH_TIMEOUT", default="10.0", cast=float)  # "10 # sec" -> 10.0
    """
    if _config is None:
        load_env()

    try:
        raw_value = _config(key, default=str(default) if default is not None else None)
    except UndefinedValueError:
        return default

    if raw_value is None:
        return default

    trimmed = raw_value.split('#')[0].strip()
    try:
        return _cast_value(key, trimmed, cast)
    except ValueError as e:
        raise ValueError(f"Failed to load/cast {key}: {e}") from e


def reset_env() -> None:
    """Forget the loaded config (tests use this to re-read monkeypatched env vars)."""
    global _config
    _config = None


__all__ = ["load_env", "get_env", "reset_env"]
