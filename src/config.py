# file: ./config.py
"""
Central configuration for the console state core.
Uses utils/env_loader.py (auto-trims # comments, safe casts); create a .env to override defaults.
Each component receives its own dict at construction (see app.py), tests pass plain dicts.
"""

from utils.env_loader import get_env

#=============================================================================
#MAIN_CONFIG: Global settings (logging for app wiring)
#=============================================================================
MAIN_CONFIG = {
"LOGGING_LEVEL": get_env("LOGGING_LEVEL", default="INFO"),  # Global log level
"LOG_TO_FILE": get_env("LOG_TO_FILE", default="False", cast=bool),  # Also write logs/console.log
}
#=============================================================================
#FASTAPI_CONFIG: console HTTP surface (FastApiManager)
#=============================================================================
FASTAPI_CONFIG = {
"LOGGING_LEVEL": get_env("FASTAPI_LOGGING_LEVEL", default="INFO"),
"APP_NAME": get_env("APP_NAME", default="console-state-core"),  # Title + process name
"VERSION": get_env("VERSION", default="0.1.0"),
"ENVIRONMENT": get_env("ENVIRONMENT", default="development"),  # "production" hides 500 details
"RELOAD": get_env("RELOAD", default="False", cast=bool),
"DEFAULT_PORT": get_env("DEFAULT_PORT", default="8317", cast=int),
"DEFAULT_HOST": get_env("DEFAULT_HOST", default="localhost"),
"ALLOW_ORIGINS": get_env("ALLOW_ORIGINS", default="*").split(","),
"ALLOW_CREDENTIALS": get_env("ALLOW_CREDENTIALS", default="True", cast=bool),
"ALLOW_METHODS": get_env("ALLOW_METHODS", default="*").split(","),
"ALLOW_HEADERS": get_env("ALLOW_HEADERS", default="*").split(","),
"EXPOSE_HEADERS": get_env("EXPOSE_HEADERS", default="*").split(","),
"ENABLE_DOCS": get_env("ENABLE_DOCS", default="True", cast=bool),
"ENABLE_REDOC": get_env("ENABLE_REDOC", default="False", cast=bool),
}
#=============================================================================
#HTTPX_CONFIG: transport used for every call to the management API
#=============================================================================
HTTPX_CONFIG = {
"LOGGING_LEVEL": get_env("HTTPX_LOGGING_LEVEL", default="WARNING"),
"TIMEOUT": get_env("HTTPX_TIMEOUT", default="30.0", cast=float),  # Default request timeout (seconds)
"FOLLOW_REDIRECTS": get_env("HTTPX_FOLLOW_REDIRECTS", default="True", cast=bool),
}
#=============================================================================
#MANAGEMENT_API_CONFIG: remote management API the console talks to
#=============================================================================
MANAGEMENT_API_CONFIG = {
"LOGGING_LEVEL": get_env("MANAGEMENT_API_LOGGING_LEVEL", default="INFO"),
"PREFIX": get_env("MANAGEMENT_API_PREFIX", default="/v0/management"),
"VERSION_HEADERS": ["x-cpa-version", "x-server-version", "x-cli-proxy-version"],
"BUILD_DATE_HEADERS": ["x-cpa-build-date", "x-build-date"],
}
#=============================================================================
#SESSION_CONFIG: login / restore / persisted keys
#=============================================================================
SESSION_CONFIG = {
"LOGGING_LEVEL": get_env("SESSION_LOGGING_LEVEL", default="INFO"),
"AUTH_TIMEOUT": get_env("SESSION_AUTH_TIMEOUT", default="10.0", cast=float),  # Login probe timeout (seconds)
"STORAGE_KEY": get_env("SESSION_STORAGE_KEY", default="cli-proxy-auth"),  # Persisted session record
"LOGGED_IN_KEY": get_env("SESSION_LOGGED_IN_KEY", default="cli-proxy-logged-in"),  # Auto-restore marker
}
#=============================================================================
#CONFIG_CACHE_CONFIG: remote config cache
#=============================================================================
CONFIG_CACHE_CONFIG = {
"LOGGING_LEVEL": get_env("CONFIG_CACHE_LOGGING_LEVEL", default="INFO"),
"CACHE_EXPIRY_MS": get_env("CONFIG_CACHE_EXPIRY_MS", default="30000", cast=int),  # Freshness window
"CONFIG_PATH": get_env("CONFIG_CACHE_PATH", default="/config"),
}
#=============================================================================
#STATS_CONFIG: usage statistics
#=============================================================================
STATS_CONFIG = {
"LOGGING_LEVEL": get_env("STATS_LOGGING_LEVEL", default="INFO"),
"USAGE_PATH": get_env("STATS_USAGE_PATH", default="/usage"),
"RATE_WINDOW_MINUTES": get_env("STATS_RATE_WINDOW_MINUTES", default="30", cast=float),
}
#=============================================================================
#PRELOAD_CONFIG: route guard / feature preloads
#=============================================================================
PRELOAD_CONFIG = {
"LOGGING_LEVEL": get_env("PRELOAD_LOGGING_LEVEL", default="INFO"),
}
#=============================================================================
#STORAGE_CONFIG: persisted key/value storage ("memory" or "redis")
#=============================================================================
STORAGE_CONFIG = {
"LOGGING_LEVEL": get_env("STORAGE_LOGGING_LEVEL", default="INFO"),
"BACKEND": get_env("STORAGE_BACKEND", default="memory"),
}
#=============================================================================
#REDIS_CONFIG: only read when STORAGE_BACKEND=redis
#=============================================================================
REDIS_CONFIG = {
"REDIS_URL": get_env("REDIS_URL", default="redis://localhost:6379/0"),
"KEY_PREFIX": get_env("REDIS_KEY_PREFIX", default="console:"),
"SOCKET_TIMEOUT": get_env("REDIS_SOCKET_TIMEOUT", default="5", cast=float),
}
