#File:src/session/models.py

# Pydantic models for session state and the /session routes.
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, SecretStr


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class Session(BaseModel):
    is_authenticated: bool = False
    api_base: str = ""  # normalized, no trailing slash
    management_key: SecretStr = SecretStr("")  # masked in repr/logs
    server_version: Optional[str] = None
    connection_status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    connection_error: Optional[str] = None
    use_custom_base: bool = False


class PersistedSession(BaseModel):
    """Subset of Session written to storage."""
    is_authenticated: bool = False
    api_base: str = ""
    management_key: str = ""
    server_version: Optional[str] = None
    use_custom_base: bool = False


class LoginRequest(BaseModel):
    api_base: str = Field(..., description="Management API base, scheme optional")
    management_key: str = Field(..., min_length=1)


class PreferencesRequest(BaseModel):
    use_custom_base: bool


class SessionResponse(BaseModel):
    is_authenticated: bool
    api_base: str
    has_management_key: bool
    server_version: Optional[str] = None
    connection_status: ConnectionStatus
    connection_error: Optional[str] = None
    use_custom_base: bool

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(
            is_authenticated=session.is_authenticated,
            api_base=session.api_base,
            has_management_key=bool(session.management_key.get_secret_value()),
            server_version=session.server_version,
            connection_status=session.connection_status,
            connection_error=session.connection_error,
            use_custom_base=session.use_custom_base,
        )


class RestoreResponse(BaseModel):
    restored: bool
    session: SessionResponse


class LogoutResponse(BaseModel):
    message: str
