# =============================================================================
# core/models/access.py - Drop Access Schemas
# =============================================================================
# Request/response models for the public recipient flow:
# availability -> verify email -> fetch content (with session token).
# =============================================================================

from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from lib.utils import normalize_email


class VerifyRequest(BaseModel):
    """Email a recipient enters on the access page."""
    email: str = Field(..., min_length=3, max_length=320)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = normalize_email(value)
        if "@" not in value:
            raise ValueError("Please enter a valid email address")
        return value


class TimerInfo(BaseModel):
    """How the drop's timer is presented to recipients."""
    mode: str
    label: str
    description: str
    expires_at: datetime | None = None
    time_remaining: str | None = None
    duration: str | None = None


class DropAvailability(BaseModel):
    """Public metadata for a drop that can still be accessed."""
    id: str
    name: str
    description: str | None = None
    drop_type: str
    one_time_access: bool = False
    timer: TimerInfo


class VerifyResponse(BaseModel):
    """Returned after a successful verification."""
    verified: bool = True
    session_token: str
    session_expires_at: datetime
    access_expires_at: datetime | None = None
    first_verification: bool = False


class DropContent(BaseModel):
    """What the viewer needs to render the drop."""
    drop_id: str
    name: str
    drop_type: str
    content_type: str
    url: str
    original_url: str | None = None
    file_name: str | None = None
    access_expires_at: datetime | None = None


class AccessLogRequest(BaseModel):
    """Explicit access log written by the viewer. The email comes from the session."""
    access_granted: bool = True

