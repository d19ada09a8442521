# =============================================================================
# core/models/drop.py - Drop Schemas
# =============================================================================
# These models define the API contract for drop operations:
# - DropType / TimerMode: enums for what is shared and how it expires
# - DropCreateRequest: input for creating a drop
# - DropUpdateRequest: toggling a drop on/off
#
# A drop is either an uploaded file or a masked URL, shared with a list
# of recipient emails. Timer mode decides how access expires:
# - creation: one shared deadline for everyone (expires_at)
# - verification: each recipient gets N hours from their first verification
# =============================================================================

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from lib.utils import parse_recipients


class DropType(str, Enum):
    """What the drop shares."""
    FILE = "file"
    URL = "url"


class TimerMode(str, Enum):
    """
    How access to a drop expires.

    - creation: shared deadline set when the drop is created
    - verification: personal timer that starts when a recipient verifies
    """
    CREATION = "creation"
    VERIFICATION = "verification"


class DropCreateRequest(BaseModel):
    """
    Schema for creating a drop.

    Example:
        {
            "name": "Q3 board deck",
            "drop_type": "url",
            "masked_url": "https://docs.google.com/presentation/d/abc/edit",
            "recipients": "ceo@acme.com, cfo@acme.com",
            "timer_mode": "verification",
            "default_time_limit_hours": 24
        }
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Display name shown to recipients"
    )

    description: str | None = Field(
        default=None,
        max_length=2000,
        description="Optional message shown on the access page"
    )

    drop_type: DropType = Field(
        ...,
        description="file (uploaded to storage) or url (masked link)"
    )

    masked_url: str | None = Field(
        default=None,
        description="Target URL for url drops"
    )

    file_path: str | None = Field(
        default=None,
        description="Storage path returned by POST /uploads for file drops"
    )

    # Comma-separated string (as the web form sends it) or a list
    recipients: list[str] = Field(
        default_factory=list,
        description="Recipient emails"
    )

    timer_mode: TimerMode = Field(
        default=TimerMode.CREATION,
        description="Shared deadline (creation) or personal timer (verification)"
    )

    creation_expiry: datetime | None = Field(
        default=None,
        description="Shared deadline for creation mode"
    )

    default_time_limit_hours: int | None = Field(
        default=None,
        gt=0,
        description="Personal timer length for verification mode"
    )

    verification_deadline: datetime | None = Field(
        default=None,
        description="Optional last moment a recipient can first verify (verification mode)"
    )

    one_time_access: bool = Field(
        default=False,
        description="Lock the drop after the first successful access"
    )

    send_notifications: bool = Field(
        default=True,
        description="Email recipients after the drop is created"
    )

    @field_validator("recipients", mode="before")
    @classmethod
    def split_recipients(cls, value):
        return parse_recipients(value)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class DropUpdateRequest(BaseModel):
    """Toggle whether a drop can be accessed."""
    is_active: bool = Field(..., description="False disables access immediately")
