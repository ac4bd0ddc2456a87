"""Base schemas and common types for the Station-Navet API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


# =============================================================================
# BASE SCHEMAS
# =============================================================================


class NavetBaseModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode
        populate_by_name=True,
        use_enum_values=True,
    )


class TimestampMixin(BaseModel):
    """Mixin for the creation timestamp."""

    created_at: datetime


# =============================================================================
# ERROR RESPONSES
# =============================================================================


class ErrorDetail(NavetBaseModel):
    """Detailed error information."""

    field: str | None = None
    message: str
    code: str


class ErrorResponse(NavetBaseModel):
    """Standard error response format."""

    error: str
    message: str
    details: list[ErrorDetail] = []


class MessageResponse(NavetBaseModel):
    """Plain acknowledgement."""

    success: bool = True
    message: str | None = None
