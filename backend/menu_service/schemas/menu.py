"""
Menu Service Backend: Pydantic Request/Response Schemas
========================================================

What:  Pydantic models defining the API contract.
How:   ``MenuItemFields`` coerces and validates the multipart form fields;
       the response models drive serialization and the OpenAPI docs.

Schemas stay separate from the SQLAlchemy model: the response carries
inlined base64 and per-record image errors that never exist in the table.
"""

import math
from typing import Optional

from pydantic import BaseModel, Field, field_validator

# NUMERIC(10, 2): eight digits before the decimal point
PRICE_LIMIT = 10 ** 8


# ══════════════════════════════════════════════════════════════════════════
# Input Models
# ══════════════════════════════════════════════════════════════════════════


class MenuItemFields(BaseModel):
    """
    What:  The three required fields of a create or update request.
    How:   Form values arrive as strings; pydantic coerces ``price`` to float.
           Presence is checked by MenuService before this model is built so
           "missing" and "malformed" produce distinct messages.
    """
    name: str = Field(min_length=1, max_length=255, description="Display name")
    description: str = Field(description="Free-text description (may be empty)")
    price: float = Field(description="Price, stored with two decimal places")

    model_config = {"str_strip_whitespace": True}

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: float) -> float:
        """Keeps the value within what the NUMERIC(10, 2) column can hold."""
        if not math.isfinite(v):
            raise ValueError("must be a finite number")
        rounded = round(v, 2)
        if abs(rounded) >= PRICE_LIMIT:
            raise ValueError(f"must be less than {PRICE_LIMIT:,} in absolute value")
        return rounded


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ImageErrorDetail(BaseModel):
    """Per-record report when an image could not be inlined in a list response."""
    error: str = Field(default="image_read_error", description="Machine-readable error code")
    message: str = Field(description="Human-readable description")


class MenuItemResponse(BaseModel):
    """
    What:  One menu item as returned by every /menu endpoint.

    ``image`` holds the stored filename, or the base64 file contents when
    INLINE_IMAGES is enabled on list/get. ``image_error`` is only set in list
    responses when that record's file could not be read.
    """
    id: int = Field(description="Store-assigned identifier")
    name: str
    description: str
    price: float
    image: Optional[str] = Field(
        default=None,
        description="Image filename, or base64 contents when inlining is enabled",
    )
    image_error: Optional[ImageErrorDetail] = Field(
        default=None,
        description="Set when the image could not be inlined (list responses only)",
    )

    model_config = {"from_attributes": True}


class DeleteResponse(BaseModel):
    """Returned by DELETE /menu/{id}."""
    message: str = Field(default="Menu item deleted")
    id: int


class StatusResponse(BaseModel):
    """Liveness payload served at / and /api."""
    status: str = Field(default="OK")
    message: str


class ErrorResponse(BaseModel):
    """
    What:  Standardized error body for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "menu item with ID '999' was not found",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health for monitoring and container health checks."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    inline_images: bool = Field(description="Whether list/get responses inline image bytes")
    uptime_seconds: float = Field(description="Seconds since service started")
