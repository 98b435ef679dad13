"""
Menu Service Backend: Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for every failure the API reports.
How:   Each exception carries a client-safe message and an optional context
       dict. Global handlers (registered in main.py) map them to HTTP status
       codes and a structured JSON body.
Who:   Raised by services; caught only by the global handlers.

Exception Hierarchy:
    MenuServiceError (base)
    ├── ValidationError        → 400 Bad Request
    ├── NotFoundError          → 404 Not Found
    ├── StoreUnavailableError  → 502 Bad Gateway
    ├── ImageReadError         → 500 Internal Server Error
    └── UploadError            → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class MenuServiceError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client
                  unless the handler opts in)
    """

    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(MenuServiceError):
    """
    Raised when client input fails validation.

    When:    Missing name/description/price, non-numeric price, unsupported
             image type, empty or oversized upload.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "Field 'price' must be a number",
            "details": {"field": "price"}
        }
    """

    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(MenuServiceError):
    """
    Raised when a requested resource does not exist.

    When:    GET/POST/DELETE /menu/{id} for an id with no row, or
             GET /images/{filename} for a file that is not on disk.
    HTTP:    404 Not Found
    """

    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class StoreUnavailableError(MenuServiceError):
    """
    Raised when the relational store cannot serve a request.

    When:    Connection refused or lost, query failure, or the per-operation
             timeout (STORE_TIMEOUT_SECONDS) expired.
    HTTP:    502 Bad Gateway

    Security Note:
        The driver error is kept in ``context`` for the server log. The client
        only ever sees ``message``.
    """

    error_code = "store_unavailable"

    def __init__(
        self,
        message: str = "The menu store is currently unavailable. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ImageReadError(MenuServiceError):
    """
    Raised when an image referenced by a menu item cannot be read.

    When:    Inlining is enabled and the file is missing, unreadable, or the
             read exceeded FILE_TIMEOUT_SECONDS.
    HTTP:    500 Internal Server Error
    """

    error_code = "image_read_error"

    def __init__(
        self,
        message: str = "The image for this menu item could not be read",
        filename: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if filename:
            ctx["filename"] = filename
        super().__init__(message=message, context=ctx)
        self.filename = filename


class UploadError(MenuServiceError):
    """
    Raised when an uploaded image cannot be parsed or written to disk.

    When:    Multipart body unreadable, disk full, permission denied,
             generated filename already taken, write timeout.
    HTTP:    500 Internal Server Error
    """

    error_code = "upload_error"

    def __init__(
        self,
        message: str = "Failed to save the uploaded image. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
