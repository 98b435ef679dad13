# Middleware package init
"""
Menu Service Backend: Middleware Package
=========================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    The order is reversed for responses, so the request ID header is present
    on every response and the logging middleware sees the final status.
"""
