"""
Menu Service Backend: Application Package
==========================================

What: CRUD HTTP service for menu items with on-disk image storage.
Who:  Imported by uvicorn (``menu_service.main:app``), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │      MenuService (Business Logic)   │  ← validation, inlining, orchestration
    ├──────────────────┬──────────────────┤
    │  MenuStore (DB)  │  ImageStorage    │  ← async SQLAlchemy / aiofiles
    └──────────────────┴──────────────────┘

    MenuStore and ImageStorage are constructed once at startup and handed to
    MenuService; routes reach the service through ``app.state``.
"""

__version__ = "1.0.0"
