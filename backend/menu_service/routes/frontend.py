"""
Menu Service Backend: Frontend Bundle Fallback
===============================================

What:  Serves a prebuilt single-page frontend from FRONTEND_BUILD_DIR.
How:   A catch-all GET route returns the requested file when it exists inside
       the bundle and ``index.html`` for every other path, so client-side
       routes survive a page reload.

This router must be included after every API router; the catch-all would
otherwise shadow them.
"""

from pathlib import Path
from typing import Optional

import aiofiles.os
from fastapi import APIRouter
from fastapi.responses import FileResponse


def has_bundle(build_dir: str) -> bool:
    return (Path(build_dir) / "index.html").is_file()


def build_router(build_dir: str) -> APIRouter:
    """Router serving ``build_dir``; call only when ``has_bundle(build_dir)``."""
    root = Path(build_dir).resolve()
    index = root / "index.html"

    def locate(full_path: str) -> Optional[Path]:
        try:
            candidate = (root / full_path).resolve()
        except (ValueError, OSError):
            return None
        # Paths escaping the bundle fall through to index.html
        return candidate if candidate.is_relative_to(root) else None

    router = APIRouter(tags=["Frontend"])

    @router.get("/{full_path:path}", include_in_schema=False)
    async def serve_frontend(full_path: str) -> FileResponse:
        candidate = locate(full_path) if full_path else None
        if candidate is not None and await aiofiles.os.path.isfile(candidate):
            return FileResponse(str(candidate))
        return FileResponse(str(index), media_type="text/html")

    return router
