"""
Menu Service Backend: Image File Route
=======================================

What:  GET /images/{filename} serves stored image bytes as-is.
How:   The name is resolved inside IMAGES_DIR (traversal rejected with 400);
       FileResponse picks the media type from the extension.
"""

import aiofiles.os
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from menu_service.exceptions import NotFoundError
from menu_service.schemas.menu import ErrorResponse
from menu_service.services.menu_service import MenuService, get_menu_service

router = APIRouter(tags=["Images"])


@router.get(
    "/images/{filename}",
    summary="Serve an uploaded image",
    responses={
        200: {"description": "Image file"},
        400: {"description": "Invalid filename", "model": ErrorResponse},
        404: {"description": "Image not found", "model": ErrorResponse},
    },
)
async def serve_image(
    filename: str,
    service: MenuService = Depends(get_menu_service),
) -> FileResponse:
    path = service.images.resolve(filename)
    if not await aiofiles.os.path.isfile(path):
        raise NotFoundError(resource="image", resource_id=filename)

    return FileResponse(
        path=str(path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
