"""
Menu Service Backend: Menu Route Handlers
==========================================

What:  CRUD endpoints for menu items.
How:   Extract form fields and the optional upload, delegate to MenuService,
       return the schema. Errors propagate to the global handlers.

Route Inventory:
    GET     /menu          list all items
    GET     /menu/{id}     one item
    POST    /menu          create (multipart: name, description, price, image?)
    POST    /menu/{id}     update (same form)
    DELETE  /menu/{id}     delete item and its image file

The text fields are read from the raw form by ``read_menu_form``: an
absent field reaches MenuService as None (400 naming the field) while an
empty value stays an empty string.
"""

import logging
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Request, UploadFile

from menu_service.exceptions import UploadError
from menu_service.schemas.menu import DeleteResponse, ErrorResponse, MenuItemResponse
from menu_service.services.menu_service import REQUIRED_FIELDS, MenuService, get_menu_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Menu"])

ERROR_RESPONSES = {
    400: {"description": "Missing or invalid field", "model": ErrorResponse},
    502: {"description": "Store unavailable", "model": ErrorResponse},
    500: {"description": "Image read or upload failure", "model": ErrorResponse},
}


async def read_menu_form(request: Request) -> Dict[str, Optional[str]]:
    """
    name, description and price exactly as submitted; None when absent.

    ``Form()`` parameters would map an empty value to "absent", which
    would make an empty description impossible to send.
    """
    form = await request.form()
    fields = {}
    for field in REQUIRED_FIELDS:
        value = form.get(field)
        fields[field] = value if isinstance(value, str) else None
    return fields


async def read_upload(image: Optional[UploadFile]) -> Tuple[Optional[str], Optional[bytes]]:
    """
    Returns (original filename, bytes), or (None, None) when no file was sent.

    Browsers submit an empty file input as a part with an empty filename;
    that counts as "no upload".
    """
    if image is None or not image.filename:
        return None, None
    try:
        content = await image.read()
    except OSError as e:
        logger.error("Could not read uploaded file %s: %s", image.filename, str(e))
        raise UploadError(
            message="The uploaded image could not be read.",
            context={"filename": image.filename, "os_error": str(e)},
        ) from e
    logger.info("Received upload: filename=%s, size=%d bytes", image.filename, len(content))
    return image.filename, content


@router.get(
    "/menu",
    response_model=List[MenuItemResponse],
    responses=ERROR_RESPONSES,
    summary="List menu items",
)
async def list_menu(
    service: MenuService = Depends(get_menu_service),
) -> List[MenuItemResponse]:
    return await service.list_items()


@router.get(
    "/menu/{item_id}",
    response_model=MenuItemResponse,
    responses={404: {"description": "Menu item not found", "model": ErrorResponse}, **ERROR_RESPONSES},
    summary="Get a menu item by ID",
)
async def get_menu_item(
    item_id: int,
    service: MenuService = Depends(get_menu_service),
) -> MenuItemResponse:
    return await service.get_item(item_id)


@router.post(
    "/menu",
    status_code=201,
    response_model=MenuItemResponse,
    responses=ERROR_RESPONSES,
    summary="Create a menu item",
    description="Multipart form with name, description, price and an optional image file.",
)
async def create_menu_item(
    image: Optional[UploadFile] = File(None, description="Optional image (png, jpg, jpeg, gif, webp)"),
    fields: Dict[str, Optional[str]] = Depends(read_menu_form),
    service: MenuService = Depends(get_menu_service),
) -> MenuItemResponse:
    try:
        filename, content = await read_upload(image)
        return await service.create_item(
            name=fields["name"],
            description=fields["description"],
            price=fields["price"],
            image_filename=filename,
            image_content=content,
        )
    finally:
        if image is not None:
            await image.close()


@router.post(
    "/menu/{item_id}",
    response_model=MenuItemResponse,
    responses={404: {"description": "Menu item not found", "model": ErrorResponse}, **ERROR_RESPONSES},
    summary="Update a menu item",
    description=(
        "Replaces name, description and price. The stored image is replaced "
        "only when a new file is uploaded."
    ),
)
async def update_menu_item(
    item_id: int,
    image: Optional[UploadFile] = File(None),
    fields: Dict[str, Optional[str]] = Depends(read_menu_form),
    service: MenuService = Depends(get_menu_service),
) -> MenuItemResponse:
    try:
        filename, content = await read_upload(image)
        return await service.update_item(
            item_id,
            name=fields["name"],
            description=fields["description"],
            price=fields["price"],
            image_filename=filename,
            image_content=content,
        )
    finally:
        if image is not None:
            await image.close()


@router.delete(
    "/menu/{item_id}",
    response_model=DeleteResponse,
    responses={404: {"description": "Menu item not found", "model": ErrorResponse}, **ERROR_RESPONSES},
    summary="Delete a menu item and its image",
)
async def delete_menu_item(
    item_id: int,
    service: MenuService = Depends(get_menu_service),
) -> DeleteResponse:
    deleted_id = await service.delete_item(item_id)
    return DeleteResponse(id=deleted_id)
