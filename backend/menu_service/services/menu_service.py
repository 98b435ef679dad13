"""
Menu Service Backend: Menu Service (Business Logic)
====================================================

What:  The five menu operations: list, get, create, update, delete.
How:   Composes MenuStore (rows) and ImageStorage (files). Each operation is a
       single store interaction plus at most one file write and one file
       removal; there is no transaction spanning both.
Who:   Called by the /menu route handlers through ``get_menu_service``.

Ordering of store and file steps:
    create:  write file → insert row       (insert fails → remove new file)
    update:  write file → update row       (update fails → remove new file,
                                            success → remove previous file)
    delete:  delete row → remove file      (missing file tolerated)

    A crash between the two steps can still leave an orphaned file; it can
    never leave a row pointing at a file that was not written.
"""

import logging
from typing import List, Optional

import pydantic
from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from menu_service.database import MenuStore
from menu_service.exceptions import ImageReadError, NotFoundError, ValidationError
from menu_service.models.menu_item import MenuItem
from menu_service.schemas.menu import ImageErrorDetail, MenuItemFields, MenuItemResponse
from menu_service.services.image_storage import ImageStorage

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "description", "price")


class MenuService:
    """
    Business logic layer for menu items.

    Args:
        store:          open MenuStore
        images:         ImageStorage rooted at IMAGES_DIR
        inline_images:  replace ``image`` with base64 contents on list/get

    Error Handling Strategy:
        Store failures and timeouts arrive from ``MenuStore.run`` as
        StoreUnavailableError. Missing rows raise NotFoundError inside the
        store operation. File failures arrive from ImageStorage as
        ImageReadError / UploadError. Nothing is caught and re-shaped here
        except the per-record image error in ``list_items``.
    """

    def __init__(self, store: MenuStore, images: ImageStorage, inline_images: bool = False):
        self.store = store
        self.images = images
        self.inline_images = inline_images

    # ── Validation ────────────────────────────────────────────────────────

    @staticmethod
    def validate_fields(
        name: Optional[str],
        description: Optional[str],
        price: Optional[str],
    ) -> MenuItemFields:
        """
        Check presence of every required field, then coerce types.

        Raises:
            ValidationError naming the first missing or malformed field.
        """
        raw = {"name": name, "description": description, "price": price}
        for field in REQUIRED_FIELDS:
            if raw[field] is None:
                raise ValidationError(message=f"Field '{field}' is required", field=field)

        try:
            return MenuItemFields(**raw)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            field = str(first["loc"][0]) if first.get("loc") else None
            raise ValidationError(
                message=f"Field '{field}' is invalid: {first['msg']}",
                field=field,
                context={"errors": len(e.errors())},
            ) from e

    # ── Response building ─────────────────────────────────────────────────

    async def _to_response(self, item: MenuItem, inline: bool) -> MenuItemResponse:
        response = MenuItemResponse.model_validate(item)
        if inline and item.image:
            response.image = await self.images.read_base64(item.image)
        return response

    # ── Operations ────────────────────────────────────────────────────────

    async def list_items(self) -> List[MenuItemResponse]:
        """
        All menu items in insertion order.

        With inlining enabled, a record whose image cannot be read keeps
        ``image = None`` and reports ``image_error``; the other records are
        returned normally.
        """

        async def _select(session: AsyncSession) -> List[MenuItem]:
            result = await session.execute(select(MenuItem).order_by(MenuItem.id))
            return list(result.scalars().all())

        items = await self.store.run(_select, "list menu items")

        responses = []
        for item in items:
            try:
                responses.append(await self._to_response(item, self.inline_images))
            except ImageReadError as e:
                logger.warning("Menu item %s: %s", item.id, e.message)
                response = MenuItemResponse.model_validate(item)
                response.image = None
                response.image_error = ImageErrorDetail(message=e.message)
                responses.append(response)
        return responses

    async def get_item(self, item_id: int) -> MenuItemResponse:
        """
        One menu item by id.

        Raises:
            NotFoundError:          no row with ``item_id``
            ImageReadError:         inlining enabled and the file is unreadable
            StoreUnavailableError:  store failure or timeout
        """

        async def _get(session: AsyncSession) -> MenuItem:
            item = await session.get(MenuItem, item_id)
            if item is None:
                raise NotFoundError(resource="menu item", resource_id=str(item_id))
            return item

        item = await self.store.run(_get, f"get menu item {item_id}")
        return await self._to_response(item, self.inline_images)

    async def create_item(
        self,
        name: Optional[str],
        description: Optional[str],
        price: Optional[str],
        image_filename: Optional[str] = None,
        image_content: Optional[bytes] = None,
    ) -> MenuItemResponse:
        """
        Persist a new menu item, storing the image first when one is uploaded.

        Returns the created record (``image`` is the stored filename).
        """
        fields = self.validate_fields(name, description, price)

        stored_image: Optional[str] = None
        if image_filename:
            stored_image = await self.images.store(image_content or b"", image_filename)

        async def _insert(session: AsyncSession) -> MenuItem:
            item = MenuItem(
                name=fields.name,
                description=fields.description,
                price=fields.price,
                image=stored_image,
            )
            session.add(item)
            await session.commit()
            return item

        try:
            item = await self.store.run(_insert, "create menu item")
        except Exception:
            await self.images.remove(stored_image)
            raise

        logger.info("Menu item created: %s (image=%s)", item.id, stored_image)
        return MenuItemResponse.model_validate(item)

    async def update_item(
        self,
        item_id: int,
        name: Optional[str],
        description: Optional[str],
        price: Optional[str],
        image_filename: Optional[str] = None,
        image_content: Optional[bytes] = None,
    ) -> MenuItemResponse:
        """
        Replace name, description and price; replace the image only when a
        new one is uploaded.

        Raises:
            NotFoundError when no row has ``item_id``. The new image, if any,
            is removed again in that case.
        """
        fields = self.validate_fields(name, description, price)

        stored_image: Optional[str] = None
        if image_filename:
            stored_image = await self.images.store(image_content or b"", image_filename)

        async def _update(session: AsyncSession) -> tuple:
            item = await session.get(MenuItem, item_id)
            if item is None:
                raise NotFoundError(resource="menu item", resource_id=str(item_id))
            previous_image = item.image
            item.name = fields.name
            item.description = fields.description
            item.price = fields.price
            if stored_image:
                item.image = stored_image
            await session.commit()
            return item, previous_image

        try:
            item, previous_image = await self.store.run(_update, f"update menu item {item_id}")
        except Exception:
            await self.images.remove(stored_image)
            raise

        if stored_image and previous_image and previous_image != stored_image:
            await self.images.remove(previous_image)

        logger.info("Menu item updated: %s (image replaced: %s)", item_id, bool(stored_image))
        return MenuItemResponse.model_validate(item)

    async def delete_item(self, item_id: int) -> int:
        """
        Delete a menu item and its image file.

        Returns the deleted id.
        Raises:  NotFoundError when no row has ``item_id``.
        """

        async def _delete(session: AsyncSession) -> Optional[str]:
            item = await session.get(MenuItem, item_id)
            if item is None:
                raise NotFoundError(resource="menu item", resource_id=str(item_id))
            image = item.image
            await session.delete(item)
            await session.commit()
            return image

        image = await self.store.run(_delete, f"delete menu item {item_id}")
        await self.images.remove(image)

        logger.info("Menu item deleted: %s", item_id)
        return item_id


# ── FastAPI Dependency ────────────────────────────────────────────────────

def get_menu_service(request: Request) -> MenuService:
    """Injects the MenuService built at startup (see main.create_app)."""
    return request.app.state.menu_service
