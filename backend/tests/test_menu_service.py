"""
Menu Service Backend: Menu Service Tests
=========================================

What:  Tests for MenuService list/get/create/update/delete.
How:   A real SQLite store (aiosqlite) and a real image directory per test;
       store failures are simulated by patching ``MenuStore.run``.

What we test:
    ✅ Create → get round-trip, price compared numerically
    ✅ List order and length; delete removes from list and disk
    ✅ Update keeps or replaces the image, previous file removed
    ✅ Update/delete of unknown id raise NotFoundError, nothing changes
    ✅ Concurrent uploads with the same name never overwrite each other
    ✅ Inlining: base64 round-trip, missing file reported, not crashed
    ✅ Store failures surface as StoreUnavailableError and undo file writes
"""

import asyncio
import base64

import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy.exc import OperationalError

from menu_service.exceptions import (
    ImageReadError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)


def _image_files(service):
    return sorted(p.name for p in service.images.root.iterdir())


class TestMenuServiceCreate:
    """Tests for create_item and field validation."""

    @pytest.mark.asyncio
    async def test_create_then_get_returns_input(self, menu_service):
        created = await menu_service.create_item("Espresso", "Short and strong", "2.5")

        assert created.id > 0
        assert created.image is None

        fetched = await menu_service.get_item(created.id)
        assert fetched.name == "Espresso"
        assert fetched.description == "Short and strong"
        assert fetched.price == pytest.approx(2.5)

    @pytest.mark.asyncio
    async def test_create_latte_with_image_and_inline_read(
        self, menu_service, inline_menu_service, sample_png_bytes
    ):
        created = await menu_service.create_item(
            "Latte", "Hot milk coffee", "3.50",
            image_filename="latte.png",
            image_content=sample_png_bytes,
        )

        assert created.id > 0
        assert "latte.png" in created.image

        inlined = await inline_menu_service.get_item(created.id)
        assert inlined.image == base64.b64encode(sample_png_bytes).decode("ascii")
        assert inlined.price == pytest.approx(3.5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["name", "description", "price"])
    async def test_create_missing_field_rejected(self, menu_service, missing):
        fields = {"name": "Mocha", "description": "Chocolate coffee", "price": "4"}
        fields[missing] = None

        with pytest.raises(ValidationError, match=f"'{missing}' is required"):
            await menu_service.create_item(**fields)

        assert await menu_service.list_items() == []

    @pytest.mark.asyncio
    async def test_create_non_numeric_price_rejected(self, menu_service):
        with pytest.raises(ValidationError) as exc_info:
            await menu_service.create_item("Mocha", "Chocolate coffee", "four")
        assert exc_info.value.field == "price"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price", ["1e12", "100000000", "-100000000", "99999999.999"])
    async def test_create_price_outside_column_range_rejected(self, menu_service, price):
        with pytest.raises(ValidationError) as exc_info:
            await menu_service.create_item("Caviar", "By the tin", price)
        assert exc_info.value.field == "price"
        assert await menu_service.list_items() == []

    @pytest.mark.asyncio
    async def test_create_largest_price_accepted(self, menu_service):
        created = await menu_service.create_item("Caviar", "By the tin", "99999999.99")
        assert created.price == pytest.approx(99999999.99)

    @pytest.mark.asyncio
    async def test_create_empty_description_accepted(self, menu_service):
        created = await menu_service.create_item("Tea", "", "2")
        assert (await menu_service.get_item(created.id)).description == ""

    @pytest.mark.asyncio
    async def test_create_blank_name_rejected(self, menu_service):
        with pytest.raises(ValidationError) as exc_info:
            await menu_service.create_item("   ", "Chocolate coffee", "4")
        assert exc_info.value.field == "name"

    @pytest.mark.asyncio
    async def test_create_invalid_fields_store_no_image(self, menu_service, sample_png_bytes):
        with pytest.raises(ValidationError):
            await menu_service.create_item(
                "Mocha", None, "4",
                image_filename="mocha.png",
                image_content=sample_png_bytes,
            )
        assert _image_files(menu_service) == []

    @pytest.mark.asyncio
    async def test_concurrent_creates_with_same_filename_keep_both_files(
        self, menu_service, sample_png_bytes
    ):
        other_bytes = sample_png_bytes + b"-second"

        first, second = await asyncio.gather(
            menu_service.create_item(
                "Latte", "Hot milk coffee", "3.5",
                image_filename="latte.png", image_content=sample_png_bytes,
            ),
            menu_service.create_item(
                "Latte", "Hot milk coffee", "3.5",
                image_filename="latte.png", image_content=other_bytes,
            ),
        )

        assert first.image != second.image
        assert len(_image_files(menu_service)) == 2
        assert await menu_service.images.read(first.image) == sample_png_bytes
        assert await menu_service.images.read(second.image) == other_bytes

    @pytest.mark.asyncio
    async def test_create_store_failure_removes_uploaded_file(self, menu_service, sample_png_bytes):
        with patch.object(
            menu_service.store, "run", AsyncMock(side_effect=StoreUnavailableError())
        ):
            with pytest.raises(StoreUnavailableError):
                await menu_service.create_item(
                    "Latte", "Hot milk coffee", "3.5",
                    image_filename="latte.png", image_content=sample_png_bytes,
                )

        assert _image_files(menu_service) == []


class TestMenuServiceRead:
    """Tests for list_items and get_item."""

    @pytest.mark.asyncio
    async def test_list_in_insertion_order(self, menu_service):
        for name in ("Espresso", "Latte", "Mocha"):
            await menu_service.create_item(name, f"{name} description", "3")

        items = await menu_service.list_items()
        assert [item.name for item in items] == ["Espresso", "Latte", "Mocha"]
        assert [item.id for item in items] == sorted(item.id for item in items)

    @pytest.mark.asyncio
    async def test_get_unknown_id_raises_not_found(self, menu_service):
        with pytest.raises(NotFoundError, match="999"):
            await menu_service.get_item(999)

    @pytest.mark.asyncio
    async def test_list_without_inlining_keeps_filename(self, menu_service, sample_png_bytes):
        created = await menu_service.create_item(
            "Latte", "Hot milk coffee", "3.5",
            image_filename="latte.png", image_content=sample_png_bytes,
        )
        items = await menu_service.list_items()
        assert items[0].image == created.image

    @pytest.mark.asyncio
    async def test_list_inline_reports_missing_file_per_record(
        self, menu_service, inline_menu_service, sample_png_bytes
    ):
        broken = await menu_service.create_item(
            "Latte", "Hot milk coffee", "3.5",
            image_filename="latte.png", image_content=sample_png_bytes,
        )
        healthy = await menu_service.create_item(
            "Mocha", "Chocolate coffee", "4",
            image_filename="mocha.png", image_content=sample_png_bytes,
        )
        (menu_service.images.root / broken.image).unlink()

        items = await inline_menu_service.list_items()

        assert len(items) == 2
        assert items[0].id == broken.id
        assert items[0].image is None
        assert items[0].image_error.error == "image_read_error"
        assert items[1].id == healthy.id
        assert items[1].image == base64.b64encode(sample_png_bytes).decode("ascii")
        assert items[1].image_error is None

    @pytest.mark.asyncio
    async def test_get_inline_missing_file_raises(
        self, menu_service, inline_menu_service, sample_png_bytes
    ):
        created = await menu_service.create_item(
            "Latte", "Hot milk coffee", "3.5",
            image_filename="latte.png", image_content=sample_png_bytes,
        )
        (menu_service.images.root / created.image).unlink()

        with pytest.raises(ImageReadError):
            await inline_menu_service.get_item(created.id)

    @pytest.mark.asyncio
    async def test_item_without_image_is_not_inlined(self, inline_menu_service):
        created = await inline_menu_service.create_item("Tea", "Green tea", "2")
        fetched = await inline_menu_service.get_item(created.id)
        assert fetched.image is None
        assert fetched.image_error is None


class TestMenuServiceUpdate:
    """Tests for update_item."""

    @pytest.mark.asyncio
    async def test_update_without_upload_keeps_image(self, menu_service, sample_png_bytes):
        created = await menu_service.create_item(
            "Latte", "Hot milk coffee", "3.5",
            image_filename="latte.png", image_content=sample_png_bytes,
        )

        updated = await menu_service.update_item(created.id, "Oat Latte", "Oat milk coffee", "4.25")

        assert updated.name == "Oat Latte"
        assert updated.price == pytest.approx(4.25)
        assert updated.image == created.image
        fetched = await menu_service.get_item(created.id)
        assert fetched.image == created.image
        assert fetched.description == "Oat milk coffee"

    @pytest.mark.asyncio
    async def test_update_with_upload_replaces_image(self, menu_service, sample_png_bytes):
        created = await menu_service.create_item(
            "Latte", "Hot milk coffee", "3.5",
            image_filename="latte.png", image_content=sample_png_bytes,
        )
        new_bytes = sample_png_bytes + b"-v2"

        updated = await menu_service.update_item(
            created.id, "Latte", "Hot milk coffee", "3.5",
            image_filename="latte-v2.png", image_content=new_bytes,
        )

        assert updated.image != created.image
        assert "latte-v2.png" in updated.image
        assert _image_files(menu_service) == [updated.image]
        assert await menu_service.images.read(updated.image) == new_bytes

    @pytest.mark.asyncio
    async def test_update_unknown_id_raises_not_found(self, menu_service, sample_png_bytes):
        with pytest.raises(NotFoundError):
            await menu_service.update_item(
                999, "Ghost", "Does not exist", "1",
                image_filename="ghost.png", image_content=sample_png_bytes,
            )

        assert _image_files(menu_service) == []
        assert await menu_service.list_items() == []

    @pytest.mark.asyncio
    async def test_update_requires_all_fields(self, menu_service):
        created = await menu_service.create_item("Latte", "Hot milk coffee", "3.5")

        with pytest.raises(ValidationError, match="'price' is required"):
            await menu_service.update_item(created.id, "Latte", "Hot milk coffee", None)


class TestMenuServiceDelete:
    """Tests for delete_item."""

    @pytest.mark.asyncio
    async def test_delete_removes_row_and_file(self, menu_service, sample_png_bytes):
        created = await menu_service.create_item(
            "Latte", "Hot milk coffee", "3.5",
            image_filename="latte.png", image_content=sample_png_bytes,
        )
        kept = await menu_service.create_item("Tea", "Green tea", "2")

        assert await menu_service.delete_item(created.id) == created.id

        items = await menu_service.list_items()
        assert [item.id for item in items] == [kept.id]
        assert _image_files(menu_service) == []

    @pytest.mark.asyncio
    async def test_delete_tolerates_missing_image_file(self, menu_service, sample_png_bytes):
        created = await menu_service.create_item(
            "Latte", "Hot milk coffee", "3.5",
            image_filename="latte.png", image_content=sample_png_bytes,
        )
        (menu_service.images.root / created.image).unlink()

        await menu_service.delete_item(created.id)
        assert await menu_service.list_items() == []

    @pytest.mark.asyncio
    async def test_delete_unknown_id_leaves_rows_unchanged(self, menu_service):
        await menu_service.create_item("Tea", "Green tea", "2")

        with pytest.raises(NotFoundError):
            await menu_service.delete_item(999)

        assert len(await menu_service.list_items()) == 1


class TestMenuStoreFailures:
    """MenuStore.run maps driver errors and timeouts to StoreUnavailableError."""

    @pytest.mark.asyncio
    async def test_driver_error_becomes_store_unavailable(self, menu_store):
        async def failing(session):
            raise OperationalError("SELECT * FROM menu", {}, Exception("connection refused"))

        with pytest.raises(StoreUnavailableError) as exc_info:
            await menu_store.run(failing, "list menu items")

        assert "connection refused" not in exc_info.value.message
        assert exc_info.value.context["operation"] == "list menu items"

    @pytest.mark.asyncio
    async def test_timeout_becomes_store_unavailable(self, menu_store):
        menu_store.timeout = 0.05

        async def slow(session):
            await asyncio.sleep(1)

        with pytest.raises(StoreUnavailableError, match="did not respond in time"):
            await menu_store.run(slow, "slow query")

    @pytest.mark.asyncio
    async def test_application_errors_pass_through(self, menu_store):
        async def missing(session):
            raise NotFoundError(resource="menu item", resource_id="1")

        with pytest.raises(NotFoundError):
            await menu_store.run(missing, "get menu item 1")

    @pytest.mark.asyncio
    async def test_ping(self, menu_store):
        assert await menu_store.ping() is True
