"""
Menu Service Backend: MenuItem SQLAlchemy Model
================================================

What:  ORM model for the `menu` table.
Who:   MenuService for CRUD; Alembic for schema management.

Table Design:
    - Integer autoincrement id: assigned by the store, immutable
    - price: NUMERIC(10, 2) read back as float so JSON carries a number
    - image: filename relative to IMAGES_DIR; base64 is never stored
"""

from typing import Optional

from sqlalchemy import Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from menu_service.database import Base


class MenuItem(Base):
    """
    One entry on the menu.

    Lifecycle:
        1. Created by MenuService.create_item (id assigned on flush)
        2. Fields replaced by MenuService.update_item; image only on new upload
        3. Deleted by MenuService.delete_item together with its image file
    """

    __tablename__ = "menu"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    price: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False),
        nullable=False,
    )

    # What: Generated filename inside IMAGES_DIR (e.g. 1718000000000000000-3fa2c1d0e9b4-latte.png)
    image: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        default=None,
    )

    def __repr__(self) -> str:
        return f"<MenuItem(id={self.id}, name='{self.name}', price={self.price})>"
