"""
Menu Service Backend: Image Storage
====================================

What:  Validation, storage, retrieval and removal of menu item images on disk.
How:   Files live flat in IMAGES_DIR under generated names; all I/O goes
       through aiofiles and is bounded by FILE_TIMEOUT_SECONDS.
Who:   MenuService (store/read/remove) and the /images route (resolve).

Upload naming:
    <time_ns>-<12 hex chars of uuid4>-<sanitised original name>
    e.g. 1718000000123456789-3fa2c1d0e9b4-latte.png

    The timestamp keeps directory listings in upload order, the random token
    separates uploads landing in the same clock tick, and the original name
    stays recognisable. Files are opened with mode "xb" (exclusive create),
    so an existing file is never overwritten even if two names did collide.

Security:
    - Only the basename of the client filename is kept; characters outside
      [A-Za-z0-9._-] are replaced
    - ``resolve`` rejects any name that would leave IMAGES_DIR
"""

import asyncio
import base64
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from menu_service.exceptions import ImageReadError, UploadError, ValidationError

logger = logging.getLogger(__name__)

# What: Extensions accepted for upload (lowercase, with dot)
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class ImageStorage:
    """
    Manages the image directory.

    Lifecycle of an uploaded image:
        1. MenuService receives (filename, bytes) from the route
        2. ``store`` checks extension and size, generates a name, writes the file
        3. The generated name is persisted in ``menu.image``
        4. ``read``/``read_base64`` serve inlined responses
        5. ``remove`` runs on delete, on image replacement, and to undo a
           write whose row insert/update failed
    """

    def __init__(self, root: str, max_size: int = 5_242_880, timeout: float = 5.0):
        self.root = Path(root).resolve()
        self.max_size = max_size
        self.timeout = timeout
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info("ImageStorage initialized with root=%s", self.root)

    # ── Validation ────────────────────────────────────────────────────────

    def validate_extension(self, filename: str) -> str:
        """
        Returns the normalized extension (lowercase with dot).

        Raises:  ValidationError if the extension is not allowed.
        """
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"Image type '{ext or filename}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="image",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, content: bytes) -> None:
        """Rejects empty uploads and uploads above ``max_size`` bytes."""
        if not content:
            raise ValidationError(
                message="The uploaded image is empty.",
                field="image",
            )
        if len(content) > self.max_size:
            max_mb = self.max_size / (1024 * 1024)
            raise ValidationError(
                message=f"Image is too large ({len(content)} bytes). Maximum is {max_mb:.1f}MB.",
                field="image",
                context={"max_size": self.max_size, "actual_size": len(content)},
            )

    # ── Naming ────────────────────────────────────────────────────────────

    @staticmethod
    def sanitize_name(filename: str) -> str:
        """Basename of ``filename`` restricted to filesystem-safe characters."""
        name = Path(filename.replace("\\", "/")).name
        name = _UNSAFE_CHARS.sub("_", name).lstrip(".")
        return name or "image"

    def generate_filename(self, original_filename: str) -> str:
        return f"{time.time_ns()}-{uuid.uuid4().hex[:12]}-{self.sanitize_name(original_filename)}"

    def resolve(self, filename: str) -> Path:
        """
        Absolute path of ``filename`` inside the image directory.

        Raises:  ValidationError when the name would escape the directory or
                 is not a valid path (e.g. contains a NUL byte).
        """
        try:
            candidate = (self.root / filename).resolve()
        except (ValueError, OSError):
            candidate = None
        if candidate is None or candidate.parent != self.root:
            raise ValidationError(
                message="Invalid image filename.",
                field="filename",
            )
        return candidate

    # ── I/O ───────────────────────────────────────────────────────────────

    async def store(self, content: bytes, original_filename: str) -> str:
        """
        Validate and write an upload; returns the generated filename.

        Raises:
            ValidationError: bad extension, empty or oversized content
            UploadError:     write failed, timed out, or name already taken
        """
        self.validate_extension(original_filename)
        self.validate_size(content)

        filename = self.generate_filename(original_filename)
        path = self.root / filename

        async def _write() -> None:
            async with aiofiles.open(path, "xb") as f:
                await f.write(content)

        try:
            await asyncio.wait_for(_write(), timeout=self.timeout)
        except FileExistsError as e:
            logger.error("Generated image name already exists: %s", filename)
            raise UploadError(context={"filename": filename, "os_error": str(e)}) from e
        except asyncio.TimeoutError as e:
            logger.error("Writing image %s timed out after %.1fs", filename, self.timeout)
            await self.remove(filename)
            raise UploadError(
                message="Saving the uploaded image timed out. Please try again.",
                context={"filename": filename, "timeout": self.timeout},
            ) from e
        except OSError as e:
            logger.error("Failed to store image at %s: %s", path, str(e))
            raise UploadError(context={"path": str(path), "os_error": str(e)}) from e

        logger.info("Image stored: %s (%d bytes)", filename, len(content))
        return filename

    async def read(self, filename: str) -> bytes:
        """
        Read an image's bytes.

        Raises:  ImageReadError when the file cannot be read within the timeout.
        """
        try:
            path = self.resolve(filename)
        except ValidationError as e:
            raise ImageReadError(filename=filename, context={"reason": "invalid filename"}) from e

        async def _read() -> bytes:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()

        try:
            return await asyncio.wait_for(_read(), timeout=self.timeout)
        except FileNotFoundError as e:
            logger.warning("Image file missing: %s", filename)
            raise ImageReadError(
                message=f"Image file '{filename}' is missing.",
                filename=filename,
            ) from e
        except asyncio.TimeoutError as e:
            raise ImageReadError(
                message=f"Reading image file '{filename}' timed out.",
                filename=filename,
                context={"timeout": self.timeout},
            ) from e
        except OSError as e:
            logger.error("Failed to read image %s: %s", filename, str(e))
            raise ImageReadError(filename=filename, context={"os_error": str(e)}) from e

    async def read_base64(self, filename: str) -> str:
        content = await self.read(filename)
        return base64.b64encode(content).decode("ascii")

    async def remove(self, filename: Optional[str]) -> bool:
        """
        Delete an image file; returns True when a file was removed.

        A missing file is not an error. Other failures are logged and
        reported as False.
        """
        if not filename:
            return False
        try:
            path = self.resolve(filename)
            await asyncio.wait_for(aiofiles.os.remove(path), timeout=self.timeout)
        except FileNotFoundError:
            logger.debug("Image already gone: %s", filename)
            return False
        except (OSError, ValidationError, asyncio.TimeoutError) as e:
            logger.warning("Failed to remove image %s: %s", filename, str(e))
            return False
        logger.info("Image removed: %s", filename)
        return True
