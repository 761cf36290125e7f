"""Store generated scene images on disk and hand out references.

Generated images arrive as base64 text. Keeping them out of the session
record keeps each persisted conversation small; the message only carries
a reference such as `/images/<uuid>.png`, served by `routes/image_route.py`.
"""

from __future__ import annotations

import base64
import binascii
import io
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
from PIL import Image, UnidentifiedImageError

from utils.media_validation import strip_data_url_prefix

IMAGE_ROUTE_PREFIX = "/images/"
_EXTENSIONS = {"PNG": "png", "JPEG": "jpg", "WEBP": "webp", "GIF": "gif"}


class ImageStore:
	"""Validate and persist generated images under `images_dir`."""

	def __init__(self, images_dir: Path | str) -> None:
		self.images_dir = Path(images_dir)

	async def save_base64(self, data: str) -> str:
		"""Decode, validate, and write an image; return its reference.

		Raises:
			ValueError: If the data is not base64 or not a supported image.
		"""
		try:
			raw = base64.b64decode(strip_data_url_prefix(data), validate=True)
		except (binascii.Error, ValueError) as exc:
			raise ValueError("Invalid base64 image data") from exc
		if not raw:
			raise ValueError("Image data is empty")

		try:
			with Image.open(io.BytesIO(raw)) as img:
				img.verify()
				fmt = (img.format or "").upper()
		except (UnidentifiedImageError, OSError) as exc:
			raise ValueError("Decoded bytes are not a supported image format") from exc

		ext = _EXTENSIONS.get(fmt)
		if ext is None:
			raise ValueError(f"Unsupported image format: {fmt or 'unknown'}")

		self.images_dir.mkdir(parents=True, exist_ok=True)
		filename = f"{uuid.uuid4().hex}.{ext}"
		async with aiofiles.open(self.images_dir / filename, "wb") as fh:
			await fh.write(raw)
		return IMAGE_ROUTE_PREFIX + filename

	def resolve(self, name: str) -> Optional[Path]:
		"""Return the file path for a stored image name, or None."""
		candidate = (self.images_dir / name).resolve()
		if candidate.parent != self.images_dir.resolve() or not candidate.is_file():
			return None
		return candidate
