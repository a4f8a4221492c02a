"""
Image service — turns one uploaded image into the stored variant set.

Pipeline
--------
1. ``read_limited`` enforces the upload ceiling while reading, so an
   oversized body is rejected (413) before any decoding happens.
2. ``PillowCodec.decode`` identifies the format (JPEG, PNG or GIF only)
   and decodes the pixels once.
3. Each ``VariantSpec`` is resized (width-bounded, aspect preserved, never
   upscaled) and encoded in memory.
4. ``ImageStore.write_all`` writes the encoded files under one random base
   name.  If a write fails, files already written for this upload are
   removed before the error propagates.

Variants live in a flat directory with no database row; deleting one file
leaves its siblings in place.
"""
import io
import logging
import secrets
import string
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from PIL import Image, UnidentifiedImageError

from blog.config import settings
from blog.exceptions import ImageDecodeFailure, PayloadTooLarge, ValidationFailure

logger = logging.getLogger(__name__)

ALLOWED_FORMATS = frozenset({"JPEG", "PNG", "GIF"})
IMAGES_DIR = "images"
PUBLIC_URL_PREFIX = "/storage"
BASENAME_LENGTH = 20
_BASENAME_ALPHABET = string.ascii_letters + string.digits


@dataclass(frozen=True)
class VariantSpec:
    name: str
    suffix: str
    format: str
    max_width: int
    reports_dimensions: bool = True


VARIANTS: tuple[VariantSpec, ...] = (
    VariantSpec("large", ".jpg", "JPEG", 1200),
    VariantSpec("medium", "-medium.jpg", "JPEG", 600),
    VariantSpec("thumbnail", "-thumb.jpg", "JPEG", 300),
    VariantSpec("webp", ".webp", "WEBP", 1200, reports_dimensions=False),
)


@dataclass
class EncodedVariant:
    spec: VariantSpec
    filename: str
    data: bytes
    width: int
    height: int

    def metadata(self) -> dict:
        meta = {"filename": self.filename, "size": len(self.data)}
        if self.spec.reports_dimensions:
            meta["width"] = self.width
            meta["height"] = self.height
        return meta


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

class PillowCodec:
    """Decode, resize and encode raster images with Pillow."""

    def decode(self, data: bytes) -> Image.Image:
        """
        Return the decoded image in RGB, L or RGBA mode.

        Raises ``ValidationFailure`` for a readable image in a format outside
        ``ALLOWED_FORMATS`` and ``ImageDecodeFailure`` for anything Pillow
        cannot read.
        """
        try:
            image = Image.open(io.BytesIO(data))
        except (UnidentifiedImageError, Image.DecompressionBombError) as exc:
            raise ImageDecodeFailure("The uploaded file is not a readable image.", field="image") from exc

        if image.format not in ALLOWED_FORMATS:
            raise ValidationFailure({"image": "The image must be a file of type: jpeg, png, jpg, gif."})

        try:
            image.load()
        except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
            raise ImageDecodeFailure("The uploaded image is corrupt.", field="image") from exc

        if image.mode in ("RGB", "L", "RGBA"):
            return image
        if image.mode == "LA" or "transparency" in image.info:
            return image.convert("RGBA")
        return image.convert("RGB")

    def resize(self, image: Image.Image, max_width: int) -> Image.Image:
        """Scale *image* down to *max_width*, keeping its aspect ratio; never upscale."""
        width, height = image.size
        if width <= max_width:
            return image.copy()
        new_height = max(1, round(height * max_width / width))
        return image.resize((max_width, new_height), Image.Resampling.LANCZOS)

    def encode(self, image: Image.Image, fmt: str, quality: int) -> bytes:
        if fmt == "JPEG" and image.mode == "RGBA":
            # JPEG has no alpha channel: flatten onto white.
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.getchannel("A"))
            image = background
        elif fmt == "WEBP" and image.mode == "L":
            image = image.convert("RGB")

        buffer = io.BytesIO()
        image.save(buffer, format=fmt, quality=quality)
        return buffer.getvalue()


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class ImageStore:
    """
    Flat directory of image variants under ``<root>/images``.

    Stored paths handed to clients are relative to *root*
    (``images/<filename>``), and public URLs are ``/storage/images/<filename>``.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    @property
    def images_dir(self) -> Path:
        return self.root / IMAGES_DIR

    def url_for(self, filename: str) -> str:
        return f"{PUBLIC_URL_PREFIX}/{IMAGES_DIR}/{filename}"

    def write_all(self, variants: list[EncodedVariant]) -> None:
        """Write every variant, or none of them."""
        self.images_dir.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []
        try:
            for variant in variants:
                path = self.images_dir / variant.filename
                written.append(path)
                path.write_bytes(variant.data)
        except Exception:
            for path in written:
                path.unlink(missing_ok=True)
            logger.warning("Image write failed, removed %d partial variant(s)", len(written))
            raise
        logger.debug("Stored %s", ", ".join(v.filename for v in variants))

    def _resolve(self, relative_path: str) -> Path:
        if "\x00" in relative_path:
            raise ValidationFailure({"path": "The path is not a valid file name."})
        root = self.root.resolve()
        try:
            candidate = (root / relative_path).resolve()
        except (ValueError, OSError) as exc:
            raise ValidationFailure({"path": "The path is not a valid file name."}) from exc
        if candidate == root or not candidate.is_relative_to(root):
            raise ValidationFailure({"path": "The path must point inside the image storage."})
        return candidate

    def delete(self, relative_path: str) -> bool:
        """Remove exactly the file at *relative_path*; False when there is none."""
        path = self._resolve(relative_path)
        if not path.is_file():
            return False
        path.unlink()
        logger.info("Deleted stored image %s", relative_path)
        return True


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def random_basename(length: int = BASENAME_LENGTH) -> str:
    return "".join(secrets.choice(_BASENAME_ALPHABET) for _ in range(length))


def read_limited(stream: BinaryIO, max_bytes: int) -> bytes:
    """
    Read *stream* to the end, raising ``PayloadTooLarge`` as soon as it is
    known to exceed *max_bytes*.
    """
    data = stream.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise PayloadTooLarge(f"The image may not be greater than {max_bytes} bytes.")
    return data


def process_upload(
    data: bytes,
    store: ImageStore,
    codec: PillowCodec | None = None,
    quality: int | None = None,
) -> dict:
    """
    Decode *data* once, write the large/medium/thumbnail/WebP variants to
    *store* and return the upload report.
    """
    if not data:
        raise ImageDecodeFailure("The uploaded file is empty.", field="image")

    codec = codec or PillowCodec()
    quality = quality or settings.IMAGE_JPEG_QUALITY
    image = codec.decode(data)
    base = random_basename()

    resized: dict[int, Image.Image] = {}
    encoded: list[EncodedVariant] = []
    for spec in VARIANTS:
        if spec.max_width not in resized:
            resized[spec.max_width] = codec.resize(image, spec.max_width)
        variant_image = resized[spec.max_width]
        encoded.append(
            EncodedVariant(
                spec=spec,
                filename=base + spec.suffix,
                data=codec.encode(variant_image, spec.format, quality),
                width=variant_image.width,
                height=variant_image.height,
            )
        )

    store.write_all(encoded)

    images = {variant.spec.name: variant.metadata() for variant in encoded}
    large = images["large"]
    logger.info(
        "Image %s stored: %d -> %d bytes (%dx%d)",
        base, len(data), large["size"], large["width"], large["height"],
    )
    return {
        "message": "Image uploaded and optimized successfully",
        "original_size": len(data),
        "optimized_size": large["size"],
        "reduction_percent": round((1 - large["size"] / len(data)) * 100, 1),
        "images": images,
        "url": store.url_for(large["filename"]),
    }
