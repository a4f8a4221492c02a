"""
Image upload tests — variant geometry and encoding, upload preconditions
(missing file, size ceiling, format), failure cleanup, and deletion by
stored path.
"""
import io

import pytest
from httpx import AsyncClient
from PIL import Image

from blog.config import settings
from blog.exceptions import ImageDecodeFailure, PayloadTooLarge, ValidationFailure
from blog.services import image_service
from blog.services.image_service import ImageStore, PillowCodec


def _image_bytes(size=(2000, 1500), fmt="JPEG", mode="RGB", color=(200, 80, 40)) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def _stored_files(store: ImageStore) -> list[str]:
    if not store.images_dir.exists():
        return []
    return sorted(p.name for p in store.images_dir.iterdir())


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

def test_resize_bounds_width_and_keeps_aspect():
    codec = PillowCodec()
    image = codec.decode(_image_bytes((2000, 1500)))
    assert codec.resize(image, 1200).size == (1200, 900)
    assert codec.resize(image, 600).size == (600, 450)
    assert codec.resize(image, 300).size == (300, 225)


def test_resize_never_upscales():
    codec = PillowCodec()
    image = codec.decode(_image_bytes((800, 600)))
    assert codec.resize(image, 1200).size == (800, 600)


def test_decode_rejects_unsupported_format():
    with pytest.raises(ValidationFailure) as excinfo:
        PillowCodec().decode(_image_bytes((10, 10), fmt="BMP"))
    assert "image" in excinfo.value.errors


def test_decode_rejects_garbage():
    with pytest.raises(ImageDecodeFailure):
        PillowCodec().decode(b"definitely not an image")


def test_decode_rejects_truncated_jpeg():
    data = _image_bytes((400, 300))
    with pytest.raises(ImageDecodeFailure):
        PillowCodec().decode(data[: len(data) // 2])


def test_transparent_png_flattens_to_jpeg():
    codec = PillowCodec()
    image = codec.decode(_image_bytes((50, 40), fmt="PNG", mode="RGBA", color=(0, 0, 0, 0)))
    assert image.mode == "RGBA"
    encoded = Image.open(io.BytesIO(codec.encode(image, "JPEG", 80)))
    assert encoded.format == "JPEG"
    assert encoded.mode == "RGB"
    # Fully transparent pixels become white.
    assert all(channel > 240 for channel in encoded.getpixel((10, 10)))


def test_gif_is_accepted():
    image = PillowCodec().decode(_image_bytes((64, 48), fmt="GIF", mode="P", color=3))
    assert image.mode in ("RGB", "RGBA")


def test_read_limited():
    assert image_service.read_limited(io.BytesIO(b"12345"), 5) == b"12345"
    with pytest.raises(PayloadTooLarge):
        image_service.read_limited(io.BytesIO(b"123456"), 5)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def test_process_upload_writes_four_variants(image_store: ImageStore):
    data = _image_bytes((2000, 1500))
    report = image_service.process_upload(data, image_store)

    images = report["images"]
    base = images["large"]["filename"][: -len(".jpg")]
    assert len(base) == 20 and base.isalnum()
    assert images["large"]["filename"] == f"{base}.jpg"
    assert images["medium"]["filename"] == f"{base}-medium.jpg"
    assert images["thumbnail"]["filename"] == f"{base}-thumb.jpg"
    assert images["webp"]["filename"] == f"{base}.webp"
    assert _stored_files(image_store) == sorted(v["filename"] for v in images.values())

    assert (images["large"]["width"], images["large"]["height"]) == (1200, 900)
    assert (images["medium"]["width"], images["medium"]["height"]) == (600, 450)
    assert (images["thumbnail"]["width"], images["thumbnail"]["height"]) == (300, 225)
    assert "width" not in images["webp"]

    for variant in images.values():
        path = image_store.images_dir / variant["filename"]
        assert path.stat().st_size == variant["size"]

    webp = Image.open(image_store.images_dir / images["webp"]["filename"])
    assert webp.format == "WEBP"
    assert webp.size == (1200, 900)

    assert report["original_size"] == len(data)
    assert report["optimized_size"] == images["large"]["size"]
    assert report["reduction_percent"] == round((1 - images["large"]["size"] / len(data)) * 100, 1)
    assert report["url"] == f"/storage/images/{base}.jpg"


def test_small_upload_keeps_its_size(image_store: ImageStore):
    report = image_service.process_upload(_image_bytes((250, 100), fmt="PNG"), image_store)
    for name in ("large", "medium", "thumbnail"):
        assert (report["images"][name]["width"], report["images"][name]["height"]) == (250, 100)


def test_corrupt_upload_persists_nothing(image_store: ImageStore):
    with pytest.raises(ImageDecodeFailure):
        image_service.process_upload(b"\xff\xd8\xff garbage", image_store)
    assert _stored_files(image_store) == []


def test_failed_write_removes_partial_variants(image_store: ImageStore, monkeypatch):
    original_write = type(image_store.images_dir).write_bytes
    calls = []

    def flaky_write(path, data):
        calls.append(path.name)
        if path.name.endswith("-medium.jpg"):
            raise OSError("disk full")
        return original_write(path, data)

    monkeypatch.setattr(type(image_store.images_dir), "write_bytes", flaky_write)
    with pytest.raises(OSError):
        image_service.process_upload(_image_bytes((900, 600)), image_store)

    assert len(calls) == 2
    assert _stored_files(image_store) == []


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

def test_delete_removes_exactly_one_file(image_store: ImageStore):
    report = image_service.process_upload(_image_bytes((640, 480)), image_store)
    large = report["images"]["large"]["filename"]

    assert image_store.delete(f"images/{large}") is True
    remaining = _stored_files(image_store)
    assert large not in remaining
    assert len(remaining) == 3
    assert image_store.delete(f"images/{large}") is False


@pytest.mark.parametrize("path", [
    "../secret.txt", "images/../../secret.txt", "/etc/passwd", ".", "images/a\x00.jpg",
])
def test_delete_rejects_paths_outside_storage(image_store: ImageStore, path: str):
    with pytest.raises(ValidationFailure):
        image_store.delete(path)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_upload_endpoint(async_client: AsyncClient, image_store: ImageStore):
    resp = await async_client.post(
        "/api/v1/images",
        files={"image": ("photo.jpg", _image_bytes((2000, 1500)), "image/jpeg")},
    )
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["message"] == "Image uploaded and optimized successfully"
    assert data["images"]["large"]["width"] == 1200
    assert data["images"]["large"]["height"] == 900
    assert "width" not in data["images"]["webp"]
    assert data["url"].startswith("/storage/images/")
    assert len(_stored_files(image_store)) == 4


@pytest.mark.asyncio
async def test_upload_without_file(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/images", data={"caption": "nothing attached"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_upload_one_byte_over_ceiling_is_413(async_client: AsyncClient, image_store: ImageStore):
    oversized = b"\0" * (settings.IMAGE_MAX_UPLOAD_BYTES + 1)
    resp = await async_client.post(
        "/api/v1/images", files={"image": ("big.jpg", oversized, "image/jpeg")}
    )
    assert resp.status_code == 413
    assert _stored_files(image_store) == []


@pytest.mark.asyncio
async def test_upload_unsupported_format_is_422(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/images", files={"image": ("pic.bmp", _image_bytes((20, 20), fmt="BMP"), "image/bmp")}
    )
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["loc"] == ["body", "image"]


@pytest.mark.asyncio
async def test_upload_corrupt_image_is_422(async_client: AsyncClient, image_store: ImageStore):
    resp = await async_client.post(
        "/api/v1/images", files={"image": ("bad.jpg", b"not really a jpeg", "image/jpeg")}
    )
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["type"] == "image_decode"
    assert _stored_files(image_store) == []


@pytest.mark.asyncio
async def test_delete_endpoint_then_repeat(async_client: AsyncClient, image_store: ImageStore):
    upload = await async_client.post(
        "/api/v1/images", files={"image": ("photo.png", _image_bytes((320, 240), fmt="PNG"), "image/png")}
    )
    filename = upload.json()["images"]["thumbnail"]["filename"]

    first = await async_client.delete("/api/v1/images", params={"path": f"images/{filename}"})
    assert first.status_code == 200
    assert first.json() == {"message": "Image deleted successfully"}
    assert not (image_store.images_dir / filename).exists()

    second = await async_client.delete("/api/v1/images", params={"path": f"images/{filename}"})
    assert second.status_code == 404


@pytest.mark.asyncio
async def test_delete_endpoint_rejects_traversal(async_client: AsyncClient):
    resp = await async_client.delete("/api/v1/images", params={"path": "../../etc/passwd"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_delete_endpoint_rejects_nul_byte(async_client: AsyncClient):
    resp = await async_client.delete("/api/v1/images", params={"path": "images/a\x00.jpg"})
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["loc"] == ["body", "path"]
