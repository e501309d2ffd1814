import io

import pytest
from PIL import Image, UnidentifiedImageError

from app.services import image_service
from utils.image_utils import client_resize, compute_scaled_size, resize_to_height

SIZES = [
    {"size": "orig", "width": 1280, "height": 1280, "quality": 90},
    {"size": "md", "width": 640, "height": 480, "quality": 80},
    {"size": "sm", "width": 170, "height": 150, "quality": 75},
]


def test_resize_to_height_keeps_whole_portrait():
    image = Image.new("RGB", (1000, 3000))
    assert resize_to_height(image, 640, 480).size == (160, 480)


def test_resize_to_height_crops_landscape_center():
    image = Image.new("RGB", (2000, 1000), (0, 0, 255))
    image.paste((255, 0, 0), (960, 0, 1040, 1000))

    result = resize_to_height(image, 640, 480)

    assert result.size == (640, 480)
    assert result.getpixel((320, 240))[0] > 200


def test_resize_to_height_keeps_small_images():
    image = Image.new("RGB", (100, 80))
    assert resize_to_height(image, 640, 480) is image


def test_resize_to_height_for_wide_strip():
    image = Image.new("RGB", (1000, 300))
    assert resize_to_height(image, 640, 480).size == (640, 480)


def test_scaled_size_by_height_with_max_width():
    assert compute_scaled_size(2000, 1000, {"height": 150, "max_width": 170}) == (170, 150)
    assert compute_scaled_size(200, 1000, {"height": 150, "max_width": 170}) == (30, 150)


def test_scaled_size_by_width_with_max_height():
    assert compute_scaled_size(2000, 1000, {"width": 1280}) == (1280, 640)
    assert compute_scaled_size(1000, 4000, {"width": 100, "max_height": 300}) == (100, 300)


def test_scaled_size_exact():
    assert compute_scaled_size(2000, 1000, {"width": 300, "height": 300}) == (300, 300)


def test_client_resize():
    image = Image.new("RGB", (2000, 1000))
    assert client_resize(image, {"height": 150, "max_width": 170}).size == (170, 150)


async def test_create_image_stores_original_and_previews(file_store, image_bytes):
    orig_id = await image_service.create_image(image_bytes(2000, 1000), SIZES)

    assert file_store.names() == sorted([str(orig_id), f"{orig_id}_md", f"{orig_id}_sm"])

    data, content_type = await file_store.get(file_id=orig_id)
    assert content_type == "image/jpeg"
    assert Image.open(io.BytesIO(data)).size == (1280, 1280)

    md, md_type = await file_store.get(filename=f"{orig_id}_md")
    assert md_type == "image/jpeg"
    assert Image.open(io.BytesIO(md)).size == (480, 480)

    sm, _ = await file_store.get(filename=f"{orig_id}_sm")
    assert Image.open(io.BytesIO(sm)).size == (150, 150)


async def test_create_image_keeps_png(file_store, image_bytes):
    orig_id = await image_service.create_image(image_bytes(300, 300, fmt="PNG"), SIZES)
    _, content_type = await file_store.get(filename=f"{orig_id}_sm")
    assert content_type == "image/png"


async def test_create_image_keeps_exif(file_store):
    exif = Image.Exif()
    exif[0x010E] = "holiday"
    buffer = io.BytesIO()
    Image.new("RGB", (2000, 1000)).save(buffer, format="JPEG", exif=exif.tobytes())

    orig_id = await image_service.create_image(buffer.getvalue(), SIZES)

    data, _ = await file_store.get(file_id=orig_id)
    assert Image.open(io.BytesIO(data)).getexif().get(0x010E) == "holiday"


async def test_create_image_cleans_up_on_failure(file_store, image_bytes, monkeypatch):
    render = image_service._render

    def failing_render(data, size):
        if size["size"] == "sm":
            raise OSError("disk full")
        return render(data, size)

    monkeypatch.setattr(image_service, "_render", failing_render)

    with pytest.raises(OSError):
        await image_service.create_image(image_bytes(2000, 1000), SIZES)

    assert file_store.files == {}


async def test_create_image_rejects_non_images(file_store):
    with pytest.raises(UnidentifiedImageError):
        await image_service.create_image(b"not an image", SIZES)
    assert file_store.files == {}
