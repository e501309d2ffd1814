import pytest

from app.core.exceptions import ConfigError
from app.services.uploads_config import (
    get_real_extension,
    parse_uploads_config,
    read_media_sizes,
)


BASE = {
    "extensions": ["jpg", "jpeg", "png", "gif", "zip"],
    "max_size": 1000,
    "jpeg_quality": 70,
    "gif_animation": False,
    "resize": {
        "orig": {"width": 1280, "skip_size": 500},
        "sm": {"max_width": 170, "height": 150},
    },
    "types": {
        "jpg": {"max_size": 2000, "jpeg_quality": 85, "resize": {"sm": {"jpeg_quality": 60}}},
        "gif": {"gif_animation": True},
        "zip": {"max_size": 5000},
    },
}


def test_real_extension():
    assert get_real_extension("jpeg") == "jpg"
    assert get_real_extension("jpg") == "jpg"
    assert get_real_extension("png") == "png"


def test_every_extension_gets_options():
    config = parse_uploads_config(BASE)
    assert set(config["types"]) == set(BASE["extensions"])


def test_non_images_have_no_resize():
    config = parse_uploads_config(BASE)
    assert "resize" not in config["types"]["zip"]
    assert config["types"]["zip"]["max_size"] == 5000


def test_jpeg_uses_canonical_type_options():
    config = parse_uploads_config(BASE)
    # 'jpeg' has no own type entry and borrows the 'jpg' one
    assert config["types"]["jpeg"]["max_size"] == 2000
    assert config["types"]["jpeg"]["resize"] == config["types"]["jpg"]["resize"]


def test_jpeg_quality_precedence():
    config = parse_uploads_config(BASE)
    resize = config["types"]["jpg"]["resize"]
    # preview override wins over type option
    assert resize["sm"]["jpeg_quality"] == 60
    # type option wins over global
    assert resize["orig"]["jpeg_quality"] == 85
    assert resize["orig"]["width"] == 1280


def test_global_jpeg_quality_when_type_is_silent():
    config = parse_uploads_config({**BASE, "types": {}})
    assert config["types"]["jpg"]["resize"]["orig"]["jpeg_quality"] == 70
    assert config["types"]["jpg"]["max_size"] == 1000


def test_gif_animation():
    config = parse_uploads_config(BASE)
    assert config["types"]["gif"]["resize"]["orig"]["gif_animation"] is True
    assert "jpeg_quality" not in config["types"]["gif"]["resize"]["orig"]
    assert "gif_animation" not in config["types"]["png"]["resize"]["orig"]


def test_preview_type_decides_quality_option():
    config = parse_uploads_config({**BASE, "resize": {"orig": {"width": 100, "type": "jpeg"}}})
    assert config["types"]["png"]["resize"]["orig"]["jpeg_quality"] == 70


def test_misspelled_extensions_key_accepted():
    config = dict(BASE)
    config["extentions"] = config.pop("extensions")
    parsed = parse_uploads_config(config)
    assert "png" in parsed["types"]


def test_errors_are_collected():
    bad = {
        "extensions": ["png", "PNG"],
        "max_size": "big",
        "unknown": 1,
        "resize": {"orig": {"type": "webp"}},
        "types": {"png": {"max_size": "huge"}},
    }
    with pytest.raises(ConfigError) as exc_info:
        parse_uploads_config(bad)

    details = exc_info.value.details
    joined = " ".join(details)
    assert any(d.startswith("'max_size") for d in details)
    assert "'unknown'" in joined
    assert "resize.orig.type" in joined
    assert "types.png.max_size" in joined
    assert exc_info.value.message == ", ".join(details)


@pytest.mark.parametrize("bad", [
    {"extensions": ["png"], "types": ["png"]},
    {"extensions": ["png"], "resize": ["orig"]},
    {"extensions": ["png"], "types": {"png": 5}},
])
def test_badly_shaped_sections_are_config_errors(bad):
    with pytest.raises(ConfigError) as exc_info:
        parse_uploads_config(bad)
    assert exc_info.value.details


def test_empty_extensions_rejected():
    with pytest.raises(ConfigError):
        parse_uploads_config({"extensions": []})


def test_result_is_not_shared():
    first = parse_uploads_config(BASE)
    first["types"]["png"]["max_size"] = 1
    second = parse_uploads_config(BASE)
    assert second["types"]["png"]["max_size"] == 1000


def test_media_sizes_ordered_orig_first():
    sizes = read_media_sizes({
        "sm": {"width": 170, "height": 150},
        "orig": {"width": 1280, "height": 1280, "quality": 90},
    })
    assert [s["size"] for s in sizes] == ["orig", "sm"]
    assert sizes[1]["quality"] == 90


@pytest.mark.parametrize("config", [
    {},
    {"md": {"width": 10, "height": 10}},
    {"orig": {"width": 0, "height": 10}},
    {"orig": {"width": 10, "height": 10, "quality": 150}},
])
def test_media_sizes_rejected(config):
    with pytest.raises(ConfigError):
        read_media_sizes(config)
