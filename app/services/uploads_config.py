"""
app/services/uploads_config.py

Purpose: Read, validate and prepare uploads configuration

- Validates common, per-type and per-preview options
- Expands options per file extension (with canonical extension lookup)
- Reads media sizes for server side preview generation
- Parsed configs are memoized by their JSON form

Result example (for `extensions: [png, zip]`):

    types:
      png:
        max_size: 2000000
        resize:
          orig: {width: 1280, skip_size: 1000000}
          md:   {width: 640}
          sm:   {max_width: 170, height: 150}
      zip:
        max_size: 2000000
"""

import copy
import json
import mimetypes
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    ValidationError as PydanticValidationError,
    field_validator,
)

from app.core.config import settings
from app.core.exceptions import ConfigError
from app.core.logging import get_logger

logger = get_logger(__name__)

Number = Union[StrictInt, StrictFloat]

# Built-in tables only, so results do not depend on the host's mime.types
_mime = mimetypes.MimeTypes()


class ResizeOptions(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    skip_size: Optional[Number] = None
    type: Optional[Literal["jpeg", "png", "gif"]] = None
    from_: Optional[Literal["orig", "md", "sm"]] = Field(default=None, alias="from")
    width: Optional[Number] = None
    height: Optional[Number] = None
    max_width: Optional[Number] = None
    max_height: Optional[Number] = None
    jpeg_quality: Optional[Number] = None
    unsharp: Optional[StrictBool] = None


class TypeOptions(BaseModel):
    model_config = ConfigDict(extra="allow")

    max_size: Optional[Number] = None
    jpeg_quality: Optional[Number] = None
    gif_animation: Optional[StrictBool] = None
    resize: Optional[Dict[str, Any]] = None


class UploadsOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    extensions: List[str] = Field(
        min_length=1,
        validation_alias=AliasChoices("extensions", "extentions"),
    )
    max_size: Optional[Number] = None
    jpeg_quality: Optional[Number] = None
    gif_animation: Optional[StrictBool] = None
    resize: Dict[str, Any] = Field(default_factory=dict)
    types: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("extensions")
    @classmethod
    def validate_extensions(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("must contain unique items")
        for ext in v:
            if not ext.isalpha() or not ext.islower():
                raise ValueError(f"'{ext}' must be a lowercase latin word")
        return v


def _format_errors(exc: PydanticValidationError, prefix: str = "") -> List[str]:
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"])
        if prefix:
            field = f"{prefix}.{field}" if field else prefix
        messages.append(f"'{field}' {err['msg']} '{err.get('input')}'")
    return messages


def _validate(config: Dict[str, Any]) -> UploadsOptions:
    """
    Validates every level of the config and raises one ConfigError with all problems.
    """
    errors: List[str] = []
    options = None

    try:
        options = UploadsOptions.model_validate(config)
    except PydanticValidationError as e:
        errors.extend(_format_errors(e))

    types = config.get("types")
    for ext, type_config in (types.items() if isinstance(types, dict) else ()):
        try:
            type_options = TypeOptions.model_validate(type_config)
        except PydanticValidationError as e:
            errors.extend(_format_errors(e, f"types.{ext}"))
            continue
        for key, resize in (type_options.resize or {}).items():
            try:
                ResizeOptions.model_validate(resize)
            except PydanticValidationError as e:
                errors.extend(_format_errors(e, f"types.{ext}.resize.{key}"))

    resize_options = config.get("resize")
    for key, resize in (resize_options.items() if isinstance(resize_options, dict) else ()):
        try:
            ResizeOptions.model_validate(resize)
        except PydanticValidationError as e:
            errors.extend(_format_errors(e, f"resize.{key}"))

    if errors:
        raise ConfigError(", ".join(errors), details=errors)

    return options


def get_mime_type(ext: str) -> str:
    mime_type, _ = _mime.guess_type(f"file.{ext}", strict=False)
    return mime_type or "application/octet-stream"


def get_real_extension(ext: str) -> str:
    """
    Canonical extension for the type (e.g. 'jpg' for 'jpeg').
    """
    mime_type, _ = _mime.guess_type(f"file.{ext}", strict=False)
    if not mime_type:
        return ext
    real = _mime.guess_extension(mime_type, strict=False)
    return real.lstrip(".") if real else ext


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


@lru_cache(maxsize=32)
def _parse(config_json: str) -> Dict[str, Any]:
    config = json.loads(config_json)
    config.setdefault("types", {})
    config.setdefault("resize", {})
    if "extentions" in config and "extensions" not in config:
        config["extensions"] = config.pop("extentions")

    _validate(config)

    types_options = {}

    for ext in config["extensions"]:
        mime_type = get_mime_type(ext)
        real_extension = get_real_extension(ext)
        type_config = config["types"].get(real_extension) or config["types"].get(ext) or {}

        config_for_ext: Dict[str, Any] = {"max_size": config.get("max_size")}

        if mime_type.startswith("image/"):
            config_for_ext["resize"] = {}

            for key, preview_options in config["resize"].items():
                preview_type_options = (type_config.get("resize") or {}).get(key) or {}
                preview = {**preview_options, **preview_type_options}

                if preview.get("type") == "jpeg" or (real_extension == "jpg" and not preview.get("type")):
                    preview["jpeg_quality"] = _first(
                        preview.get("jpeg_quality"),
                        type_config.get("jpeg_quality"),
                        config.get("jpeg_quality"),
                    )

                if preview.get("type") == "gif" or (real_extension == "gif" and not preview.get("type")):
                    preview["gif_animation"] = _first(
                        preview.get("gif_animation"),
                        type_config.get("gif_animation"),
                        config.get("gif_animation"),
                    )

                config_for_ext["resize"][key] = preview

        config_for_ext.update({k: v for k, v in type_config.items() if k != "resize"})
        types_options[ext] = config_for_ext

    config["types"] = types_options
    logger.debug(f"Uploads config parsed for extensions: {', '.join(config['extensions'])}")
    return config


def parse_uploads_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validates the uploads config and expands options per extension.

    Args:
        config: Raw uploads config

    Returns:
        Config copy with `types` keyed by every allowed extension

    Raises:
        ConfigError: If any option is invalid (all problems are listed)
    """
    if not isinstance(config, dict):
        raise ConfigError("Uploads config must be a mapping")
    parsed = _parse(json.dumps(config, sort_keys=True))
    return copy.deepcopy(parsed)


def read_media_sizes(config: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Turns the media sizes mapping into an ordered list, `orig` first.

    Args:
        config: {"orig": {"width", "height", "quality"}, "md": {...}, ...}

    Returns:
        [{"size": "orig", "width": 1280, "height": 1280, "quality": 90}, ...]

    Raises:
        ConfigError: If `orig` is missing or a size has bad dimensions
    """
    if not config or "orig" not in config:
        raise ConfigError("Media sizes must define 'orig'")

    names = ["orig"] + [name for name in config if name != "orig"]
    sizes = []

    for name in names:
        options = config[name] or {}
        width = options.get("width")
        height = options.get("height")

        for label, value in (("width", width), ("height", height)):
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"Media size '{name}' has invalid {label}: {value!r}")

        quality = options.get("quality", 90)
        if not isinstance(quality, int) or not 1 <= quality <= 100:
            raise ConfigError(f"Media size '{name}' has invalid quality: {quality!r}")

        sizes.append({"size": name, "width": width, "height": height, "quality": quality})

    return sizes


def get_uploads_config() -> Dict[str, Any]:
    """Parsed uploads config from settings."""
    return parse_uploads_config(settings.UPLOADS)


def get_media_sizes() -> List[Dict[str, Any]]:
    """Media sizes from settings."""
    return read_media_sizes(settings.MEDIA_SIZES)
