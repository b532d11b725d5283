"""Dotted-path access to nested config models (``compression.triggerTokens``)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from chatcompact.config.loader import camel_to_snake


def resolve_field_name(model_cls: type[BaseModel], segment: str) -> str | None:
    """Return the model field a camelCase or snake_case segment names, or None."""
    for candidate in (segment, camel_to_snake(segment)):
        if candidate in model_cls.model_fields:
            return candidate
    return None


def _locate(config: BaseModel, path: str) -> tuple[BaseModel, str]:
    """Return the model owning the last segment of *path* and that field's name."""
    *parents, leaf = path.split(".")
    owner = config
    walked: list[str] = []

    for segment in [*parents, leaf]:
        if not isinstance(owner, BaseModel):
            raise ValueError(f"'{'.'.join(walked)}' is not a section")
        name = resolve_field_name(type(owner), segment)
        if name is None:
            raise ValueError(
                f"Unknown field '{segment}' on {type(owner).__name__}. "
                f"Available: {', '.join(type(owner).model_fields)}"
            )
        walked.append(name)
        if len(walked) == len(parents) + 1:
            return owner, name
        owner = getattr(owner, name)

    raise ValueError("Empty path")


def get_by_path(config: BaseModel, path: str) -> Any:
    """Read the value at *path*.

    Raises:
        ValueError: If the path does not name a field.
    """
    owner, name = _locate(config, path)
    return getattr(owner, name)


def set_by_path(config: BaseModel, path: str, value: Any) -> None:
    """Write *value* at *path*, converting CLI strings to the field's type.

    The owning section is re-validated so range limits apply.

    Raises:
        ValueError: If the path is unknown, the value cannot be converted,
            or the section rejects it.
    """
    owner, name = _locate(config, path)
    annotation = type(owner).model_fields[name].annotation

    try:
        converted = TypeAdapter(annotation).validate_python(value)
        type(owner).model_validate({**owner.model_dump(), name: converted})
    except ValidationError as e:
        raise ValueError(f"Validation failed for '{path}': {e}") from e

    setattr(owner, name, converted)


def get_all_paths(model: BaseModel, prefix: str = "") -> dict[str, Any]:
    """Flatten *model* into ``{dotted_path: value}`` for every leaf field."""
    flat: dict[str, Any] = {}
    for name, value in model:
        path = f"{prefix}.{name}" if prefix else name
        if isinstance(value, BaseModel):
            flat.update(get_all_paths(value, path))
        else:
            flat[path] = value
    return flat
