from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path

from .errors import Error, SettingsError
from .nullability import OPTIONAL_WRAPPER

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExtractionSettings:
    optional_wrapper: str = OPTIONAL_WRAPPER
    root_base: str | None = None  # original definition every serializable type derives from
    type_attribute: str | None = None  # short or full name of the marker attribute on types


def _string_option(table: dict[str, object], key: str, path: Path) -> str | None:
    value: object | None = table.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise SettingsError(
            Error(code="settings", message=f"tool.serialschema.{key} must be a non-empty string", path=str(path))
        )
    return value


def load_settings(root: Path) -> ExtractionSettings:
    """Read ``[tool.serialschema]`` from ``root/pyproject.toml`` if present."""
    pyproject_path: Path = root / "pyproject.toml"
    if not pyproject_path.is_file():
        return ExtractionSettings()
    data: dict[str, object]
    with pyproject_path.open("rb") as file:
        try:
            data = tomllib.load(file)
        except tomllib.TOMLDecodeError as exc:
            raise SettingsError(Error(code="settings", message=str(exc), path=str(pyproject_path))) from exc
    tool_obj: object | None = data.get("tool")
    tool: dict[str, object] | None = tool_obj if isinstance(tool_obj, dict) else None
    table_obj: object | None = tool.get("serialschema") if tool is not None else None
    if not isinstance(table_obj, dict):
        return ExtractionSettings()
    table: dict[str, object] = table_obj
    unknown: set[str] = set(table) - {"optional_wrapper", "root_base", "type_attribute"}
    if unknown:
        logger.debug("ignoring unknown settings %s in %s", sorted(unknown), pyproject_path)
    wrapper: str | None = _string_option(table, "optional_wrapper", pyproject_path)
    return ExtractionSettings(
        optional_wrapper=wrapper if wrapper is not None else OPTIONAL_WRAPPER,
        root_base=_string_option(table, "root_base", pyproject_path),
        type_attribute=_string_option(table, "type_attribute", pyproject_path),
    )
