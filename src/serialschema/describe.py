from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterator, Mapping

import jsonschema

from .attributes import find_by_short_name_with_override_chain, find_type_attribute
from .enumerator import named_types
from .errors import Error
from .frontend import load_program
from .hierarchy import ancestors, derives_from
from .members import all_members
from .models import AttributeAnnotation, Location, MemberSymbol, TypeSymbol
from .nullability import is_optional_wrapper, optional_value_type
from .result import Result
from .schema import load_schema, schema_version
from .semantic import ProgramSemanticModel
from .settings import ExtractionSettings

logger = logging.getLogger(__name__)


def _jsonable(value: object) -> object:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
        if isinstance(value, (set, frozenset)):
            items = sorted(items, key=repr)
        return [_jsonable(v) for v in items]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return repr(value)  # bytes, complex, Ellipsis


def _location(location: Location | None) -> dict[str, object] | None:
    return asdict(location) if location is not None else None


def _attribute(annotation: AttributeAnnotation) -> dict[str, object]:
    named: dict[str, object] = {}
    for key, value in annotation.named_arguments:
        # first occurrence wins, as in read_named_argument
        named.setdefault(key, _jsonable(value))
    return {
        "full_name": annotation.full_name,
        "short_name": annotation.short_name,
        "arguments": [_jsonable(a) for a in annotation.arguments],
        "named_arguments": named,
    }


def _inherited_attributes(model: ProgramSemanticModel, member: MemberSymbol) -> list[AttributeAnnotation]:
    own: set[str] = {a.short_name for a in member.attributes}
    out: list[AttributeAnnotation] = []
    parent: MemberSymbol | None = model.overridden_member(member)
    while parent is not None:
        for annotation in parent.attributes:
            if annotation.short_name in own:
                continue
            own.add(annotation.short_name)
            found = find_by_short_name_with_override_chain(model, member, annotation.short_name)
            if found is not None:
                out.append(found)
        parent = model.overridden_member(parent)
    return out


def _member(
    model: ProgramSemanticModel, owner: TypeSymbol, member: MemberSymbol, settings: ExtractionSettings
) -> dict[str, object]:
    overridden: MemberSymbol | None = model.overridden_member(member)
    value_type: TypeSymbol | None = None
    optional: bool = False
    if member.type is not None:
        optional = is_optional_wrapper(member.type, settings.optional_wrapper)
        value_type = optional_value_type(member.type, settings.optional_wrapper)
    return {
        "name": member.name,
        "declaring_type": member.declaring_type,
        "kind": member.member_kind,
        "type": member.type.fqn if member.type is not None else None,
        "optional": optional,
        "value_type": value_type.fqn if value_type is not None else None,
        "inherited": member.declaring_type != (owner.original_definition or owner.fqn),
        "overrides": overridden.member_id if overridden is not None else None,
        "attributes": [_attribute(a) for a in member.attributes],
        "inherited_attributes": [_attribute(a) for a in _inherited_attributes(model, member)],
    }


def is_serializable(model: ProgramSemanticModel, symbol: TypeSymbol, settings: ExtractionSettings) -> bool:
    if settings.root_base is not None:
        return derives_from(model, symbol, settings.root_base)
    if settings.type_attribute is not None:
        return find_type_attribute(symbol, settings.type_attribute) is not None
    return True


def describe_type(
    model: ProgramSemanticModel, symbol: TypeSymbol, settings: ExtractionSettings | None = None
) -> dict[str, object]:
    effective: ExtractionSettings = settings or ExtractionSettings()
    return {
        "kind": "type",
        "fqn": symbol.fqn,
        "location": _location(symbol.location),
        "generic": symbol.is_generic,
        "ancestors": [a.fqn for a in ancestors(model, symbol)],
        "serializable": is_serializable(model, symbol, effective),
        "attributes": [_attribute(a) for a in symbol.attributes],
        "members": [_member(model, symbol, m, effective) for m in all_members(model, symbol)],
    }


def describe(
    model: ProgramSemanticModel, settings: ExtractionSettings | None = None, serializable_only: bool = False
) -> Iterator[dict[str, object]]:
    effective: ExtractionSettings = settings or ExtractionSettings()
    for symbol in named_types(model):
        if serializable_only and not is_serializable(model, symbol, effective):
            continue
        yield describe_type(model, symbol, effective)


def validate(records: tuple[dict[str, object], ...]) -> Result[tuple[dict[str, object], ...], tuple[Error, ...]]:
    schema: Mapping[str, object] = load_schema()
    objs: list[dict[str, object]] = []
    errors: list[Error] = []
    seen: set[str] = set()
    for record in records:
        fqn: str = str(record.get("fqn"))
        if fqn in seen:
            errors.append(Error(code="duplicate", message="duplicate fqn", path=fqn))
            continue
        seen.add(fqn)
        obj: dict[str, object] = json.loads(json.dumps(record, sort_keys=True))
        try:
            jsonschema.validate(obj, schema)
        except jsonschema.ValidationError as exc:
            errors.append(Error(code="schema", message=exc.message, path=fqn))
            continue
        objs.append(obj)
    if errors:
        return Result.failure(tuple(errors))
    return Result.success(tuple(objs))


@dataclass(frozen=True, slots=True)
class Manifest:
    package: str
    extracted_at: str
    tool: str
    tool_version: str
    schema_version: str
    type_count: int


def emit(objs: tuple[dict[str, object], ...], manifest: Manifest, outdir: Path) -> Result[None, Error]:
    try:
        outdir.mkdir(parents=True, exist_ok=True)
        jsonl_path: Path = outdir / "types.jsonl"
        with jsonl_path.open("w", encoding="utf-8") as handle:
            for obj in objs:
                handle.write(json.dumps(obj, sort_keys=True) + "\n")
        manifest_path: Path = outdir / "manifest.json"
        with manifest_path.open("w", encoding="utf-8") as handle:
            handle.write(json.dumps(asdict(manifest), sort_keys=True))
    except OSError as exc:
        return Result.failure(Error(code="emit", message=str(exc), path=str(outdir)))
    return Result.success(None)


def run_extraction(
    root: Path,
    package: str,
    workers: int,
    outdir: Path,
    settings: ExtractionSettings | None = None,
    serializable_only: bool = False,
) -> Result[None, tuple[Error, ...]]:
    loaded = load_program(root, package, workers, settings)
    if not loaded.ok or loaded.value is None:
        return Result.failure(loaded.error if loaded.error is not None else tuple())
    program = loaded.value
    records: tuple[dict[str, object], ...] = tuple(describe(program, program.settings, serializable_only))
    validated = validate(records)
    if not validated.ok or validated.value is None:
        return Result.failure(validated.error if validated.error is not None else tuple())
    objs: tuple[dict[str, object], ...] = validated.value
    from . import __version__ as TOOL_VERSION  # local import to avoid cycles at load
    manifest: Manifest = Manifest(
        package=package,
        extracted_at=datetime.now(UTC).isoformat(),
        tool="serialschema",
        tool_version=TOOL_VERSION,
        schema_version=schema_version(load_schema()),
        type_count=len(objs),
    )
    emit_res = emit(objs, manifest, outdir)
    if not emit_res.ok:
        return Result.failure((emit_res.error,) if emit_res.error is not None else tuple())
    logger.info("wrote %d type descriptions to %s", len(objs), outdir)
    return Result.success(None)
