from __future__ import annotations

import json
from pathlib import Path

from serialschema.describe import describe, describe_type, run_extraction, validate
from serialschema.errors import Error
from serialschema.frontend import load_source
from serialschema.result import Result
from serialschema.settings import ExtractionSettings

SOURCE: str = (
    "from typing import Optional\n"
    "from serial import Formattable, Index, Serializable\n\n"
    "@Serializable(version=1)\n"
    "class Base(Formattable[\"Base\"]):\n"
    "    @Index(0, name=\"id\")\n"
    "    @property\n"
    "    def ident(self) -> int:\n"
    "        return 0\n\n"
    "class Derived(Base):\n"
    "    note: Optional[str]\n\n"
    "    @property\n"
    "    def ident(self) -> int:\n"
    "        return 1\n\n"
    "class Plain:\n"
    "    pass\n"
)


def test_describe_type_reports_members_and_overrides() -> None:
    program = load_source(SOURCE, "app")
    record = describe_type(program, program.types["app.Derived"])
    assert record["ancestors"] == ["app.Base", "serial.Formattable[app.Base]"]
    members = record["members"]
    assert isinstance(members, list)
    assert [(m["declaring_type"], m["name"]) for m in members] == [
        ("app.Derived", "note"),
        ("app.Derived", "ident"),
        ("app.Base", "ident"),
    ]
    note, ident, base_ident = members
    assert note["optional"] is True and note["value_type"] == "builtins.str"
    assert ident["overrides"] == "app.Base.ident"
    assert ident["inherited"] is False and base_ident["inherited"] is True
    assert ident["attributes"] == []
    assert ident["inherited_attributes"] == [
        {"full_name": "serial.Index", "short_name": "Index", "arguments": [0], "named_arguments": {"name": "id"}}
    ]


def test_serializable_by_root_base_or_type_attribute() -> None:
    program = load_source(SOURCE, "app")
    by_base = ExtractionSettings(root_base="serial.Formattable")
    by_attr = ExtractionSettings(type_attribute="Serializable")
    assert [r["fqn"] for r in describe(program, by_base, serializable_only=True)] == ["app.Base", "app.Derived"]
    assert [r["fqn"] for r in describe(program, by_attr, serializable_only=True)] == ["app.Base"]
    assert [r["fqn"] for r in describe(program)] == ["app.Base", "app.Derived", "app.Plain"]


def test_records_validate_against_schema() -> None:
    program = load_source(SOURCE, "app")
    records = tuple(describe(program))
    res = validate(records)
    assert res.ok and res.value is not None
    assert len(res.value) == 3


def test_validate_reports_schema_and_duplicate_errors() -> None:
    program = load_source(SOURCE, "app")
    good = describe_type(program, program.types["app.Plain"])
    res = validate((good, good, {"kind": "type", "fqn": "broken"}))
    assert not res.ok and res.error is not None
    assert [e.code for e in res.error] == ["duplicate", "schema"]


def test_run_extraction_is_deterministic(tmp_path: Path) -> None:
    root = tmp_path / "lib"
    root.mkdir()
    (root / "a.py").write_text("class A:\n    x: int\n", encoding="utf-8")
    (root / "b.py").write_text("from .a import A\n\nclass B(A):\n    y: 'A | None'\n", encoding="utf-8")

    out1 = tmp_path / "out1"
    out2 = tmp_path / "out2"
    r1: Result[None, tuple[Error, ...]] = run_extraction(root, "lib", 1, out1)
    r2: Result[None, tuple[Error, ...]] = run_extraction(root, "lib", 1, out2)
    assert r1.ok and r2.ok

    s1 = (out1 / "types.jsonl").read_text(encoding="utf-8")
    s2 = (out2 / "types.jsonl").read_text(encoding="utf-8")
    assert s1 == s2
    lines = [json.loads(line) for line in s1.splitlines()]
    assert [r["fqn"] for r in lines] == ["lib.a.A", "lib.b.B"]
    assert lines[1]["members"][0]["type"] == "typing.Optional[lib.a.A]"
    manifest = json.loads((out1 / "manifest.json").read_text(encoding="utf-8"))
    assert manifest["type_count"] == 2
    assert manifest["schema_version"] == "1"
