from __future__ import annotations

from pathlib import Path

import libcst as cst

from serialschema.attributes import read_named_argument
from serialschema.frontend import build_import_table, find_declaration_attribute, load_program, load_source
from serialschema.models import DeclarationSymbol, MemberSymbol, TypeSymbol


def _write(pkg: Path, rel: str, content: str) -> None:
    path = pkg / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_import_table_resolves_relative_and_aliases() -> None:
    source: str = (
        "import typing as t\n"
        "import os.path\n"
        "from . import sibling\n"
        "from ..core import Base as B\n"
        "from serial import Key\n"
    )
    table = build_import_table(cst.parse_module(source), "pkg.sub.mod")
    assert table["t"] == "typing"
    assert table["os"] == "os"
    assert table["sibling"] == "pkg.sub.sibling"
    assert table["B"] == "pkg.core.Base"
    assert table["Key"] == "serial.Key"


def test_cross_module_base_resolution(tmp_path: Path) -> None:
    root: Path = tmp_path / "shop"
    _write(root, "__init__.py", "")
    _write(root, "base.py", "class Entity:\n    id: int\n")
    _write(root, "orders.py", "from .base import Entity\n\nclass Order(Entity):\n    total: float\n")
    res = load_program(root, "shop")
    assert res.ok and res.value is not None
    program = res.value
    order = program.lookup_type("shop.orders.Order")
    assert order is not None
    base = program.base_type(order)
    assert base is not None and base.fqn == "shop.base.Entity"
    assert base.location is not None and base.location.line == 1


def test_field_members_annotated_metadata_and_classvar() -> None:
    source: str = (
        "from typing import Annotated, ClassVar\n"
        "from serial import Index\n\n"
        "class M:\n"
        "    count: ClassVar[int] = 0\n"
        "    plain = 3\n"
        "    a: Annotated[int, Index(0, name=\"a\")]\n"
    )
    program = load_source(source, "m")
    (member,) = program.declared_members(program.types["m.M"])
    assert member.name == "a" and member.member_kind == "field"
    assert member.type is not None and member.type.fqn == "builtins.int"
    (attribute,) = member.attributes
    assert attribute.full_name == "serial.Index"
    assert attribute.arguments == (0,)
    assert read_named_argument(attribute, "name") == "a"


def test_property_setter_is_not_a_separate_member() -> None:
    source: str = (
        "class M:\n"
        "    @property\n"
        "    def x(self) -> int:\n"
        "        return self._x\n\n"
        "    @x.setter\n"
        "    def x(self, value: int) -> None:\n"
        "        self._x = value\n"
    )
    program = load_source(source, "m")
    members: tuple[MemberSymbol, ...] = tuple(program.declared_members(program.types["m.M"]))
    assert [(m.name, m.member_kind) for m in members] == [("x", "property")]
    assert members[0].attributes == ()


def test_non_literal_arguments_are_skipped() -> None:
    source: str = (
        "from serial import Foo, Serializable\n\n"
        "@Serializable(version=2, codec=make_codec())\n"
        "class M:\n"
        "    pass\n"
    )
    program = load_source(source, "m")
    (attribute,) = program.types["m.M"].attributes
    assert attribute.full_name == "serial.Serializable"
    assert attribute.named_arguments == (("version", 2),)


def test_declared_symbols_for_nodes() -> None:
    source: str = "class C:\n    x: int\n\n    def run(self):\n        pass\n\ndef top():\n    pass\n"
    program = load_source(source, "m")
    (unit,) = program.compilation_units()
    found = [unit.declared_symbol_for(n) for n in unit.nodes()]
    present = [s for s in found if s is not None]
    kinds: list[str] = [s.kind for s in present]
    assert kinds == ["module", "type", "member", "method", "function"]
    assert isinstance(present[1], TypeSymbol)
    method = present[3]
    assert isinstance(method, DeclarationSymbol) and method.owner == "m.C"


def test_find_declaration_attribute_on_syntax() -> None:
    source: str = "import serial\n\n@serial.Serializable\n@other\nclass C:\n    pass\n"
    program = load_source(source, "m")
    (unit,) = program.compilation_units()
    class_node = next(n for n in unit.nodes() if isinstance(n, cst.ClassDef))
    deco = find_declaration_attribute(unit, class_node, "serial.Serializable")
    assert deco is class_node.decorators[0]
    assert find_declaration_attribute(unit, class_node, "serial.Missing") is None


def test_parse_errors_are_reported(tmp_path: Path) -> None:
    root: Path = tmp_path / "bad"
    _write(root, "ok.py", "class Fine:\n    pass\n")
    _write(root, "broken.py", "def broken(:\n    pass\n")
    res = load_program(root, "bad")
    assert not res.ok
    assert res.error is not None
    (error,) = res.error
    assert error.code == "parse"
    assert error.path.endswith("broken.py")


def test_import_table_reads_fallback_branches_first_binding_wins() -> None:
    source: str = (
        "try:\n"
        "    from fast import X\n"
        "except ImportError:\n"
        "    from slow import X\n"
        "    from slow import Y\n"
        "else:\n"
        "    import extra\n"
    )
    table = build_import_table(cst.parse_module(source), "m")
    assert table["X"] == "fast.X"
    assert table["Y"] == "slow.Y"
    assert table["extra"] == "extra"


def test_nested_field_type_resolves_through_class_scope() -> None:
    source: str = (
        "class Outer:\n"
        "    class Inner:\n"
        "        pass\n\n"
        "    value: Inner\n"
    )
    program = load_source(source, "m")
    outer = program.lookup_type("m.Outer")
    assert outer is not None
    (member,) = program.declared_members(outer)
    assert member.type is not None and member.type.fqn == "m.Outer.Inner"
