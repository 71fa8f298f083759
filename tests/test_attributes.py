from __future__ import annotations

from hypothesis import given, strategies as st

from serialschema.attributes import (
    find_by_full_name,
    find_by_short_name,
    find_by_short_name_with_override_chain,
    find_type_attribute,
    read_named_argument,
)
from serialschema.frontend import load_source
from serialschema.models import AttributeAnnotation, MemberSymbol, TypeSymbol, type_symbol
from serialschema.semantic import ProgramIndex


def _attr(full_name: str, **named: object) -> AttributeAnnotation:
    return AttributeAnnotation(
        full_name=full_name,
        short_name=full_name.rsplit(".", 1)[-1],
        named_arguments=tuple(named.items()),
    )


def _prop(owner: str, name: str, *attrs: AttributeAnnotation) -> MemberSymbol:
    return MemberSymbol(
        kind="member",
        fqn=f"{owner}.{name}",
        location=None,
        name=name,
        declaring_type=owner,
        member_kind="property",
        attributes=attrs,
    )


def test_find_by_full_name_and_short_name() -> None:
    annotations: tuple[AttributeAnnotation, ...] = (_attr("a.Key"), _attr("b.Key"), _attr("b.Index"))
    assert find_by_full_name(annotations, "b.Key") is annotations[1]
    assert find_by_full_name(annotations, "Key") is None
    assert find_by_short_name(annotations, "Key") is annotations[0]
    assert find_by_short_name(annotations, "Missing") is None
    assert find_by_short_name((), "Key") is None


@given(st.lists(st.sampled_from(["x.Key", "y.Key", "x.Other"]), min_size=1))
def test_first_in_declaration_order_wins(names: list[str]) -> None:
    annotations: tuple[AttributeAnnotation, ...] = tuple(_attr(n, order=i) for i, n in enumerate(names))
    found = find_by_short_name(annotations, "Key")
    if not any(n.endswith(".Key") for n in names):
        assert found is None
        return
    assert found is not None
    first_index: int = next(i for i, n in enumerate(names) if n.endswith(".Key"))
    assert read_named_argument(found, "order") == first_index


def test_read_named_argument() -> None:
    attribute = AttributeAnnotation(
        full_name="z.Foo", short_name="Foo", named_arguments=(("key", "v"), ("n", 3), ("key", "second"))
    )
    assert read_named_argument(attribute, "key") == "v"
    assert read_named_argument(attribute, "n") == 3
    assert read_named_argument(attribute, "absent") is None


def test_override_chain_walks_to_grandparent() -> None:
    index: ProgramIndex = ProgramIndex()
    grand: MemberSymbol = _prop("m.A", "x", _attr("z.Foo", key="from-a"))
    parent: MemberSymbol = _prop("m.B", "x")
    child: MemberSymbol = _prop("m.C", "x")
    a: TypeSymbol = type_symbol("m.A")
    b: TypeSymbol = type_symbol("m.B")
    index.add_type(a, None, (grand,))
    index.add_type(b, a, (parent,))
    index.add_type(type_symbol("m.C"), b, (child,))
    index.add_override(parent, grand)
    index.add_override(child, parent)

    found = find_by_short_name_with_override_chain(index, child, "Foo")
    assert found is not None
    assert read_named_argument(found, "key") == "from-a"
    assert find_by_short_name_with_override_chain(index, child, "Bar") is None


def test_override_chain_prefers_own_annotation() -> None:
    index: ProgramIndex = ProgramIndex()
    base: MemberSymbol = _prop("m.A", "x", _attr("z.Foo", key="base"))
    derived: MemberSymbol = _prop("m.B", "x", _attr("z.Foo", key="derived"))
    index.add_type(type_symbol("m.A"), None, (base,))
    index.add_type(type_symbol("m.B"), type_symbol("m.A"), (derived,))
    index.add_override(derived, base)
    found = find_by_short_name_with_override_chain(index, derived, "Foo")
    assert found is not None
    assert read_named_argument(found, "key") == "derived"


def test_override_inherits_base_property_attribute_from_source() -> None:
    source: str = (
        "from serial import Foo\n"
        "\n"
        "class Base:\n"
        "    @Foo(key=\"v\")\n"
        "    @property\n"
        "    def x(self) -> int:\n"
        "        return 1\n"
        "\n"
        "class Derived(Base):\n"
        "    @property\n"
        "    def x(self) -> int:\n"
        "        return 2\n"
    )
    program = load_source(source, "app.models")
    derived = program.lookup_type("app.models.Derived")
    assert derived is not None
    (member,) = program.declared_members(derived)
    assert member.attributes == ()
    found = find_by_short_name_with_override_chain(program, member, "Foo")
    assert found is not None
    assert found.full_name == "serial.Foo"
    assert read_named_argument(found, "key") == "v"


def test_find_type_attribute_by_full_or_short_name() -> None:
    symbol: TypeSymbol = type_symbol("m.T", attributes=(_attr("serial.Serializable"),))
    assert find_type_attribute(symbol, "Serializable") is not None
    assert find_type_attribute(symbol, "serial.Serializable") is not None
    assert find_type_attribute(symbol, "other.Serializable") is None
