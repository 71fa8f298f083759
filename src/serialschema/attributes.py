from __future__ import annotations

from typing import Iterable

from .models import AttributeAnnotation, MemberSymbol, TypeSymbol
from .semantic import ProgramSemanticModel


def find_by_full_name(annotations: Iterable[AttributeAnnotation], name: str) -> AttributeAnnotation | None:
    for annotation in annotations:
        if annotation.full_name == name:
            return annotation
    return None


def find_by_short_name(annotations: Iterable[AttributeAnnotation], name: str) -> AttributeAnnotation | None:
    for annotation in annotations:
        if annotation.short_name == name:
            return annotation
    return None


def find_by_short_name_with_override_chain(
    model: ProgramSemanticModel, member: MemberSymbol, name: str
) -> AttributeAnnotation | None:
    """Find ``name`` on ``member`` or on the first member it overrides that carries it.

    The chain is followed through ``model.overridden_member`` until it runs
    out, so an override without annotations inherits the base declaration's.
    """
    current: MemberSymbol | None = member
    while current is not None:
        found: AttributeAnnotation | None = find_by_short_name(current.attributes, name)
        if found is not None:
            return found
        current = model.overridden_member(current)
    return None


def read_named_argument(attribute: AttributeAnnotation, key: str) -> object | None:
    for arg_key, value in attribute.named_arguments:
        if arg_key == key:
            return value
    return None


def find_type_attribute(symbol: TypeSymbol, name: str) -> AttributeAnnotation | None:
    # dotted names are compared against the fully-qualified identity
    if "." in name:
        return find_by_full_name(symbol.attributes, name)
    return find_by_short_name(symbol.attributes, name)
