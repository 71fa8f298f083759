from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True, slots=True)
class Location:
    path: str
    line: int
    column: int


@dataclass(frozen=True, slots=True)
class AttributeAnnotation:
    full_name: str
    short_name: str
    arguments: tuple[object, ...] = ()
    named_arguments: tuple[tuple[str, object], ...] = ()  # declaration order, duplicates kept
    location: Location | None = None


@dataclass(frozen=True, slots=True)
class Symbol:
    kind: str
    fqn: str
    location: Location | None


@dataclass(frozen=True, slots=True)
class TypeSymbol(Symbol):
    name: str
    original_definition: str | None  # unconstructed generic definition; None when unresolved
    is_generic: bool = False
    type_arguments: tuple["TypeSymbol", ...] = ()
    attributes: tuple[AttributeAnnotation, ...] = ()
    external: bool = False


@dataclass(frozen=True, slots=True)
class MemberSymbol(Symbol):
    name: str
    declaring_type: str  # fqn of the declaring TypeSymbol
    member_kind: Literal["field", "property"]
    type: TypeSymbol | None = None
    attributes: tuple[AttributeAnnotation, ...] = ()

    @property
    def member_id(self) -> str:
        return f"{self.declaring_type}.{self.name}"


@dataclass(frozen=True, slots=True)
class DeclarationSymbol(Symbol):
    owner: str | None  # class FQN for methods
    decorators: tuple[str, ...] = ()


def type_symbol(
    fqn: str,
    *,
    attributes: tuple[AttributeAnnotation, ...] = (),
    location: Location | None = None,
    external: bool = False,
) -> TypeSymbol:
    """Non-generic type whose original definition is itself."""
    return TypeSymbol(
        kind="type",
        fqn=fqn,
        location=location,
        name=fqn.rsplit(".", 1)[-1],
        original_definition=fqn,
        attributes=attributes,
        external=external,
    )


def constructed_type(definition: str | None, arguments: tuple[TypeSymbol, ...], *, external: bool = False) -> TypeSymbol:
    """Generic instantiation such as ``typing.Optional[builtins.int]``."""
    head: str = definition if definition is not None else "?"
    args_text: str = ", ".join(arg.fqn for arg in arguments)
    return TypeSymbol(
        kind="type",
        fqn=f"{head}[{args_text}]",
        location=None,
        name=head.rsplit(".", 1)[-1],
        original_definition=definition,
        is_generic=True,
        type_arguments=arguments,
        external=external,
    )
