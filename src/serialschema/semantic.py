"""Program semantic model boundary.

The extraction engine only talks to the two protocols below. ``ProgramIndex``
is the in-memory implementation used by the Python front end and by tests
that assemble programs by hand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Mapping, Protocol, Sequence, runtime_checkable

from .models import MemberSymbol, Symbol, TypeSymbol


@runtime_checkable
class CompilationUnit(Protocol):
    path: str

    def nodes(self) -> Iterator[object]:
        """Syntax nodes of the unit in pre-order."""
        ...

    def declared_symbol_for(self, node: object) -> Symbol | None:
        ...


@runtime_checkable
class ProgramSemanticModel(Protocol):
    def compilation_units(self) -> Sequence[CompilationUnit]:
        ...

    def base_type(self, symbol: TypeSymbol) -> TypeSymbol | None:
        ...

    def declared_members(self, symbol: TypeSymbol) -> Sequence[MemberSymbol]:
        ...

    def overridden_member(self, member: MemberSymbol) -> MemberSymbol | None:
        ...


@dataclass(frozen=True, slots=True)
class TableUnit:
    """Compilation unit whose nodes are opaque keys into a symbol table."""

    path: str
    node_keys: tuple[object, ...]
    symbols: Mapping[object, Symbol]

    def nodes(self) -> Iterator[object]:
        return iter(self.node_keys)

    def declared_symbol_for(self, node: object) -> Symbol | None:
        return self.symbols.get(node)


@dataclass(slots=True)
class ProgramIndex:
    """Symbol tables keyed by fully-qualified name.

    Overrides are kept as ``member_id -> member_id`` entries rather than
    references between member objects.
    """

    units: list[CompilationUnit] = field(default_factory=list)
    types: dict[str, TypeSymbol] = field(default_factory=dict)
    bases: dict[str, TypeSymbol] = field(default_factory=dict)
    members: dict[str, tuple[MemberSymbol, ...]] = field(default_factory=dict)
    member_ids: dict[str, MemberSymbol] = field(default_factory=dict)
    overrides: dict[str, str] = field(default_factory=dict)

    def compilation_units(self) -> Sequence[CompilationUnit]:
        return tuple(self.units)

    def _definition_key(self, symbol: TypeSymbol) -> str | None:
        # constructed generics share base and members with their definition
        if symbol.is_generic:
            return symbol.original_definition
        return symbol.fqn

    def base_type(self, symbol: TypeSymbol) -> TypeSymbol | None:
        key: str | None = self._definition_key(symbol)
        if key is None:
            return None
        return self.bases.get(key)

    def declared_members(self, symbol: TypeSymbol) -> Sequence[MemberSymbol]:
        key: str | None = self._definition_key(symbol)
        if key is None:
            return ()
        return self.members.get(key, ())

    def overridden_member(self, member: MemberSymbol) -> MemberSymbol | None:
        parent_id: str | None = self.overrides.get(member.member_id)
        if parent_id is None:
            return None
        return self.member_ids.get(parent_id)

    def lookup_type(self, fqn: str) -> TypeSymbol | None:
        return self.types.get(fqn)

    def add_type(
        self,
        symbol: TypeSymbol,
        base: TypeSymbol | None = None,
        members: Sequence[MemberSymbol] = (),
    ) -> None:
        self.types[symbol.fqn] = symbol
        if base is not None:
            self.bases[symbol.fqn] = base
        self.members[symbol.fqn] = tuple(members)
        for member in members:
            self.member_ids[member.member_id] = member

    def add_override(self, member: MemberSymbol, overridden: MemberSymbol) -> None:
        self.overrides[member.member_id] = overridden.member_id

    def add_unit(self, path: str, declarations: Sequence[tuple[object, Symbol | None]]) -> TableUnit:
        """Append a unit whose nodes are the given keys, in order."""
        symbols: dict[object, Symbol] = {key: sym for key, sym in declarations if sym is not None}
        unit: TableUnit = TableUnit(path=path, node_keys=tuple(key for key, _ in declarations), symbols=symbols)
        self.units.append(unit)
        return unit
