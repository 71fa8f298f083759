from __future__ import annotations

from typing import Iterator

from .models import TypeSymbol
from .semantic import ProgramSemanticModel


def ancestors(model: ProgramSemanticModel, symbol: TypeSymbol) -> Iterator[TypeSymbol]:
    """Yield the base type, then its base, until a type has none."""
    current: TypeSymbol | None = model.base_type(symbol)
    while current is not None:
        yield current
        current = model.base_type(current)


def find_ancestor_by_original_definition(
    model: ProgramSemanticModel, symbol: TypeSymbol, qualified_name: str
) -> TypeSymbol | None:
    # original definition so that Container[int] and Container[str] both match Container
    for ancestor in ancestors(model, symbol):
        if ancestor.original_definition == qualified_name:
            return ancestor
    return None


def derives_from(model: ProgramSemanticModel, symbol: TypeSymbol, qualified_name: str) -> bool:
    return find_ancestor_by_original_definition(model, symbol, qualified_name) is not None
