from __future__ import annotations

from typing import Iterator

from .hierarchy import ancestors
from .models import MemberSymbol, TypeSymbol
from .semantic import ProgramSemanticModel


def all_members(model: ProgramSemanticModel, symbol: TypeSymbol) -> Iterator[MemberSymbol]:
    """Own members first, then each ancestor's, nearest first.

    Overrides are not collapsed: a property and the base property it
    overrides are both yielded.
    """
    yield from model.declared_members(symbol)
    for ancestor in ancestors(model, symbol):
        yield from model.declared_members(ancestor)


def effective_members(model: ProgramSemanticModel, symbol: TypeSymbol) -> Iterator[MemberSymbol]:
    seen: set[str] = set()
    for member in all_members(model, symbol):
        if member.name in seen:
            continue
        seen.add(member.name)
        yield member
