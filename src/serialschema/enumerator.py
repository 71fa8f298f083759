from __future__ import annotations

from typing import Iterator

from .models import Symbol, TypeSymbol
from .semantic import CompilationUnit, ProgramSemanticModel


def named_types(model: ProgramSemanticModel) -> Iterator[TypeSymbol]:
    """Yield every declared named type, unit by unit, in source order.

    Nodes without a declared symbol are skipped.
    """
    unit: CompilationUnit
    for unit in model.compilation_units():
        for node in unit.nodes():
            declared: Symbol | None = unit.declared_symbol_for(node)
            if isinstance(declared, TypeSymbol):
                yield declared
