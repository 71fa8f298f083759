from __future__ import annotations

from .models import TypeSymbol

OPTIONAL_WRAPPER: str = "typing.Optional"


def is_optional_wrapper(symbol: TypeSymbol, wrapper: str = OPTIONAL_WRAPPER) -> bool:
    if not symbol.is_generic:
        return False
    # unresolved definitions are not optional
    if symbol.original_definition is None:
        return False
    return symbol.original_definition == wrapper


def optional_value_type(symbol: TypeSymbol, wrapper: str = OPTIONAL_WRAPPER) -> TypeSymbol | None:
    if not is_optional_wrapper(symbol, wrapper) or len(symbol.type_arguments) != 1:
        return None
    return symbol.type_arguments[0]
