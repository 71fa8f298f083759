"""Python front end: builds a program semantic model from source files.

Classes become named types, annotated class attributes become ``field``
members, and ``@property`` functions become ``property`` members. Decorators
and ``typing.Annotated`` metadata calls are read as attribute annotations.
"""

from __future__ import annotations

import ast
import builtins
import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping, Sequence

import libcst as cst
from libcst.metadata import CodeRange, MetadataWrapper, PositionProvider

from .errors import Error
from .hierarchy import ancestors
from .models import (
    AttributeAnnotation,
    DeclarationSymbol,
    Location,
    MemberSymbol,
    Symbol,
    TypeSymbol,
    constructed_type,
    type_symbol,
)
from .result import Result
from .semantic import ProgramIndex
from .settings import ExtractionSettings

logger = logging.getLogger(__name__)

_EMPTY_MODULE: cst.Module = cst.Module([])

_BUILTIN_NAMES: frozenset[str] = frozenset(dir(builtins))

# bases that never count as the base type of a class
_IGNORED_BASES: frozenset[str] = frozenset(
    {"builtins.object", "typing.Generic", "typing.Protocol"}
)
_PROPERTY_DECORATORS: frozenset[str] = frozenset({"builtins.property", "functools.cached_property"})
_ACCESSOR_SUFFIXES: tuple[str, ...] = (".setter", ".getter", ".deleter")


def discover(root: Path) -> tuple[Path, ...]:
    files: tuple[Path, ...] = tuple(sorted(root.rglob("*.py")))
    return files


def _parse_worker(path_str: str) -> tuple[str, Result[cst.Module, Error]]:
    path: Path = Path(path_str)
    try:
        source: str = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return path_str, Result.failure(Error(code="read", message=str(exc), path=path_str))
    try:
        module: cst.Module = cst.parse_module(source)
    except cst.ParserSyntaxError as exc:
        return path_str, Result.failure(Error(code="parse", message=str(exc), path=path_str))
    return path_str, Result.success(module)


def parse(paths: tuple[Path, ...], workers: int) -> Mapping[Path, Result[cst.Module, Error]]:
    path_strings: tuple[str, ...] = tuple(str(p) for p in paths)
    with ProcessPoolExecutor(max_workers=workers) as pool:
        pairs_iter: Iterator[tuple[str, Result[cst.Module, Error]]] = pool.map(
            _parse_worker, path_strings
        )
        return {Path(p): res for p, res in pairs_iter}


def _module_fqn_for(path: Path, root: Path, package: str) -> str:
    parts: tuple[str, ...] = path.relative_to(root).with_suffix("").parts
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join((package, *parts))


def _dotted(node: cst.BaseExpression) -> str | None:
    if isinstance(node, cst.Name):
        return node.value
    if isinstance(node, cst.Attribute):
        head: str | None = _dotted(node.value)
        return f"{head}.{node.attr.value}" if head is not None else None
    return None


def _nested_blocks(stmt: cst.CSTNode) -> Iterator[Sequence[cst.CSTNode]]:
    """Statement bodies of a compound statement that share its enclosing scope.

    Function and class bodies are not included: they open a new scope.
    """
    if isinstance(stmt, (cst.If, cst.For, cst.While, cst.With, cst.Try, cst.TryStar)):
        yield stmt.body.body
    if isinstance(stmt, cst.If):
        if isinstance(stmt.orelse, cst.If):
            # elif
            yield (stmt.orelse,)
        elif isinstance(stmt.orelse, cst.Else):
            yield stmt.orelse.body.body
    elif isinstance(stmt, (cst.For, cst.While)):
        if stmt.orelse is not None:
            yield stmt.orelse.body.body
    elif isinstance(stmt, (cst.Try, cst.TryStar)):
        for handler in stmt.handlers:
            yield handler.body.body
        if stmt.orelse is not None:
            yield stmt.orelse.body.body
        if stmt.finalbody is not None:
            yield stmt.finalbody.body.body
    elif isinstance(stmt, cst.Match):
        for case in stmt.cases:
            yield case.body.body


def _import_statements(body: Sequence[cst.CSTNode]) -> Iterator[cst.Import | cst.ImportFrom]:
    for stmt in body:
        if isinstance(stmt, cst.SimpleStatementLine):
            for small in stmt.body:
                if isinstance(small, (cst.Import, cst.ImportFrom)):
                    yield small
            continue
        # "if TYPE_CHECKING:" blocks, try/except ImportError fallbacks
        for block in _nested_blocks(stmt):
            yield from _import_statements(block)


def build_import_table(module: cst.Module, module_fqn: str, is_package: bool = False) -> dict[str, str]:
    """Map local names bound by imports to the fully-qualified names they refer to.

    When a name is imported more than once (``try``/``except ImportError``
    fallbacks), the first binding in source order is kept.
    """
    table: dict[str, str] = {}
    for small in _import_statements(module.body):
        if isinstance(small, cst.Import):
            for alias in small.names:
                full = _EMPTY_MODULE.code_for_node(alias.name)
                if alias.asname is not None and isinstance(alias.asname.name, cst.Name):
                    table.setdefault(alias.asname.name.value, full)
                else:
                    # "import a.b" binds "a"
                    first = full.split(".")[0]
                    table.setdefault(first, first)
            continue
        if isinstance(small.names, cst.ImportStar):
            continue
        rel: int = len(tuple(small.relative))
        pkg_parts: list[str] = module_fqn.split(".")
        if not is_package:
            pkg_parts = pkg_parts[:-1]
        if rel > 0:
            ascend = rel - 1
            pkg_parts = pkg_parts[: max(0, len(pkg_parts) - ascend)]
        base_module: str
        if small.module is not None:
            mod_part = _EMPTY_MODULE.code_for_node(small.module)
            base_module = ".".join((*pkg_parts, mod_part)) if rel > 0 else mod_part
        else:
            base_module = ".".join(pkg_parts)
        for alias in small.names:
            name = _EMPTY_MODULE.code_for_node(alias.name)
            target = f"{base_module}.{name}" if base_module else name
            local = name
            if alias.asname is not None and isinstance(alias.asname.name, cst.Name):
                local = alias.asname.name.value
            table.setdefault(local, target)
    return table


def _normalize(name: str) -> str:
    if name.startswith("typing_extensions."):
        return "typing." + name[len("typing_extensions."):]
    return name


def _literal(node: cst.BaseExpression) -> tuple[bool, object]:
    text: str = _EMPTY_MODULE.code_for_node(node)
    try:
        return True, ast.literal_eval(text)
    except (ValueError, TypeError, SyntaxError, MemoryError, RecursionError):
        return False, None


@dataclass(slots=True)
class SourceUnit:
    """One parsed module. Nodes are libcst nodes in pre-order."""

    path: str
    module_fqn: str
    module: cst.Module
    import_table: dict[str, str]
    is_package: bool = False
    symbols: dict[int, Symbol] = field(default_factory=dict)
    decorator_names: dict[int, str] = field(default_factory=dict)

    def nodes(self) -> Iterator[object]:
        stack: list[cst.CSTNode] = [self.module]
        while stack:
            node: cst.CSTNode = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def declared_symbol_for(self, node: object) -> Symbol | None:
        return self.symbols.get(id(node))


@dataclass(slots=True)
class SourceProgram(ProgramIndex):
    settings: ExtractionSettings = field(default_factory=ExtractionSettings)


@dataclass(slots=True)
class _ClassInfo:
    fqn: str
    node: cst.ClassDef
    unit: SourceUnit
    scope: str  # fqn of the enclosing module, class or function

    @property
    def body_scopes(self) -> tuple[str, ...]:
        return (self.fqn, self.scope)


class _ProgramBuilder:
    def __init__(self, settings: ExtractionSettings) -> None:
        self.program: SourceProgram = SourceProgram(settings=settings)
        self.classes: dict[str, _ClassInfo] = {}
        self._positions: dict[str, Mapping[cst.CSTNode, CodeRange]] = {}

    # -- name resolution -------------------------------------------------

    def resolve(self, dotted: str, unit: SourceUnit, scopes: tuple[str, ...] = ()) -> str | None:
        """Resolve a dotted name as seen from ``scopes`` (innermost first), then the module."""
        for scope in (*scopes, unit.module_fqn):
            local_candidate: str = f"{scope}.{dotted}"
            if local_candidate in self.classes:
                return local_candidate
        parts: list[str] = dotted.split(".")
        target: str | None = unit.import_table.get(parts[0])
        if target is not None:
            return _normalize(".".join((target, *parts[1:])))
        if dotted in self.classes:
            return dotted
        if len(parts) == 1 and parts[0] in _BUILTIN_NAMES:
            return f"builtins.{parts[0]}"
        return None

    def _named_type(self, dotted: str, unit: SourceUnit, scopes: tuple[str, ...] = ()) -> TypeSymbol:
        if dotted == "None":
            return type_symbol("builtins.None", external=True)
        resolved: str | None = self.resolve(dotted, unit, scopes)
        if resolved is None:
            return TypeSymbol(
                kind="type",
                fqn=dotted,
                location=None,
                name=dotted.rsplit(".", 1)[-1],
                original_definition=None,
                external=True,
            )
        declared: TypeSymbol | None = self.program.lookup_type(resolved)
        if declared is not None:
            return declared
        return type_symbol(resolved, external=True)

    def _unresolved(self, node: cst.BaseExpression) -> TypeSymbol:
        text: str = _EMPTY_MODULE.code_for_node(node)
        return TypeSymbol(kind="type", fqn=text, location=None, name=text, original_definition=None, external=True)

    def _optional_or_union(self, options: list[TypeSymbol]) -> TypeSymbol:
        values: list[TypeSymbol] = [o for o in options if o.fqn != "builtins.None"]
        if len(values) == 1 and len(values) < len(options):
            return constructed_type("typing.Optional", (values[0],), external=True)
        return constructed_type("typing.Union", tuple(options), external=True)

    def _union_operands(self, node: cst.BaseExpression) -> Iterator[cst.BaseExpression]:
        if isinstance(node, cst.BinaryOperation) and isinstance(node.operator, cst.BitOr):
            yield from self._union_operands(node.left)
            yield from self._union_operands(node.right)
        else:
            yield node

    def type_of(self, node: cst.BaseExpression, unit: SourceUnit, scopes: tuple[str, ...] = ()) -> TypeSymbol:
        """Resolve a type expression to a TypeSymbol, never failing."""
        dotted: str | None = _dotted(node)
        if dotted is not None:
            return self._named_type(dotted, unit, scopes)
        if isinstance(node, cst.SimpleString):
            ok, text = _literal(node)
            if ok and isinstance(text, str):
                try:
                    return self.type_of(cst.parse_expression(text), unit, scopes)
                except cst.ParserSyntaxError:
                    pass
            return self._unresolved(node)
        if isinstance(node, cst.BinaryOperation) and isinstance(node.operator, cst.BitOr):
            return self._optional_or_union([self.type_of(op, unit, scopes) for op in self._union_operands(node)])
        if isinstance(node, cst.Subscript):
            head_text: str | None = _dotted(node.value)
            definition: str | None = self.resolve(head_text, unit, scopes) if head_text is not None else None
            arg_nodes: list[cst.BaseExpression] = [
                el.slice.value for el in node.slice if isinstance(el.slice, cst.Index)
            ]
            if definition == "typing.Annotated" and arg_nodes:
                return self.type_of(arg_nodes[0], unit, scopes)
            args: list[TypeSymbol] = [self.type_of(arg, unit, scopes) for arg in arg_nodes]
            if definition == "typing.Union":
                return self._optional_or_union(args)
            external: bool = definition is None or definition not in self.classes
            return constructed_type(definition, tuple(args), external=external)
        return self._unresolved(node)

    # -- attributes ------------------------------------------------------

    def annotation_from(
        self, expr: cst.BaseExpression, unit: SourceUnit, where: str, scopes: tuple[str, ...] = ()
    ) -> AttributeAnnotation | None:
        callee: cst.BaseExpression = expr.func if isinstance(expr, cst.Call) else expr
        dotted: str | None = _dotted(callee)
        if dotted is None:
            return None
        full_name: str = self.resolve(dotted, unit, scopes) or dotted
        positional: list[object] = []
        named: list[tuple[str, object]] = []
        if isinstance(expr, cst.Call):
            for arg in expr.args:
                if arg.star:
                    continue
                ok, value = _literal(arg.value)
                if not ok:
                    logger.debug("skipping non-literal argument of %s on %s", full_name, where)
                    continue
                if arg.keyword is not None:
                    named.append((arg.keyword.value, value))
                else:
                    positional.append(value)
        return AttributeAnnotation(
            full_name=full_name,
            short_name=full_name.rsplit(".", 1)[-1],
            arguments=tuple(positional),
            named_arguments=tuple(named),
            location=self._location(unit, expr),
        )

    def _decorator_annotations(
        self, decorators: Sequence[cst.Decorator], unit: SourceUnit, where: str, scopes: tuple[str, ...] = ()
    ) -> tuple[AttributeAnnotation, ...]:
        out: list[AttributeAnnotation] = []
        for deco in decorators:
            annotation = self.annotation_from(deco.decorator, unit, where, scopes)
            if annotation is None:
                continue
            unit.decorator_names[id(deco)] = annotation.full_name
            if annotation.full_name in _PROPERTY_DECORATORS or annotation.full_name.endswith(_ACCESSOR_SUFFIXES):
                continue
            out.append(annotation)
        return tuple(out)

    def _location(self, unit: SourceUnit, node: cst.CSTNode) -> Location | None:
        positions = self._positions.get(unit.path)
        if positions is None or node not in positions:
            return None
        start = positions[node].start
        return Location(path=unit.path, line=start.line, column=start.column)

    # -- passes ----------------------------------------------------------

    def collect(self, unit: SourceUnit) -> None:
        wrapper: MetadataWrapper = MetadataWrapper(unit.module, unsafe_skip_copy=True)
        positions = wrapper.resolve(PositionProvider)
        self._positions[unit.path] = positions
        unit.symbols[id(unit.module)] = DeclarationSymbol(
            kind="module", fqn=unit.module_fqn, location=Location(unit.path, 1, 0), owner=None
        )

        # prefix names the enclosing scope; owner is set only directly inside a class body
        def walk(body: Sequence[cst.CSTNode], prefix: str, owner: str | None) -> None:
            for stmt in body:
                if isinstance(stmt, cst.ClassDef):
                    fqn: str = f"{prefix}.{stmt.name.value}"
                    if fqn in self.classes:
                        # try/except fallbacks redeclare the same class; the first one is kept
                        logger.debug("skipping redeclaration of %s in %s", fqn, unit.path)
                        continue
                    self.classes[fqn] = _ClassInfo(fqn=fqn, node=stmt, unit=unit, scope=prefix)
                    walk(stmt.body.body, fqn, fqn)
                elif isinstance(stmt, cst.FunctionDef):
                    func_fqn: str = f"{prefix}.{stmt.name.value}"
                    unit.symbols[id(stmt)] = DeclarationSymbol(
                        kind="method" if owner is not None else "function",
                        fqn=func_fqn,
                        location=self._location(unit, stmt),
                        owner=owner,
                        decorators=tuple(_EMPTY_MODULE.code_for_node(d.decorator) for d in stmt.decorators),
                    )
                    walk(stmt.body.body, func_fqn, None)
                else:
                    for block in _nested_blocks(stmt):
                        walk(block, prefix, owner)

        walk(unit.module.body, unit.module_fqn, None)

    def declare_types(self) -> None:
        for info in self.classes.values():
            symbol: TypeSymbol = type_symbol(
                info.fqn,
                attributes=self._decorator_annotations(info.node.decorators, info.unit, info.fqn, (info.scope,)),
                location=self._location(info.unit, info.node),
            )
            self.program.types[info.fqn] = symbol
            info.unit.symbols[id(info.node)] = symbol

    def link_bases(self) -> None:
        for info in self.classes.values():
            for arg in info.node.bases:
                if arg.keyword is not None or arg.star:
                    continue
                base: TypeSymbol = self.type_of(arg.value, info.unit, (info.scope,))
                if base.original_definition in _IGNORED_BASES:
                    continue
                self.program.bases[info.fqn] = base
                break
        # malformed sources may declare cycles; cut them where they close
        for fqn in self.classes:
            seen: set[str] = {fqn}
            current: str = fqn
            while True:
                base_symbol: TypeSymbol | None = self.program.bases.get(current)
                if base_symbol is None:
                    break
                key: str | None = base_symbol.original_definition if base_symbol.is_generic else base_symbol.fqn
                if key is None:
                    break
                if key in seen:
                    logger.warning("inheritance cycle through %s; dropping base of %s", key, current)
                    del self.program.bases[current]
                    break
                seen.add(key)
                current = key

    def _field(self, info: _ClassInfo, node: cst.AnnAssign) -> MemberSymbol | None:
        if not isinstance(node.target, cst.Name):
            return None
        annotation: cst.BaseExpression = node.annotation.annotation
        name: str = node.target.value
        where: str = f"{info.fqn}.{name}"
        attributes: list[AttributeAnnotation] = []
        if isinstance(annotation, cst.Subscript):
            head: str | None = _dotted(annotation.value)
            definition: str | None = self.resolve(head, info.unit, info.body_scopes) if head is not None else None
            if definition == "typing.ClassVar":
                return None
            if definition == "typing.Annotated":
                for el in list(annotation.slice)[1:]:
                    if isinstance(el.slice, cst.Index):
                        found = self.annotation_from(el.slice.value, info.unit, where, info.body_scopes)
                        if found is not None:
                            attributes.append(found)
        return MemberSymbol(
            kind="member",
            fqn=where,
            location=self._location(info.unit, node),
            name=name,
            declaring_type=info.fqn,
            member_kind="field",
            type=self.type_of(annotation, info.unit, info.body_scopes),
            attributes=tuple(attributes),
        )

    def _property(self, info: _ClassInfo, node: cst.FunctionDef) -> MemberSymbol | None:
        where: str = f"{info.fqn}.{node.name.value}"
        attributes = self._decorator_annotations(node.decorators, info.unit, where, info.body_scopes)
        names: set[str] = {
            info.unit.decorator_names.get(id(d), "") for d in node.decorators
        }
        if not names & _PROPERTY_DECORATORS:
            return None
        returns: TypeSymbol | None = None
        if node.returns is not None:
            returns = self.type_of(node.returns.annotation, info.unit, info.body_scopes)
        return MemberSymbol(
            kind="member",
            fqn=where,
            location=self._location(info.unit, node),
            name=node.name.value,
            declaring_type=info.fqn,
            member_kind="property",
            type=returns,
            attributes=attributes,
        )

    def declare_members(self) -> None:
        for info in self.classes.values():
            members: list[MemberSymbol] = []
            declared_names: set[str] = set()
            for stmt in info.node.body.body:
                member: MemberSymbol | None = None
                if isinstance(stmt, cst.SimpleStatementLine):
                    for small in stmt.body:
                        if isinstance(small, cst.AnnAssign):
                            member = self._field(info, small)
                            if member is not None and member.name not in declared_names:
                                declared_names.add(member.name)
                                members.append(member)
                                info.unit.symbols[id(small)] = member
                    continue
                if isinstance(stmt, cst.FunctionDef):
                    member = self._property(info, stmt)
                if member is not None and member.name not in declared_names:
                    declared_names.add(member.name)
                    members.append(member)
                    info.unit.symbols[id(stmt)] = member
            self.program.add_type(self.program.types[info.fqn], self.program.bases.get(info.fqn), members)

    def link_overrides(self) -> None:
        for info in self.classes.values():
            symbol: TypeSymbol = self.program.types[info.fqn]
            for member in self.program.declared_members(symbol):
                if member.member_kind != "property":
                    continue
                for ancestor in ancestors(self.program, symbol):
                    shadowed: MemberSymbol | None = next(
                        (m for m in self.program.declared_members(ancestor) if m.name == member.name), None
                    )
                    if shadowed is None:
                        continue
                    if shadowed.member_kind == "property":
                        self.program.add_override(member, shadowed)
                    break

    def build(self, units: Sequence[SourceUnit]) -> SourceProgram:
        for unit in units:
            self.collect(unit)
            self.program.units.append(unit)
        self.declare_types()
        self.link_bases()
        self.declare_members()
        self.link_overrides()
        logger.debug("built program with %d units and %d types", len(units), len(self.classes))
        return self.program


def build_program(
    modules: Sequence[tuple[str, str, cst.Module]], settings: ExtractionSettings | None = None
) -> SourceProgram:
    """Build a program from ``(path, module_fqn, module)`` triples, in the given order."""
    units: list[SourceUnit] = []
    for path, module_fqn, module in modules:
        is_package: bool = Path(path).name == "__init__.py"
        units.append(
            SourceUnit(
                path=path,
                module_fqn=module_fqn,
                module=module,
                import_table=build_import_table(module, module_fqn, is_package),
                is_package=is_package,
            )
        )
    return _ProgramBuilder(settings or ExtractionSettings()).build(units)


def load_source(source: str, module_fqn: str, settings: ExtractionSettings | None = None) -> SourceProgram:
    module: cst.Module = cst.parse_module(source)
    return build_program(((f"<{module_fqn}>", module_fqn, module),), settings)


def load_program(
    root: Path, package: str, workers: int = 1, settings: ExtractionSettings | None = None
) -> Result[SourceProgram, tuple[Error, ...]]:
    paths: tuple[Path, ...] = discover(root)
    parsed_map: Mapping[Path, Result[cst.Module, Error]] = parse(paths, workers)
    gathered: Result[tuple[cst.Module, ...], tuple[Error, ...]] = Result.gather(parsed_map[p] for p in paths)
    if not gathered.ok or gathered.value is None:
        return Result.failure(gathered.error if gathered.error is not None else tuple())
    modules: list[tuple[str, str, cst.Module]] = []
    for path, module in zip(paths, gathered.value):
        logger.debug("parsed %s", path)
        modules.append((str(path), _module_fqn_for(path, root, package), module))
    return Result.success(build_program(modules, settings))


def find_declaration_attribute(unit: SourceUnit, class_node: cst.ClassDef, name: str) -> cst.Decorator | None:
    """Syntax-level lookup: the first decorator on ``class_node`` resolving to ``name``."""
    for deco in class_node.decorators:
        if unit.decorator_names.get(id(deco)) == name:
            return deco
    return None
