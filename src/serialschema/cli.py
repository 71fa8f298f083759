from __future__ import annotations

import importlib.util
import logging
from pathlib import Path

import typer

from .describe import is_serializable, run_extraction
from .enumerator import named_types
from .errors import Error, SettingsError
from .frontend import load_program
from .result import Result
from .settings import ExtractionSettings, load_settings


def _resolve_source(source: str) -> tuple[Path, str | None]:
    """
    Resolve a source string to a filesystem path and optional package name.

    Args:
        source: Either a filesystem path or a module name

    Returns:
        A tuple of (root_path, package_name) where package_name is None
        if it couldn't be determined

    Raises:
        typer.BadParameter: If the source cannot be resolved
    """
    path = Path(source).resolve()
    if path.exists():
        if path.is_dir() and (path / "__init__.py").exists():
            return path, path.name
        if path.is_file():
            return path.parent, None
        return path, None

    try:
        spec = importlib.util.find_spec(source)
    except (ImportError, ValueError) as e:
        raise typer.BadParameter(f"Could not resolve module or path: {source}") from e
    if spec is None:
        raise typer.BadParameter(f"Could not find module or path: {source}")
    if spec.submodule_search_locations:
        root_path = Path(spec.submodule_search_locations[0])
    elif spec.origin is not None:
        root_path = Path(spec.origin).parent
    else:
        raise typer.BadParameter(f"Could not determine location of module: {source}")
    if not root_path.exists():
        raise typer.BadParameter(f"Module directory does not exist: {root_path}")
    return root_path, source.split(".")[0]


def _settings_for(root: Path) -> ExtractionSettings:
    # the package directory usually sits one or two levels below pyproject.toml
    for candidate in (root, *tuple(root.parents)[:2]):
        if (candidate / "pyproject.toml").is_file():
            return load_settings(candidate)
    return ExtractionSettings()


def _prepare(source: str, package: str | None) -> tuple[Path, str, ExtractionSettings]:
    try:
        root_path, default_pkg = _resolve_source(source)
    except typer.BadParameter as err:
        typer.echo(str(err), err=True)
        raise typer.Exit(1) from err
    if package is None:
        if default_pkg is None:
            typer.echo("Could not determine package name, please specify with --package", err=True)
            raise typer.Exit(1)
        package = default_pkg
    try:
        settings = _settings_for(root_path)
    except SettingsError as err:
        typer.echo(str(err.error), err=True)
        raise typer.Exit(1) from err
    return root_path, package, settings


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


app: typer.Typer = typer.Typer()


@app.command()
def extract(
    source: str,
    package: str | None = None,
    out: Path = Path("build"),
    workers: int = 1,
    serializable_only: bool = False,
    verbose: bool = False,
) -> None:
    """Describe every named type of a source tree as JSON lines.

    SOURCE can be either a filesystem path or a module name.
    """
    _configure_logging(verbose)
    root_path, pkg, settings = _prepare(source, package)
    result: Result[None, tuple[Error, ...]] = run_extraction(
        root_path,
        pkg,
        workers,
        out,
        settings,
        serializable_only,
    )
    if result.ok:
        return
    errors: tuple[Error, ...] = result.error or ()
    for error in errors:
        typer.echo(str(error))
    raise typer.Exit(1)


@app.command()
def types(
    source: str,
    package: str | None = None,
    serializable_only: bool = False,
    verbose: bool = False,
) -> None:
    """List named types in declaration order."""
    _configure_logging(verbose)
    root_path, pkg, settings = _prepare(source, package)
    loaded = load_program(root_path, pkg, 1, settings)
    if not loaded.ok or loaded.value is None:
        for error in loaded.error or ():
            typer.echo(str(error))
        raise typer.Exit(1)
    program = loaded.value
    for symbol in named_types(program):
        if serializable_only and not is_serializable(program, symbol, settings):
            continue
        typer.echo(symbol.fqn)


if __name__ == "__main__":
    app()
