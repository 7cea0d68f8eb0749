"""The ``signpost`` command: import an application and serve it.

Importing the target module registers every route, binder, filter, hook
and error handler, so serving starts from a complete configuration.
"""

import importlib
import sys
from pathlib import Path
from typing import Annotated

import typer

app = typer.Typer(name="signpost", add_completion=False)


def resolve_target(path: str) -> str:
    """Return a ``"module:var"`` target for *path*.

    ``module:var`` is passed through; a ``.py`` file is imported and searched
    for an ``App`` instance.
    """
    if ":" in path:
        return path

    file = Path(path)
    if not file.is_file():
        typer.echo(f"Error: file {path!r} not found.", err=True)
        raise typer.Exit(1)

    parent = str(file.resolve().parent)
    if parent not in sys.path:
        sys.path.insert(0, parent)
    try:
        module = importlib.import_module(file.stem)
    except Exception as exc:
        typer.echo(f"Error importing {file.stem!r}: {exc}", err=True)
        raise typer.Exit(1) from exc

    name = find_app_var(module)
    if name is None:
        typer.echo(f"Error: no signpost App found in {path!r}; pass module:var instead.", err=True)
        raise typer.Exit(1)
    return f"{file.stem}:{name}"


def find_app_var(module: object) -> str | None:
    """Name of the first module attribute holding an ``App``."""
    from signpost.app import App

    return next((name for name, value in vars(module).items() if isinstance(value, App)), None)


@app.command()
def serve(
    path: Annotated[str, typer.Argument(help="Python file or module:var target.")] = "main.py",
    host: Annotated[str, typer.Option(help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8000,
    workers: Annotated[int, typer.Option(help="Number of worker processes.")] = 1,
    reload: Annotated[bool, typer.Option("--reload/--no-reload", help="Auto-reload on code changes.")] = False,
    log_level: Annotated[str, typer.Option(help="Log level for signpost and Granian.")] = "info",
) -> None:
    """Serve a signpost application."""
    from signpost._server import serve as start

    target = resolve_target(path)
    start(target, host=host, port=port, workers=workers, reload=reload, log_level=log_level)
