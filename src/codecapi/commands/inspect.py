"""Inspect commands -- show what a document compiles to.

Provides the ``codecapi inspect`` sub-command group. Every command loads the
given OpenAPI document, compiles it with the tag filters from the command
line (falling back to ``./codecapi.json``), and prints a table or structured
output through :mod:`codecapi.output`.
"""

from __future__ import annotations

from typing import Optional

import typer

from codecapi.compiler import compile_spec
from codecapi.compiler.naming import namespace_name
from codecapi.config import load_compile_options
from codecapi.exceptions import CodecApiError
from codecapi.models import CompiledApi
from codecapi.output import debug, error, get_output, info
from codecapi.parser import load_document

inspect_app = typer.Typer(no_args_is_help=True)

_INCLUDE_HELP = "Only compile operations with this tag (repeatable)."
_EXCLUDE_HELP = "Skip operations with this tag (repeatable)."


def _compile(
    source: str,
    include: Optional[list[str]],
    exclude: Optional[list[str]],
) -> CompiledApi:
    """Load and compile *source*; CLI tag filters override the project config."""
    try:
        options = load_compile_options()
        if include:
            options = options.model_copy(update={"include": include})
        if exclude:
            options = options.model_copy(update={"exclude": exclude})
        debug(f"Compiling {source} (include={options.include}, exclude={options.exclude})")
        return compile_spec(load_document(source), options)
    except CodecApiError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


@inspect_app.command("operations")
def inspect_operations(
    spec: str = typer.Argument(..., help="Path, URL or '-' for the OpenAPI document."),
    include: Optional[list[str]] = typer.Option(None, "--include", "-i", help=_INCLUDE_HELP),
    exclude: Optional[list[str]] = typer.Option(None, "--exclude", "-x", help=_EXCLUDE_HELP),
) -> None:
    """List compiled operations grouped by tag namespace.

    Example::

        codecapi inspect operations openapi.yaml --exclude internal
    """
    compiled = _compile(spec, include, exclude)
    rows: list[list[str]] = []
    for tag, operations in compiled.operations_by_tag().items():
        for op in operations:
            args = [p.arg_name for p in op.required]
            if op.body is not None:
                args.append("body")
            if op.optional:
                args.append("{" + ", ".join(p.arg_name for p in op.optional) + "}")
            rows.append([
                f"{namespace_name(tag)}.{op.name}",
                op.method.value.upper(),
                op.path,
                ", ".join(args),
                op.ok_codec.describe(),
            ])

    if not rows:
        info("No operations matched.")
        return
    get_output().print_table(
        ["Operation", "Method", "Path", "Arguments", "Returns"],
        rows,
        title=f"{compiled.title} -- Operations ({len(rows)})",
    )


@inspect_app.command("models")
def inspect_models(
    spec: str = typer.Argument(..., help="Path, URL or '-' for the OpenAPI document."),
    include: Optional[list[str]] = typer.Option(None, "--include", "-i", help=_INCLUDE_HELP),
    exclude: Optional[list[str]] = typer.Option(None, "--exclude", "-x", help=_EXCLUDE_HELP),
) -> None:
    """List the named models reachable from the compiled operations.

    Example::

        codecapi inspect models openapi.yaml
    """
    compiled = _compile(spec, include, exclude)
    if not compiled.models:
        info("No models defined.")
        return
    rows = [[name, model.describe()] for name, model in compiled.models.items()]
    get_output().print_table(
        ["Model", "Type"], rows, title=f"{compiled.title} -- Models ({len(rows)})"
    )


@inspect_app.command("schema")
def inspect_schema(
    spec: str = typer.Argument(..., help="Path, URL or '-' for the OpenAPI document."),
    model: str = typer.Argument(..., help="Model name as listed by 'inspect models'."),
) -> None:
    """Print the schema a compiled model serialises back to.

    Example::

        codecapi --json inspect schema openapi.yaml Pet
    """
    compiled = _compile(spec, None, None)
    codec = compiled.models.get(model)
    if codec is None:
        error(f"Unknown model: {model}")
        raise typer.Exit(code=2)
    get_output().format_response(codec.to_schema())
