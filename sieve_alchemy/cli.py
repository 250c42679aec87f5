import json
from typing import TYPE_CHECKING, Any, Optional

from sieve_alchemy.exceptions import MissingDependencyError

try:
    import click
except ImportError as e:  # pragma: no cover
    raise MissingDependencyError(package="click", install_package="cli") from e
try:
    from rich import get_console
    from rich.table import Table
except ImportError as e:  # pragma: no cover
    raise MissingDependencyError(package="rich", install_package="cli") from e

if TYPE_CHECKING:
    from click import Group
    from sqlalchemy.engine import Dialect

__all__ = ("add_filter_commands", "get_sieve_group")


def get_sieve_group() -> "Group":
    """Get the Sieve Alchemy CLI group."""

    @click.group(name="sieve")
    @click.option(
        "--registry",
        help="Dotted path to an OperatorRegistry to use instead of the default one (e.g. 'myapp.filters:registry')",
        type=str,
        default=None,
    )
    @click.pass_context
    def sieve_group(ctx: "click.Context", registry: Optional[str]) -> None:
        """Inspect and compile nested filter requests."""
        from sieve_alchemy.registry import OperatorRegistry, default_registry
        from sieve_alchemy.utils import module_loader

        console = get_console()
        ctx.ensure_object(dict)
        ctx.obj["registry"] = default_registry
        if registry is None:
            return
        try:
            registry_instance = module_loader.import_string(registry)
        except ImportError as e:
            console.print(f"[red]Error loading registry: {e}[/]")
            ctx.exit(1)
        if not isinstance(registry_instance, OperatorRegistry):
            console.print(f"[red]{registry} is not an OperatorRegistry[/]")
            ctx.exit(1)
        ctx.obj["registry"] = registry_instance

    return sieve_group


def _load_model(ctx: "click.Context", model: str) -> Any:
    from sqlalchemy import inspect as sa_inspect
    from sqlalchemy.exc import NoInspectionAvailable

    from sieve_alchemy.utils import module_loader

    console = get_console()
    try:
        model_class = module_loader.import_string(model)
        sa_inspect(model_class)
    except ImportError as e:
        console.print(f"[red]Error loading model: {e}[/]")
        ctx.exit(1)
    except NoInspectionAvailable:
        console.print(f"[red]{model} is not a mapped class[/]")
        ctx.exit(1)
    return model_class


def _load_dialect(ctx: "click.Context", name: str) -> "Dialect":
    from sqlalchemy.dialects import registry
    from sqlalchemy.exc import NoSuchModuleError

    try:
        return registry.load(name)()
    except NoSuchModuleError:
        get_console().print(f"[red]Unknown dialect: {name}[/]")
        ctx.exit(1)


def add_filter_commands(sieve_group: Optional["Group"] = None) -> "Group":
    """Add the filter inspection commands to the sieve group."""
    console = get_console()

    if sieve_group is None:
        sieve_group = get_sieve_group()

    @sieve_group.command(name="operators", help="List the registered operator tokens.")
    def list_operators() -> None:  # pyright: ignore[reportUnusedFunction]
        """List the registered operators."""
        registry = click.get_current_context().obj["registry"]
        table = Table(title="Operators")
        table.add_column("Token", style="cyan", no_wrap=True)
        table.add_column("Strategy", no_wrap=True)
        table.add_column("Description")
        for token in sorted(registry):
            strategy = registry.get_strategy(token)
            description = (strategy.__doc__ or "").strip().splitlines()
            table.add_row(token, strategy.__name__, description[0] if description else "")
        console.print(table)

    @sieve_group.command(name="fields", help="List the filterable fields of a model.")
    @click.argument("model", type=str)
    def list_fields(model: str) -> None:  # pyright: ignore[reportUnusedFunction]
        """List filterable fields and their allowed operators."""
        from sieve_alchemy.schema import describe_model

        ctx = click.get_current_context()
        descriptor = describe_model(_load_model(ctx, model))
        table = Table(title=descriptor.name)
        table.add_column("Field", style="cyan", no_wrap=True)
        table.add_column("Attribute", no_wrap=True)
        table.add_column("Operators")
        table.add_column("Target", no_wrap=True)
        for field in descriptor.available_fields():
            attribute = descriptor.column_for(field)
            operators = descriptor.allowed_operators(field)
            target = descriptor.relation_target(attribute)
            table.add_row(
                field,
                attribute,
                "any" if operators is None else ", ".join(sorted(operators)),
                "" if target is None else target.name,
            )
        console.print(table)

    @sieve_group.command(name="compile", help="Print the SQL a filter request compiles to.")
    @click.argument("model", type=str)
    @click.option("--filters", "filters_json", help="Filter request as a JSON object.", type=str, default=None)
    @click.option("--query", "query_string", help="Filter request in bracket notation.", type=str, default=None)
    @click.option("--dialect", help="SQL dialect to compile for.", type=str, default="sqlite", show_default=True)
    @click.option("--silent", help="Skip invalid fields instead of failing.", is_flag=True, default=False)
    def compile_filters(  # pyright: ignore[reportUnusedFunction]
        model: str, filters_json: Optional[str], query_string: Optional[str], dialect: str, silent: bool
    ) -> None:
        """Compile a filter request against a model."""
        from sqlalchemy import select

        from sieve_alchemy.config import FilterConfig
        from sieve_alchemy.exceptions import FilterValidationError
        from sieve_alchemy.filters import NestedFilter
        from sieve_alchemy.utils.query_string import parse_filter_params

        ctx = click.get_current_context()
        if (filters_json is None) == (query_string is None):
            msg = "Provide exactly one of --filters or --query."
            raise click.UsageError(msg)
        if filters_json is not None:
            try:
                filters = json.loads(filters_json)
            except json.JSONDecodeError as e:
                msg = f"Invalid JSON: {e}"
                raise click.BadParameter(msg, param_hint="--filters") from e
            if not isinstance(filters, dict):
                msg = "The filter request must be a JSON object."
                raise click.BadParameter(msg, param_hint="--filters")
        else:
            filters = parse_filter_params(query_string or "")

        model_class = _load_model(ctx, model)
        sql_dialect = _load_dialect(ctx, dialect)
        config = FilterConfig(silent=silent, registry=ctx.obj["registry"])
        try:
            statement = NestedFilter(filters, config=config).append_to_statement(select(model_class), model_class)
        except FilterValidationError as e:
            console.print(f"{e.__class__.__name__}: {e.detail}", style="red", markup=False, highlight=False)
            ctx.exit(1)
        compiled = statement.compile(dialect=sql_dialect, compile_kwargs={"literal_binds": True})
        console.print(str(compiled), markup=False, highlight=False, soft_wrap=True)

    return sieve_group
