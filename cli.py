import click
import json
import logging
import traceback
from tabulate import tabulate

from config.settings import get_settings
from core.errors import InvalidInput, PriceLookupError
from core.scrapers.websites.static_session import StaticSession
from core.service import PriceSearchService

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("price-cli")


def build_service(static: bool = False, threshold: int = None) -> PriceSearchService:
    """Create the lookup service, optionally serving canned markup instead of the site."""
    settings = get_settings()
    service = PriceSearchService.from_settings(settings, threshold=threshold)
    if static:
        service.session_factory = lambda context: StaticSession(context=context)
    return service


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, verbose):
    """Takealot price lookup tool."""
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose
    ctx.obj.setdefault("SERVICE_FACTORY", build_service)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")


@cli.command()
@click.argument("term")
@click.option("--debug", "-d", is_flag=True, help="Save page markup and screenshot, show diagnostics")
@click.option("--static", "-s", is_flag=True, help="Use built-in demo markup instead of the live site")
@click.option(
    "--threshold",
    "-t",
    type=click.IntRange(min=1),
    default=None,
    help="Prices a strategy must find before cheaper results are trusted",
)
@click.option(
    "--format-type",
    "-f",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format (default: table)",
)
@click.pass_context
def search(ctx, term, debug, static, threshold, format_type):
    """Look up TERM and print price statistics."""
    service = ctx.obj["SERVICE_FACTORY"](static=static, threshold=threshold)

    try:
        result = service.lookup(term, debug=debug)
    except InvalidInput as e:
        raise click.BadParameter(str(e), param_hint="TERM") from e
    except PriceLookupError as e:
        click.echo(f"Lookup failed: {str(e)}", err=True)
        if ctx.obj["VERBOSE"]:
            click.echo(traceback.format_exc(), err=True)
        ctx.exit(1)

    body = result.to_dict(debug=debug)
    if format_type == "json":
        click.echo(json.dumps(body, indent=2))
        return

    click.echo(format_result(body))


@cli.command()
@click.pass_context
def check(ctx):
    """Verify that a headless browser can be launched."""
    service = ctx.obj["SERVICE_FACTORY"]()
    try:
        service.check_backend()
    except PriceLookupError as e:
        click.echo(f"Browser backend unavailable: {str(e)}", err=True)
        ctx.exit(1)
    click.echo("Browser backend OK")


@cli.command()
@click.option("--host", default=None, help="Bind address (default: HOST setting)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: PORT setting)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host, port, reload):
    """Run the HTTP API."""
    import uvicorn

    settings = get_settings()
    port = port or settings.PORT
    click.echo(f"{settings.PROJECT_NAME} is running on port {port}")
    click.echo(f"Try it out: http://localhost:{port}/api/prices?search=phone")
    uvicorn.run("api.main:app", host=host or settings.HOST, port=port, reload=reload)


def format_result(body):
    """Render a lookup response body as text tables."""
    results = body["results"]
    stats = results["stats"]

    lines = [
        f"Search term: {body['searchTerm']}",
        f"Timestamp:   {body['timestamp']}",
        f"Prices found: {results['totalPricesFound']}",
        "",
        tabulate(
            [
                ["Count", stats["count"]],
                ["Min", f"R{stats['min']:,.2f}"],
                ["Max", f"R{stats['max']:,.2f}"],
                ["Average", f"R{stats['average']:,.2f}"],
                ["Median", f"R{stats['median']:,.2f}"],
            ],
            headers=["Statistic", "Value"],
            tablefmt="grid",
        ),
    ]

    if results["prices"]:
        lines.append("")
        lines.append(
            tabulate(
                [[i, f"R{price:,.2f}"] for i, price in enumerate(results["prices"], 1)],
                headers=["#", "Price"],
                tablefmt="simple",
            )
        )

    debug = body.get("debug")
    if debug:
        lines.append("")
        lines.append(f"Adopted strategy: {debug['strategy']}")
        lines.append(
            tabulate(
                [[a["strategy"], a["count"]] for a in debug["attempts"]],
                headers=["Strategy", "Prices"],
                tablefmt="simple",
            )
        )
        for warning in debug["warnings"]:
            lines.append(f"Warning: {warning}")

    return "\n".join(lines)


if __name__ == "__main__":
    # This runs the Click application
    cli.main(obj={})
