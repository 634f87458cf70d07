"""Plan Inspector CLI.

Command-line interface for static query plan analysis.

Commands:
    plan-inspector analyze <model.sql>                  Text report
    plan-inspector analyze <model.sql> --format json    Machine-readable report
    plan-inspector analyze <tree.json> --min-severity warning

Exit codes:
    0  no critical finding
    1  at least one critical finding (counted before --min-severity filtering)
    2  malformed input, unreadable file or invalid configuration
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
import structlog

from plan_inspector import __version__
from plan_inspector.config.loader import load_config
from plan_inspector.core import analyze as analyze_query
from plan_inspector.reporting.render import render_json, render_text
from plan_inspector.rule_engine.exceptions import ConfigurationError, MalformedQueryError
from plan_inspector.rule_engine.types import RuleSeverity

EXIT_OK = 0
EXIT_CRITICAL = 1
EXIT_INPUT_ERROR = 2

_VERBOSITY_LEVELS = {0: logging.WARNING, 1: logging.INFO}


class _Stderr:
    """Resolves sys.stderr on every write so redirected streams are honored."""

    def write(self, message: str) -> int:
        return sys.stderr.write(message)

    def flush(self) -> None:
        sys.stderr.flush()


def configure_logging(verbosity: int) -> None:
    """Configure structlog for CLI use; logs go to stderr so stdout stays parseable."""
    level = _VERBOSITY_LEVELS.get(verbosity, logging.DEBUG)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=_Stderr()),
        cache_logger_on_first_use=False,
    )


@click.group()
@click.version_option(__version__, prog_name="plan-inspector")
def cli() -> None:
    """Plan Inspector - static anti-pattern analysis for SQL query plans."""


@cli.command()
@click.argument("query_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Report format.",
)
@click.option(
    "--min-severity",
    type=click.Choice([severity.value for severity in RuleSeverity]),
    default=RuleSeverity.INFO.value,
    show_default=True,
    help="Hide findings below this severity.",
)
@click.option(
    "--dialect",
    default=None,
    help="sqlglot dialect for .sql input (default: from config, snowflake).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML configuration file.",
)
@click.option("-v", "--verbose", count=True, help="Log progress to stderr (-vv for debug).")
@click.pass_context
def analyze(
    ctx: click.Context,
    query_file: Path,
    output_format: str,
    min_severity: str,
    dialect: Optional[str],
    config_path: Optional[Path],
    verbose: int,
) -> None:
    """Analyze a .sql/dbt model or a .json parse tree."""
    configure_logging(verbose)

    try:
        config = load_config(config_path)
        report = analyze_query(query_file, config=config, dialect=dialect)
    except (MalformedQueryError, ConfigurationError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_INPUT_ERROR)
    except (OSError, UnicodeDecodeError) as e:
        click.echo(f"Error: could not read {query_file}: {e}", err=True)
        ctx.exit(EXIT_INPUT_ERROR)

    has_critical = report.has_critical()
    shown = report.filter(min_severity)

    if output_format == "json":
        click.echo(render_json(shown))
    else:
        click.echo(render_text(shown))

    ctx.exit(EXIT_CRITICAL if has_critical else EXIT_OK)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
