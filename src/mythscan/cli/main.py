"""Main CLI entry point for MythScan."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from mythscan import __version__
from mythscan.config.settings import AnalysisConfig, AnalysisMode, OutputFormat, Settings
from mythscan.core.pipeline import AnalysisPipeline
from mythscan.exceptions import EXIT_INPUT_ERROR, MythScanError
from mythscan.report.formatters import format_issues


console = Console()
err_console = Console(stderr=True)


def configure_logging(level: str, debug: bool = False) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    logging.getLogger("mythscan").setLevel(logging.DEBUG if debug else level.upper())


def print_debug(title: str, body: Any) -> None:
    """Echo a raw request or response body."""
    console.rule(title)
    console.print_json(data=body, default=str)
    console.rule()


@click.command(context_settings={"help_option_names": ["--help", "-h"]})
@click.version_option(version=__version__, message="%(version)s")
@click.argument("solidity_file", type=str)
@click.argument("contract_name", type=str, required=False)
@click.option(
    "--mode",
    type=click.Choice([m.value for m in AnalysisMode]),
    default=AnalysisMode.QUICK.value,
    show_default=True,
    help="Analysis mode",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice([f.value for f in OutputFormat]),
    default=OutputFormat.TEXT.value,
    show_default=True,
    help="Output format",
)
@click.option(
    "--clientToolName",
    "--client-tool-name",
    "client_tool_name",
    type=str,
    default=None,
    help="Override clientToolName",
)
@click.option(
    "--noCacheLookup",
    "--no-cache-lookup",
    "no_cache_lookup",
    is_flag=True,
    help="Deactivate MythX cache lookups",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Print MythX API request and response",
)
def cli(
    solidity_file: str,
    contract_name: Optional[str],
    mode: str,
    output_format: str,
    client_tool_name: Optional[str],
    no_cache_lookup: bool,
    debug: bool,
) -> None:
    """Analyze SOLIDITY_FILE on the MythX security analysis platform.

    The file is compiled with the solc release its pragma asks for. Give
    CONTRACT_NAME to pick a contract when the file defines several;
    otherwise the last deployable contract in the file is analyzed.

    Credentials are read from MYTHX_ETH_ADDRESS and MYTHX_PASSWORD, the
    service URL from MYTHX_API_URL. Without credentials the trial account
    is used.
    """
    settings = Settings()
    configure_logging(settings.log_level, debug)

    config = AnalysisConfig(
        mode=AnalysisMode(mode),
        output_format=OutputFormat(output_format),
        contract_name=contract_name,
        client_tool_name=client_tool_name,
        no_cache_lookup=no_cache_lookup,
        debug=debug,
    )

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=err_console,
            transient=True,
        ) as progress:
            task = progress.add_task("Initializing pipeline...", total=None)

            pipeline = AnalysisPipeline(settings=settings, debug_sink=print_debug if debug else None)
            report = asyncio.run(
                pipeline.analyze(
                    solidity_file,
                    config,
                    on_progress=lambda message: progress.update(task, description=message),
                )
            )
    except MythScanError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}", soft_wrap=True)
        if debug:
            console.print_exception()
        sys.exit(e.exit_code)

    if not report.has_issues:
        console.print(
            f"[green]✔ No errors/warnings found in {escape(solidity_file)} "
            f"for contract: {escape(report.contract_name)}[/green]",
            soft_wrap=True,
        )
        return

    click.echo(format_issues(report.issues, config.output_format, base_dir=Path.cwd()))


def main() -> None:
    """Console script entry point; usage errors exit with -1."""
    try:
        exit_code = cli.main(prog_name="mythscan", standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(EXIT_INPUT_ERROR)
    except click.Abort:
        err_console.print("Aborted!")
        sys.exit(1)
    sys.exit(exit_code or 0)


if __name__ == "__main__":
    main()
