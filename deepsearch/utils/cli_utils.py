"""
deepsearch/utils/cli_utils.py

Utility functions for CLI argument parsing and console output.
"""

import sys
from argparse import ArgumentParser

from rich.console import Console
from rich.table import Table

from deepsearch.data_models.events import NoticeType, UINotice
from deepsearch.data_models.llms.vendors import LLMVendor, ProviderConfig, get_all_model_values
from deepsearch.data_models.status import StatusSnapshot
from deepsearch.utils.exceptions import ProviderError


def add_provider_arguments(parser: ArgumentParser) -> None:
    """
    Add the --provider and --model arguments to an ArgumentParser.

    Args:
        parser: The ArgumentParser to add the arguments to
    """
    parser.add_argument(
        "--provider",
        type=str,
        choices=[vendor.value for vendor in LLMVendor],
        default=None,
        help="LLM backend (default: DEEPSEARCH_PROVIDER, or inferred from --model)",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help=f"LLM model to use. Known models: {', '.join(get_all_model_values())}",
    )


def resolve_provider_config(provider: str | None, model: str | None, console: Console) -> ProviderConfig:
    """
    Resolve the provider configuration from CLI overrides and the environment.

    Args:
        provider: The --provider value.
        model: The --model value.
        console: Rich Console instance for error output

    Returns:
        The resolved ProviderConfig.

    Exits with error if no usable provider is configured.
    """
    try:
        return ProviderConfig.from_env(vendor=provider, model=model)
    except ProviderError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        console.print("[dim]Set DEEPSEARCH_PROVIDER or pass --provider (openai, anthropic, ollama).[/dim]")
        sys.exit(1)


def render_status(status: StatusSnapshot, console: Console) -> None:
    """Print a status snapshot as a table."""
    table = Table(title="Deep Search status", show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Readiness", f"[bold]{status.readiness.value}[/bold]")
    table.add_row("Session identifier", "captured" if status.has_session_identifier else "missing")
    table.add_row("searchPost template", "yes" if status.has_search_template else "no")
    table.add_row("FeedItem template", "yes" if status.has_detail_template else "no")
    table.add_row("Last query", status.last_query or "-")
    if status.last_result is not None:
        summary = status.last_result
        table.add_row(
            "Last result",
            f"{summary.threads} threads, {summary.comments} comments, {summary.errors} errors",
        )
    console.print(table)


class NoticePrinter:
    """Prints UI notices to a rich console; chunks are streamed inline."""

    def __init__(self, console: Console) -> None:
        self.console = console

    def __call__(self, notice: UINotice) -> None:
        data = notice.data
        match notice.type:
            case NoticeType.PROGRESS:
                self.console.print(
                    f"[dim]Fetched {data.get('current')}/{data.get('total')} "
                    f"({data.get('error_count', 0)} errors)[/dim]"
                )
            case NoticeType.COMPLETE:
                self.console.print(
                    f"[bold green]Search complete:[/bold green] {data.get('threads')} threads, "
                    f"{data.get('comments')} comments, {data.get('errors')} errors"
                )
            case NoticeType.ANALYSIS_CHUNK | NoticeType.CHAT_CHUNK:
                self.console.print(data.get("chunk", ""), end="", markup=False, highlight=False)
            case NoticeType.ANALYSIS_COMPLETE | NoticeType.CHAT_COMPLETE:
                self.console.print()
            case NoticeType.TOOL_EXECUTING:
                self.console.print(f"\n[cyan]Searching Nextdoor for \"{data.get('query')}\"...[/cyan]")
            case NoticeType.TOOL_PROGRESS:
                self.console.print(f"[dim]{data.get('message', '')}[/dim]")
            case NoticeType.TOOL_COMPLETE:
                self.console.print(f"[dim]Search returned {data.get('result_count', 0)} threads[/dim]")
            case NoticeType.ANALYSIS_ERROR | NoticeType.CHAT_ERROR:
                self.console.print(f"\n[bold red]Error: {data.get('message')}[/bold red]")
            case _:
                pass
