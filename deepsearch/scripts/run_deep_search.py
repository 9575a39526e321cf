"""
deepsearch/scripts/run_deep_search.py

Command line entry point: seed templates from a HAR export, run a deep
search, export the markdown report and talk to the agent.

Usage:
    deepsearch --har ./nextdoor.har --query "plumber"
    deepsearch --har ./nextdoor.har --query "plumber" --output report.md
    deepsearch --query "plumber" --analyze --chat --provider anthropic
"""

import argparse
import sys
from pathlib import Path

from rich.console import Console

from deepsearch.capture.har_source import publish_har
from deepsearch.service import DeepSearchService
from deepsearch.utils.cli_utils import (
    NoticePrinter,
    add_provider_arguments,
    render_status,
    resolve_provider_config,
)
from deepsearch.utils.exceptions import DeepSearchError
from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)

EXIT_COMMANDS = {"/exit", "/quit", "exit", "quit"}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Nextdoor deep search: replay captured requests and analyze threads.")
    parser.add_argument("--har", type=Path, default=None, help="HAR export recorded while browsing Nextdoor")
    parser.add_argument("--query", type=str, default=None, help="Search query (default: last query seen)")
    parser.add_argument("--output", type=Path, default=None, help="Write the markdown report to this path")
    parser.add_argument("--analyze", action="store_true", help="Run the AI analysis after the search")
    parser.add_argument("--chat", action="store_true", help="Start an interactive follow-up chat")
    parser.add_argument("--no-search", action="store_true", help="Reuse the last saved search result")
    add_provider_arguments(parser)
    return parser.parse_args(argv)


def run_chat_loop(service: DeepSearchService, console: Console) -> None:
    console.print("[dim]Ask a follow-up question (/clear to reset, /exit to quit).[/dim]")
    while True:
        try:
            message = console.input("[bold cyan]> [/bold cyan]").strip()
        except (EOFError, KeyboardInterrupt):
            console.print()
            return
        if not message:
            continue
        if message in EXIT_COMMANDS:
            return
        if message == "/clear":
            service.clear_chat()
            console.print("[dim]Conversation cleared.[/dim]")
            continue
        try:
            service.send_chat_message(message)
        except DeepSearchError as e:
            logger.debug("Chat turn failed: %s", e)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    console = Console()

    provider_config = None
    if args.analyze or args.chat:
        provider_config = resolve_provider_config(args.provider, args.model, console)

    service = DeepSearchService(provider_config=provider_config)
    service.channels.notices.subscribe("cli-console", NoticePrinter(console))

    if args.har is not None:
        try:
            count = publish_har(args.har, service.channels)
        except (OSError, ValueError) as e:
            console.print(f"[bold red]Could not read HAR file: {e}[/bold red]")
            return 1
        console.print(f"[dim]Replayed {count} GraphQL observations from {args.har}[/dim]")

    render_status(service.get_status(), console)

    try:
        if not args.no_search:
            service.start_search(args.query)

        if args.output is not None:
            filename, markdown = service.export_markdown()
            output = args.output if args.output.suffix else args.output / filename
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(markdown, encoding="utf-8")
            console.print(f"[green]Report written to {output}[/green]")
    except DeepSearchError as e:
        logger.debug("Run failed: %s", e)
        console.print(f"[bold red]{e}[/bold red]")
        return 1

    if args.analyze:
        try:
            service.start_analysis()
        except DeepSearchError as e:
            # already reported through the ANALYSIS_ERROR notice
            logger.debug("Analysis failed: %s", e)
            return 1

    if args.chat:
        run_chat_loop(service, console)
    return 0


if __name__ == "__main__":
    sys.exit(main())
