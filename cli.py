#!/usr/bin/env python3
"""CLI interface for the mailbox router."""

import json
import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from mail_router import ConfigError, HeaderMap, InboundMessage, MailboxRouter, RoutingLogger, load_config
from mail_router.config import build_mailboxes

console = Console()


def _load(ctx):
    """Load configuration, exiting with status 2 on errors."""
    try:
        return load_config(ctx.obj["config_path"])
    except ConfigError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        ctx.exit(2)


def _parse_header(value: str) -> tuple[str, str]:
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        raise click.BadParameter(f"expected 'Name: value', got {value!r}", param_hint="--header")
    return name.strip(), header_value.strip()


def _describe_filters(filters, fmt) -> str:
    return "\n".join(escape(fmt(f)) for f in filters) or "-"


@click.group()
@click.option("--config", "-c", default="config.yaml", help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, config, verbose):
    """Mail Router - pick the mailbox for inbound mail."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print mailboxes as JSON")
@click.pass_context
def mailboxes(ctx, as_json):
    """List configured mailboxes in evaluation order."""
    config = _load(ctx)

    if as_json:
        click.echo(json.dumps([mailbox.to_dict() for mailbox in config.mailboxes], indent=2))
        return

    table = Table(title="Mailboxes")
    table.add_column("#", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Recipients", style="white")
    table.add_column("Header Filters", style="yellow")
    table.add_column("Source Filters", style="magenta")

    for position, mailbox in enumerate(config.mailboxes, start=1):
        table.add_row(
            str(position),
            escape(mailbox.name),
            escape(mailbox.recipients or "-"),
            _describe_filters(mailbox.header_filters, lambda f: f"{f.header}: {f.pattern or '(present)'}"),
            _describe_filters(mailbox.source_filters, lambda f: f.pattern),
        )

    console.print(table)


@cli.command()
@click.argument("recipients", nargs=-1)
@click.option("--hostname", "-H", default=None, help="Client hostname from HELO/EHLO")
@click.option("--ip", default=None, help="Client IP address")
@click.option("--header", "headers", multiple=True, help='Message header as "Name: value"')
@click.option("--message", "-m", "message_file", type=click.Path(exists=True, dir_okay=False),
              help="Read headers (and recipients) from a .eml file")
@click.option("--mailbox", "mailbox_specs", multiple=True,
              help='Mailbox as "Name=Recipients" or JSON, instead of the config file')
@click.option("--log", "write_log", is_flag=True, help="Append decisions to the routing log")
@click.pass_context
def route(ctx, recipients, hostname, ip, headers, message_file, mailbox_specs, write_log):
    """Show which mailbox each recipient would be delivered to."""
    config = _load(ctx)

    mailboxes = config.mailboxes
    if mailbox_specs:
        try:
            mailboxes = build_mailboxes(mailbox_specs, ensure_default=False)
        except ConfigError as e:
            console.print(f"[red]Error:[/] {escape(str(e))}")
            ctx.exit(2)

    header_pairs = [_parse_header(h) for h in headers]

    if message_file:
        message = InboundMessage.from_file(
            message_file,
            recipients=list(recipients) or None,
            client_hostname=hostname,
            client_ip=ip,
        )
        # Command-line headers take precedence over the file's
        message.headers = HeaderMap(header_pairs + list(message.headers.items()))
    else:
        message = InboundMessage(
            recipients=list(recipients),
            client_hostname=hostname,
            client_ip=ip,
            headers=HeaderMap(header_pairs),
        )

    if not message.recipients:
        raise click.UsageError("No recipients given")

    router = MailboxRouter(regex_timeout=config.regex_timeout)
    decisions = router.route(message, mailboxes)

    table = Table(title="Routing Results")
    table.add_column("Recipient", style="cyan")
    table.add_column("Mailbox", style="green")
    table.add_column("Decision", style="white")

    routing_logger = RoutingLogger(config.log_dir) if write_log else None
    for decision in decisions:
        table.add_row(
            escape(decision.recipient),
            escape(decision.mailbox_name or "-"),
            escape(decision.source),
        )
        if routing_logger:
            routing_logger.log_decision(decision, header_count=len(message.headers))

    console.print(table)

    unmatched = [d for d in decisions if not d.matched]
    if unmatched:
        console.print(f"[yellow]{len(unmatched)} recipient(s) matched no mailbox[/]")
        ctx.exit(1)


@cli.command()
@click.pass_context
def test(ctx):
    """Test configuration without routing anything."""
    config = _load(ctx)

    console.print(Panel.fit("[bold]Configuration Test[/]", title="Test Mode"))

    console.print("\n[bold]Settings:[/]")
    console.print(f"  Config file: {escape(ctx.obj['config_path'])}")
    console.print(f"  Regex timeout: {config.regex_timeout}s")
    console.print(f"  Ensure default mailbox: {config.ensure_default_mailbox}")
    console.print(f"  Log dir: {escape(config.log_dir)}")

    console.print(f"\n[bold]Mailboxes ({len(config.mailboxes)}):[/]")
    for mailbox in config.mailboxes:
        extras = []
        if mailbox.source_filters:
            extras.append(f"{len(mailbox.source_filters)} source filter(s)")
        if mailbox.header_filters:
            extras.append(f"{len(mailbox.header_filters)} header filter(s)")
        suffix = f" [dim]({', '.join(extras)})[/]" if extras else ""
        console.print(f"  • {escape(mailbox.name)} ← {escape(mailbox.recipients or '-')}{suffix}")

    if config.mailboxes and not config.mailboxes[-1].is_catch_all:
        console.print("\n[yellow]⚠ Last mailbox is not a catch-all; unmatched mail will be rejected[/]")
    else:
        console.print("\n[green]✓ Configuration OK[/]")


@cli.command()
@click.option("--session", "-s", default=None, help="Session id (defaults to the latest)")
@click.pass_context
def stats(ctx, session):
    """Summarize the routing log."""
    config = _load(ctx)
    routing_logger = RoutingLogger(config.log_dir)

    if session is None:
        sessions = routing_logger.list_sessions()
        if not sessions:
            console.print("[dim]No routing logs found.[/]")
            return
        session = sessions[0]["session_id"]

    summary = routing_logger.get_stats(session)

    table = Table(title=f"Routing Log {escape(session)}")
    table.add_column("Mailbox", style="cyan")
    table.add_column("Messages", style="green", justify="right")
    for name, count in sorted(summary["by_mailbox"].items()):
        table.add_row(escape(name), str(count))
    table.add_row("[yellow](no match)[/]", str(summary["unmatched"]))

    console.print(table)
    console.print(f"\nTotal: [bold]{summary['total']}[/] | Matched: {summary['matched']} | Unmatched: {summary['unmatched']}")


if __name__ == "__main__":
    cli()
