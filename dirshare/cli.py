#!/usr/bin/env python3
"""
dirshare CLI

Command-line interface for the directory sharing server and client.

Usage:
    dirshare serve ROOT            # Export ROOT on ports 2021/2020
    dirshare connect HOST PORT     # Interactive client
    dirshare example-config        # Print an example config file
"""

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn
from rich.panel import Panel
from rich.logging import RichHandler

from .config import EXAMPLE_CONFIG, load_config
from .client import FileClient
from .errors import ConfigError, ProtocolError
from .server import FileServer
from .session.protocol import Command, parse_command

console = Console()

PROMPT = "请输入命令: "


def echo(line: str):
    """Print a server reply line verbatim."""
    console.print(line, markup=False, highlight=False)


def setup_logging(verbose: bool = False, level: str = 'INFO'):
    """Configure logging with rich output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
        force=True,
    )


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.pass_context
def cli(ctx, verbose):
    """dirshare - browse a remote directory over TCP, fetch files over UDP."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    setup_logging(verbose)


@cli.command()
@click.argument('root', type=click.Path())
@click.option('--host', default=None, help='Address to bind')
@click.option('--control-port', type=int, default=None, help='Control (TCP) port [2021]')
@click.option('--data-port', type=int, default=None, help='Data (UDP) port [2020]')
@click.option('--client-data-port', type=int, default=None,
              help='Client port that receives payload [2022]')
@click.option('--chunk-bytes', type=int, default=None, help='Payload bytes per datagram [2048]')
@click.option('--delay', type=float, default=None, help='Seconds between datagrams [0.01]')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), default=None,
              help='JSON config file')
@click.pass_context
def serve(ctx, root, host, control_port, data_port, client_data_port,
          chunk_bytes, delay, config_path):
    """Export ROOT to clients."""
    config = load_config(Path(config_path) if config_path else None)
    config.root = Path(root)

    # Explicit options win over file and environment
    overrides = {
        'host': host,
        'control_port': control_port,
        'data_port': data_port,
        'client_data_port': client_data_port,
        'chunk_bytes': chunk_bytes,
        'inter_packet_delay': delay,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)

    if not ctx.obj['verbose']:
        setup_logging(level=config.log_level)

    try:
        config.validate()
    except ConfigError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        ctx.exit(1)

    async def run():
        server = FileServer(config)

        try:
            await server.start()

            console.print(Panel.fit(
                f"[bold green]File Server Started[/bold green]\n\n"
                f"Root: [blue]{config.root}[/blue]\n"
                f"Control Port: [yellow]{server.control_address[1]}[/yellow]\n"
                f"Data Port: [yellow]{server.data_address[1]}[/yellow]\n"
                f"Client Data Port: [yellow]{config.client_data_port}[/yellow]",
                title="Server Info"
            ))
            console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

            await server.serve_forever()
        finally:
            await server.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")
    except OSError as e:
        console.print(f"[red]Server failed: {e}[/red]")
        ctx.exit(1)


@cli.command()
@click.argument('host')
@click.argument('port', type=int)
@click.option('--data-port', default=2022, help='Local UDP port for file payload')
@click.option('--timeout', default=5.0, help='Receive timeout between datagrams (seconds)')
@click.pass_context
def connect(ctx, host, port, data_port, timeout):
    """Connect to a server and run commands interactively."""

    async def run():
        client = FileClient(host, port, data_port=data_port, receive_timeout=timeout)
        loop = asyncio.get_running_loop()

        try:
            await client.connect()
        except (OSError, asyncio.TimeoutError, ProtocolError) as e:
            console.print(f"[red]Could not connect to {host}:{port}: {e}[/red]")
            await client.close()
            return 1

        console.print("服务器响应：")
        for line in client.greeting:
            echo(line)

        try:
            while True:
                try:
                    line = await loop.run_in_executor(None, console.input, PROMPT)
                except EOFError:
                    line = Command.BYE.value

                name, args = parse_command(line.strip())

                if name == Command.BYE.value:
                    for reply in await client.bye():
                        echo(reply)
                    return 0

                if name == Command.LS.value:
                    await show_listing(client)
                elif name == Command.GET.value and args and args[0]:
                    await fetch(client, args[0])
                else:
                    for reply in await client.command(line.strip()):
                        echo(reply)

        except (ConnectionError, ProtocolError) as e:
            console.print(f"[red]客户端错误: {e}[/red]")
            return 1
        finally:
            await client.close()

    code = asyncio.run(run())
    if code:
        ctx.exit(code)


async def show_listing(client: FileClient):
    """Print the current directory as a table."""
    try:
        entries = await client.list()
    except ProtocolError as e:
        console.print(f"[red]{e}[/red]")
        return

    table = Table()
    table.add_column("Kind", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Size", justify="right", style="yellow")

    for entry in entries:
        table.add_row(
            entry.kind.value,
            entry.name,
            "" if entry.is_dir else format_size(entry.size_bytes)
        )

    console.print(table)


async def fetch(client: FileClient, name: str):
    """Download one file into the working directory with a progress bar."""
    dest = Path(Path(name).name)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        console=console,
    ) as progress:
        task = progress.add_task(f"Receiving {dest}...", total=100)

        def update_progress(r):
            progress.update(task, completed=r.progress_percent)

        try:
            result = await client.download(name, dest, update_progress)
        except ProtocolError as e:
            console.print(f"[red]✗ {e}[/red]")
            return

    if result is None:
        for reply in client.last_reply:
            echo(reply)
    elif result.complete:
        console.print(f"[green]✓ Received {format_size(result.received_bytes)} into {dest}[/green]")
    else:
        console.print(f"[yellow]✗ Timed out: {result.received_bytes}/"
                      f"{result.expected_bytes} bytes in {dest}[/yellow]")


@cli.command('example-config')
def example_config():
    """Print an example configuration file."""
    console.print("Example configuration file (config.json):")
    console.print(EXAMPLE_CONFIG, markup=False, highlight=False)


def format_size(bytes_count: float) -> str:
    """Format bytes as human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024
    return f"{bytes_count:.1f} PB"


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
