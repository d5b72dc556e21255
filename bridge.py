#!/usr/bin/env python3
"""flowbridge CLI - forward CR-terminated serial lines to a TCP server.

Each line read from the serial device is cleaned up, escaped and wrapped in
an STX/HEADER/.../FOOTER/ETX frame, then written to a single persistent TCP
connection that is re-established automatically.

Examples:
    # Defaults: /dev/ttyUSB0 @ 115200 -> 192.168.50.2:1024
    python bridge.py start

    # Explicit device and server
    python bridge.py start --serial COM3 --baud 9600 --host 10.0.0.5 --port 4000

    # Settings from a YAML/JSON file, CLI options win
    python bridge.py start --config bridge.yaml --verbose

    # Local receiver that prints decoded payloads
    python bridge.py listen --port 1024
"""
from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

# Ensure the flowbridge package is importable
if __name__ == "__main__":
    import os
    sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flowbridge import __version__
from flowbridge.bridge import Bridge
from flowbridge.config import BridgeConfig, ConfigError, load_config
from flowbridge.constants import DEFAULT_FOOTER, DEFAULT_HEADER
from flowbridge.receiver import FrameReceiver, ReceivedFrame

app = typer.Typer(
    name="bridge",
    help="flowbridge - serial line to TCP frame bridge",
    add_completion=False,
)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def build_config(
    config_path: Optional[str],
    **overrides,
) -> BridgeConfig:
    """Load the optional config file and apply CLI overrides."""
    try:
        base = load_config(config_path) if config_path else BridgeConfig()
        cfg = base.merged(**overrides)
        cfg.validate()
    except FileNotFoundError as e:
        console.print(f"[red]Error: config file not found: {e}[/red]")
        raise typer.Exit(1)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    return cfg


def config_table(cfg: BridgeConfig) -> Table:
    table = Table(title="Bridge Configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="yellow")
    table.add_row("Serial", f"{cfg.serial_port} @ {cfg.baudrate} baud")
    table.add_row("Server", f"{cfg.host}:{cfg.port}")
    table.add_row("Retry delay", f"{cfg.retry_delay:g}s")
    table.add_row("Header", repr(cfg.header))
    table.add_row("Footer", repr(cfg.footer))
    return table


def install_signal_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> None:
    def signal_handler():
        console.print("\n[yellow]Shutting down...[/yellow]")
        stop_event.set()

    try:
        loop.add_signal_handler(signal.SIGINT, signal_handler)
        loop.add_signal_handler(signal.SIGTERM, signal_handler)
    except NotImplementedError:
        # Windows doesn't support add_signal_handler
        pass


@app.command()
def start(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML or JSON configuration file",
    ),
    serial_port: Optional[str] = typer.Option(
        None,
        "--serial",
        "-s",
        help="Serial device (e.g., /dev/ttyUSB0, COM3)",
    ),
    baud: Optional[int] = typer.Option(
        None,
        "--baud",
        "-b",
        help="Serial baud rate (default: 115200)",
    ),
    host: Optional[str] = typer.Option(
        None,
        "--host",
        "-h",
        help="Remote server host (default: 192.168.50.2)",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Remote server port (default: 1024)",
    ),
    retry_delay: Optional[float] = typer.Option(
        None,
        "--retry-delay",
        "-r",
        help="Seconds between reconnect attempts (default: 3)",
    ),
    header: Optional[str] = typer.Option(
        None,
        "--header",
        help=f"Frame header (default: {DEFAULT_HEADER})",
    ),
    footer: Optional[str] = typer.Option(
        None,
        "--footer",
        help=f"Frame footer (default: {DEFAULT_FOOTER!r})",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging (raw and modified serial data)",
    ),
) -> None:
    """Start the serial-to-TCP bridge."""
    setup_logging(verbose)

    cfg = build_config(
        config,
        serial_port=serial_port,
        baudrate=baud,
        host=host,
        port=port,
        retry_delay=retry_delay,
        header=header,
        footer=footer,
    )

    console.print(config_table(cfg))
    console.print()

    bridge = Bridge(cfg)
    console.print(Panel.fit("[bold green]Starting bridge...[/bold green]"))

    async def run():
        loop = asyncio.get_running_loop()
        install_signal_handlers(loop, bridge.stop_event)

        try:
            await bridge.start()
            console.print("[bold green]Bridge running. Press Ctrl+C to stop.[/bold green]")

            while not bridge.stop_event.is_set():
                try:
                    await asyncio.wait_for(bridge.stop_event.wait(), timeout=cfg.stats_interval)
                except asyncio.TimeoutError:
                    stats = bridge.get_stats()
                    reader = "" if stats["reader_alive"] else ", [red]reader stopped[/red]"
                    console.print(
                        f"[dim]Stats: {stats['state']}, {stats['lines_read']} lines, "
                        f"{stats['frames_delivered']} sent, {stats['frames_dropped']} dropped{reader}[/dim]"
                    )
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted[/yellow]")
        finally:
            await bridge.stop()
            console.print("[green]Bridge stopped.[/green]")

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


@app.command()
def listen(
    host: str = typer.Option(
        "0.0.0.0",
        "--host",
        "-h",
        help="Address to bind",
    ),
    port: int = typer.Option(
        1024,
        "--port",
        "-p",
        help="TCP port to listen on",
    ),
    header: str = typer.Option(DEFAULT_HEADER, "--header", help="Expected frame header"),
    footer: str = typer.Option(DEFAULT_FOOTER, "--footer", help="Expected frame footer"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Run a local receiver that prints every decoded payload."""
    setup_logging(verbose)

    def show(frame: ReceivedFrame) -> None:
        console.print(f"[cyan]{frame.peer}[/cyan] {frame.payload!r} [dim]{frame.raw.hex().upper()}[/dim]")

    receiver = FrameReceiver(host=host, port=port, header=header, footer=footer, on_frame=show)

    async def run():
        stop_event = asyncio.Event()
        install_signal_handlers(asyncio.get_running_loop(), stop_event)
        await receiver.start()
        console.print(f"[bold green]Listening on {host}:{receiver.port}. Press Ctrl+C to stop.[/bold green]")
        try:
            await stop_event.wait()
        finally:
            await receiver.stop()
            console.print(f"[green]Receiver stopped ({len(receiver.frames)} frames).[/green]")

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


@app.command()
def ports() -> None:
    """List serial ports available on this machine."""
    from serial.tools import list_ports

    found = sorted(list_ports.comports(), key=lambda p: p.device)
    if not found:
        console.print("[yellow]No serial ports found[/yellow]")
        return

    table = Table(title="Serial Ports", show_header=True)
    table.add_column("Device", style="cyan")
    table.add_column("Description", style="green")
    table.add_column("HWID", style="dim")
    for p in found:
        table.add_row(p.device, p.description or "", p.hwid or "")
    console.print(table)


@app.command()
def info() -> None:
    """Display the frame format and bridge behaviour."""
    console.print(
        Panel.fit(
            f"[bold]flowbridge {__version__}[/bold]\n\n"
            "Reads CR (0x0D) terminated lines from a serial device and forwards\n"
            "each one as a frame over a persistent TCP connection.\n\n"
            "[bold]Frame:[/bold]\n"
            f"  0x02 + HEADER ({DEFAULT_HEADER}) + payload + FOOTER ({DEFAULT_FOOTER}) + 0x03\n\n"
            "[bold]Payload rules:[/bold]\n"
            "  • Leading non-alphanumeric characters are stripped\n"
            "  • If more than one character remains, the first is dropped\n"
            "  • '\\' is sent as '\\\\' and ':' as '\\:'\n\n"
            "[bold]Delivery:[/bold]\n"
            "  • Best-effort: frames are dropped while disconnected\n"
            "  • A failed write closes the connection; it is retried every few seconds\n",
            title="About",
        )
    )


if __name__ == "__main__":
    app()
