import sys
from contextlib import contextmanager
from typing import Generator, Optional, Sequence

import click
from loguru import logger
from rich.console import Console
from rich.table import Table

from ut181a import __version__
from ut181a.device import UT181A, SessionManager, demo_meter, enumerate_candidates
from ut181a.protocol import sigint_cancellation
from ut181a.types import MeasurementSample, RecordDescriptor
from ut181a.util import ConfigError, MeterConfig, load_config, start_log


def print_tree(cmd, prefix="", parent_ctx=None):
    """Print `cmd` and its subcommands, each with its short help."""
    ctx = click.Context(cmd, info_name=cmd.name, parent=parent_ctx)
    if parent_ctx is None:
        click.echo(cmd.name)
    for name in sorted(cmd.list_commands(ctx)):
        sub = cmd.get_command(ctx, name)
        summary = sub.get_short_help_str(limit=50)
        click.echo(f"{prefix}└── {name}" + (f"  ({summary})" if summary else ""))
        if isinstance(sub, click.Group):
            print_tree(sub, prefix + "    ", ctx)


def _show_tree(ctx, param, value):
    if value and not ctx.resilient_parsing:
        print_tree(ctx.command)
        ctx.exit()


def tree_option(f):
    """Eager `--tree` flag printing the command tree below `f`."""
    return click.option(
        "--tree",
        is_flag=True,
        expose_value=False,
        is_eager=True,
        callback=_show_tree,
        help="Print the command tree and exit",
    )(f)


def debug_to_level(debug: int, default: str) -> str:
    """Map the numeric debug level (0, 1.., 9+) to a log level."""
    if debug >= 9:
        return "TRACE"
    if debug >= 1:
        return "DEBUG"
    return default


@click.group()
@tree_option
@click.version_option(__version__, "--version", "-v", prog_name="ut181a")
@click.option(
    "--serial",
    "-s",
    default=None,
    help="Serial string of the meter, needed if several are connected",
)
@click.option(
    "--port",
    "-p",
    default=None,
    help="Serial port to use directly, skipping USB enumeration",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Config file (default: ~/.ut181a/config.ini)",
)
@click.option(
    "--mock/--no-mock",
    default=False,
    help="Talk to a simulated meter instead of real hardware",
)
@click.option(
    "--debug",
    "-d",
    default=0,
    type=click.IntRange(min=0),
    help="Debug info level: 0 for none, greater for more (9: protocol trace)",
)
@click.option(
    "--log-level",
    "-ll",
    default=None,
    help="Logging level (TRACE, DEBUG, INFO, WARNING, ERROR), overrides --debug",
)
@click.option(
    "--log-to-file/--no-log-to-file",
    "-ltf/",
    default=True,
    help="Enable/disable logging to file (default: enabled)",
)
@click.option(
    "--log-path",
    "-lp",
    default="",
    help="Custom path for log file (default: ~/.ut181a/ut181a.log)",
)
@click.pass_context
def cli(ctx, serial, port, config_path, mock, debug, log_level, log_to_file, log_path):
    """UT181A - UNI-T UT181A multimeter USB communication tool.

    List and download the records stored on the meter (as CSV files), or
    monitor live measurements.
    """
    try:
        config = load_config(config_path).updated(serial=serial, port=port)
        level = log_level.upper() if log_level else debug_to_level(debug, config.log_level)
        config = config.updated(log_level=level)
    except ConfigError as e:
        raise click.UsageError(str(e))

    start_log(
        log_to_file=log_to_file,
        log_to_stdout=True,
        log_path=log_path,
        log_level=config.log_level,
    )
    ctx.obj = {"config": config, "mock": mock}


def make_meter(ctx: click.Context) -> UT181A:
    config: MeterConfig = ctx.obj["config"]
    if ctx.obj["mock"]:
        meter = demo_meter()
        manager = SessionManager(
            enumerator=meter.candidates,
            transport_factory=meter.connect,
            timeout=config.timeout,
            handshake_timeout=config.handshake_timeout,
        )
        return UT181A(config, manager=manager)
    return UT181A(config)


@contextmanager
def open_meter(ctx: click.Context) -> Generator[UT181A, None, None]:
    """Open the meter for one command, exiting with status 1 on failure."""
    config: MeterConfig = ctx.obj["config"]
    dmm = make_meter(ctx)
    if not dmm.open():
        click.echo(
            "Failed to open UT181A DMM. Please check device connection or settings.",
            err=True,
        )
        if config.serial:
            click.echo(f"Is the serial string '{config.serial}' correct?", err=True)
        ctx.exit(1)
    try:
        yield dmm
    finally:
        dmm.close()


def print_records(descriptors: Sequence[RecordDescriptor]) -> None:
    console = Console(color_system="standard")
    table = Table(box=None)
    table.add_column("Index", justify="right")
    table.add_column("Created (UTC)")
    table.add_column("Kind")
    table.add_column("Size", justify="right")
    for d in descriptors:
        table.add_row(
            str(d.index),
            d.created.strftime("%Y-%m-%d %H:%M:%S"),
            d.kind_name,
            f"{d.size} B",
        )
    console.print(table)
    console.print(f"{len(descriptors)} record(s)")


def print_sample(sample: MeasurementSample) -> None:
    click.echo(
        f"{sample.offset_ms / 1000:10.3f} s  {sample.value:>14.6g} {sample.unit_name}"
    )


@cli.command()
@click.pass_context
def ports(ctx):
    """List connected meters (port, serial string, description)."""
    config: MeterConfig = ctx.obj["config"]
    if ctx.obj["mock"]:
        candidates = demo_meter().candidates()
    else:
        candidates = enumerate_candidates(config.usb_vid, config.usb_pid)
    if not candidates:
        click.echo("No UT181A meters found.")
        return
    for c in candidates:
        click.echo(f"{c.port}\t{c.serial or '-'}\t{c.description}")


@cli.command(name="list")
@click.pass_context
def list_records(ctx):
    """List the records stored on the meter."""
    click.echo("Ctrl-C to abort if it takes too long", err=True)
    with open_meter(ctx) as dmm, sigint_cancellation() as cancel:
        ok = dmm.list_records(cancel, sink=print_records)
    if not ok:
        ctx.exit(1)


@cli.command()
@click.pass_context
def monitor(ctx):
    """Monitor live measurements until Ctrl-C."""
    click.echo("Ctrl-C to quit the monitor", err=True)
    with open_meter(ctx) as dmm, sigint_cancellation() as cancel:
        ok = dmm.monitor(cancel, sink=print_sample)
    if not ok:
        ctx.exit(1)


@cli.command()
@click.argument("indices", nargs=-1, required=True, type=click.IntRange(min=0))
@click.option(
    "--save-dir",
    "-o",
    default=None,
    type=click.Path(file_okay=False),
    help="Directory for the CSV files (default: config save_dir)",
)
@click.pass_context
def get(ctx, indices, save_dir):
    """Download records by index and save each as CSV."""
    if save_dir is not None:
        ctx.obj["config"] = ctx.obj["config"].updated(save_dir=save_dir)
    click.echo("Ctrl-C to abort the long operation", err=True)
    failed = []
    with open_meter(ctx) as dmm, sigint_cancellation() as cancel:
        for n, index in enumerate(indices):
            if cancel:
                logger.warning("Cancelled, skipping remaining records")
                failed.extend(indices[n:])
                break
            if not dmm.receive_record(index, cancel):
                failed.append(index)
    if failed:
        click.echo(f"Records not saved: {', '.join(map(str, failed))}", err=True)
        ctx.exit(1)


def main(argv: Optional[Sequence[str]] = None):
    cli.main(args=argv, prog_name="ut181a")


if __name__ == "__main__":
    sys.exit(main())
