"""
CLI command for cross-capture latency measurement.
"""
import click
import json
from typing import Tuple

from correlation.correlator import ORDERS, ORDER_MERGED
from correlation.pipeline import run_pipeline
from correlation.sinks import JsonlSink, SummarySink, TableSink, TeeSink
from pcap_loader.exceptions import PcapFormatError
from .config import OUTPUT_FORMATS, CorrelationConfig


def _build_sinks(config: CorrelationConfig):
    summary = SummarySink()
    if not config.print_rows:
        return summary, summary
    if config.output_format == "jsonl":
        rows = JsonlSink(click.echo)
    else:
        rows = TableSink(click.echo)
    return TeeSink(rows, summary), summary


@click.command()
@click.argument("first_pcap", type=click.Path(exists=True, dir_okay=False))
@click.argument("second_pcap", type=click.Path(exists=True, dir_okay=False))
@click.option("--disable-printing", "-p", is_flag=True,
              help="Disable output of latency/miss for every packet")
@click.option("--filter", "-f", "filter_specs", multiple=True, metavar="BYTE:VALUE",
              help="Only use frames whose byte at offset BYTE equals VALUE "
                   "(repeatable, or several pairs separated by spaces)")
@click.option("--format", "output_format", type=click.Choice(OUTPUT_FORMATS),
              default="table", show_default=True, help="Per-packet output format")
@click.option("--order", type=click.Choice(ORDERS), default=ORDER_MERGED, show_default=True,
              help="Read captures interleaved by timestamp or one after the other")
@click.option("--no-summary", is_flag=True, help="Do not print the summary line")
def correlate(first_pcap: str, second_pcap: str, disable_printing: bool,
              filter_specs: Tuple[str, ...], output_format: str, order: str, no_summary: bool):
    """
    Measure one-way latency of identical TCP packets in two pcap files.

    FIRST_PCAP is the capture taken before the device under test (inbound),
    SECOND_PCAP the one taken after it (outbound). Packets are identical when
    source/destination IP, source/destination port, sequence and
    acknowledgement numbers all match. Latency = second - first.

    Example:
      tcplatency correlate in.pcap out.pcap -f 23:6
    """
    try:
        config = CorrelationConfig.from_options(
            first_pcap, second_pcap, filter_specs,
            print_rows=not disable_printing,
            output_format=output_format,
            order=order,
            summary=not no_summary,
        )
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="'--filter'")

    sink, summary = _build_sinks(config)
    try:
        run_pipeline(config.first_path, config.second_path, sink,
                     order=config.order, byte_filter=config.byte_filter)
    except PcapFormatError as e:
        raise click.ClickException(f"Malformed capture file {e}")
    except OSError as e:
        raise click.ClickException(f"Failed to read capture: {e}")

    if config.summary:
        if config.output_format == "jsonl":
            click.echo(json.dumps({"type": "summary", **summary.to_dict()},
                                  separators=(",", ":"), ensure_ascii=True))
        else:
            click.echo(summary.format())
