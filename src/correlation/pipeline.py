"""
End-to-end run over two capture files.
"""
from __future__ import annotations

import logging
from typing import Optional, Tuple

from models.packet import Origin
from decoding.byte_filter import ByteFilter
from pcap_loader.pcap_reader import PcapReader
from .correlator import ORDER_MERGED, correlate, tag_packets
from .reporter import IResultSink, LatencyReporter

logger = logging.getLogger("tcplatency." + __name__)


def run_pipeline(first_path: str,
                 second_path: str,
                 sink: IResultSink,
                 order: str = ORDER_MERGED,
                 byte_filter: Optional[ByteFilter] = None) -> Tuple[int, int]:
    """
    Correlate two pcap files and stream the results into sink.

    Returns (matched, unmatched) counts. PcapFormatError from either file
    aborts the run.
    """
    with PcapReader(first_path) as first_reader, PcapReader(second_path) as second_reader:
        logger.info("correlating %s (link type %d) with %s (link type %d), order=%s",
                     first_path, first_reader.link_type,
                     second_path, second_reader.link_type, order)
        events = correlate(
            tag_packets(first_reader, Origin.FIRST, byte_filter),
            tag_packets(second_reader, Origin.SECOND, byte_filter),
            order=order,
        )
        counts = LatencyReporter(sink).report(events)
        logger.info("%s: %d packets, %s: %d packets",
                    first_path, first_reader.get_session_info()['packet_count'],
                    second_path, second_reader.get_session_info()['packet_count'])
    return counts
