"""
Cross-capture correlation and latency reporting.
"""

from .correlator import (
    Correlator,
    tag_packets,
    merge_streams,
    correlate,
    ORDER_MERGED,
    ORDER_SEQUENTIAL,
    ORDERS,
)
from .reporter import LatencyReporter, LatencyResult, IResultSink
from .sinks import CollectingSink, TableSink, JsonlSink, SummarySink, TeeSink
from .pipeline import run_pipeline

__all__ = [
    'Correlator',
    'tag_packets',
    'merge_streams',
    'correlate',
    'ORDER_MERGED',
    'ORDER_SEQUENTIAL',
    'ORDERS',
    'LatencyReporter',
    'LatencyResult',
    'IResultSink',
    'CollectingSink',
    'TableSink',
    'JsonlSink',
    'SummarySink',
    'TeeSink',
    'run_pipeline',
]
