"""Run artifacts: metric sinks, manifests, summaries and plots."""

from .artifacts import write_manifest
from .plots import PlotAdapter
from .sinks import CsvSink, JsonlSink
from .summary import write_summary

__all__ = ["CsvSink", "JsonlSink", "PlotAdapter", "write_manifest", "write_summary"]
