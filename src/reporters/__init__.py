"""Ledger reports."""

from .global_summary import GlobalSummaryReporter

__all__ = ["GlobalSummaryReporter"]
