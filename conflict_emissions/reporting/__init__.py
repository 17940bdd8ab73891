"""Output table and metadata writers."""

from .report_generator import ReportGenerator

__all__ = ["ReportGenerator"]
