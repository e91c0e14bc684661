from __future__ import annotations  # Session report package exports

from .builder import get_report
from .models import ReportItem, SessionMeta, SessionReport
from .pdf import render_report_pdf

__all__ = ["ReportItem", "SessionMeta", "SessionReport", "get_report", "render_report_pdf"]
