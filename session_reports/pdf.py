from __future__ import annotations  # PDF rendering for session reports

from datetime import datetime
from typing import List, Optional, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from .models import ReportItem, SessionReport

ACCENT = (45, 115, 245)  # Palette accent
TEXT = (34, 34, 34)  # Primary text color
MUTED = (100, 100, 100)  # Secondary text color
RULE = (230, 230, 230)  # Divider color
SOFT_ACCENT_BG = (243, 248, 255)  # Highlight background

PENDING = "Not evaluated yet"


def _latin1(text: object) -> str:  # Core fonts only cover latin-1
    return str(text).encode("latin-1", "replace").decode("latin-1")


def _format_datetime(value: Optional[str]) -> str:  # Format ISO timestamp for display
    if not value:
        return "-"
    try:
        parsed = datetime.fromisoformat(value[:-1] + "+00:00" if value.endswith("Z") else value)
    except ValueError:
        return value
    return parsed.strftime("%d %b %Y, %H:%M UTC")


class ReportPDF(FPDF):  # Page chrome for session reports
    header_title = "Interview Report"

    def header(self) -> None:
        self.set_font("Helvetica", "B", 11)
        self.set_text_color(*ACCENT)
        self.cell(0, 8, _latin1(self.header_title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_draw_color(*RULE)
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.ln(4)

    def footer(self) -> None:
        self.set_y(-12)
        self.set_font("Helvetica", "", 8)
        self.set_text_color(*MUTED)
        self.cell(0, 8, f"Page {self.page_no()}/{{nb}}", align="C")


def _width(pdf: FPDF) -> float:
    return float(pdf.w) - float(pdf.l_margin) - float(pdf.r_margin)


def _section_title(pdf: FPDF, title: str) -> None:
    pdf.set_x(pdf.l_margin)
    pdf.set_text_color(*TEXT)
    pdf.set_font("Helvetica", "B", 13)
    pdf.cell(0, 9, _latin1(title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(1)


def _meta_rows(pdf: FPDF, rows: List[Tuple[str, str]]) -> None:
    label_w = 40.0
    for label, value in rows:
        pdf.set_x(pdf.l_margin)
        pdf.set_font("Helvetica", "", 10)
        pdf.set_text_color(*MUTED)
        pdf.cell(label_w, 6, _latin1(label), new_x=XPos.RIGHT, new_y=YPos.TOP)
        pdf.set_text_color(*TEXT)
        pdf.cell(_width(pdf) - label_w, 6, _latin1(value), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(3)


def _render_item(pdf: FPDF, index: int, item: ReportItem) -> None:
    width = _width(pdf)
    pdf.set_x(pdf.l_margin)
    pdf.set_font("Helvetica", "B", 11)
    pdf.set_text_color(*TEXT)
    pdf.multi_cell(width, 6, _latin1(f"Q{index}. {item.question}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    score = f"{item.score}/10" if item.score is not None else PENDING
    pdf.set_font("Helvetica", "B", 10)
    pdf.set_text_color(*ACCENT)
    pdf.cell(width, 6, _latin1(f"Score: {score}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.set_font("Helvetica", "", 10)
    for label, value in (
        ("Transcript", item.transcription or "Not transcribed yet"),
        ("Justification", item.justification or PENDING),
    ):
        pdf.set_text_color(*MUTED)
        pdf.cell(width, 5, label, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_text_color(*TEXT)
        pdf.multi_cell(width, 5, _latin1(value), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_draw_color(*RULE)
    pdf.line(pdf.l_margin, pdf.get_y() + 2, pdf.l_margin + width, pdf.get_y() + 2)
    pdf.ln(5)


def render_report_pdf(report: SessionReport) -> bytes:  # Build PDF payload for a session report
    pdf = ReportPDF()
    pdf.header_title = f"{report.session.tech_stack} - {report.session.candidate} - Interview Report"
    pdf.alias_nb_pages()
    pdf.set_margins(15, 15, 15)
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    _section_title(pdf, "Session Overview")
    meta = report.session
    _meta_rows(
        pdf,
        [
            ("Session ID", meta.session_id),
            ("Candidate", meta.candidate),
            ("Tech stack", meta.tech_stack),
            ("Status", meta.status.value),
            ("Started", _format_datetime(meta.started_at)),
            ("Ended", _format_datetime(meta.ended_at)),
        ],
    )

    if report.average_score is not None:
        pdf.set_fill_color(*SOFT_ACCENT_BG)
        pdf.set_text_color(*ACCENT)
        pdf.set_font("Helvetica", "B", 12)
        pdf.cell(
            _width(pdf),
            10,
            f"Average score: {report.average_score:.1f}/10 ({report.evaluated_count} of {len(report.items)} evaluated)",
            fill=True,
            new_x=XPos.LMARGIN,
            new_y=YPos.NEXT,
        )
        pdf.ln(3)

    _section_title(pdf, "Responses")
    if not report.items:
        pdf.set_font("Helvetica", "", 10)
        pdf.set_text_color(*MUTED)
        pdf.cell(0, 6, "No responses recorded.", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    for index, item in enumerate(report.items, start=1):
        _render_item(pdf, index, item)

    return bytes(pdf.output())


__all__ = ["render_report_pdf"]
