"""
LedgerFlow - Report Rendering

Turns an aggregated report document into PDF (reportlab) or spreadsheet
(openpyxl) bytes. Builders only produce ``ReportDocument`` objects; layout
lives here so every report shares one look.
"""

import io
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional, Sequence

# PDF Generation (reportlab)
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import (
    SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, HRFlowable
)
from reportlab.lib.enums import TA_CENTER

# Excel Generation (openpyxl)
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils import get_column_letter

from ledgerflow.schemas.reports import ReportFormat


CURRENCY_FORMAT = '#,##0.00'

NAVY = "1A365D"
SLATE = "2D3748"
GREY = "4A5568"
MUTED = "718096"
TOTALS_SHADE = "E2E8F0"

MARGIN = 0.5 * inch

# name -> (parent, font size, space after, colour, extra)
PARAGRAPH_STYLES = {
    "ReportTitle": ("Heading1", 16, 12, NAVY, {"alignment": TA_CENTER}),
    "ReportSubtitle": ("Heading2", 11, 6, GREY, {"alignment": TA_CENTER}),
    "SectionHeader": ("Heading3", 10, 4, SLATE, {"fontName": "Helvetica-Bold", "spaceBefore": 10}),
    "Footer": ("Normal", 8, 0, MUTED, {"alignment": TA_CENTER}),
}


@dataclass
class ReportSection:
    """One table in a report, optionally with a heading and notes around it."""
    columns: List[str]
    rows: List[List[Any]] = field(default_factory=list)
    heading: Optional[str] = None
    notes_before: List[str] = field(default_factory=list)
    notes_after: List[str] = field(default_factory=list)
    totals: Optional[List[Any]] = None
    col_widths: Optional[Sequence[float]] = None  # inches
    # Rows drawn bold (e.g. transaction header lines in journal books)
    emphasized_rows: List[int] = field(default_factory=list)


@dataclass
class ReportDocument:
    title: str
    subtitle: str
    period: str
    sections: List[ReportSection] = field(default_factory=list)
    orientation: str = "portrait"
    sheet_title: str = "Report"
    footer_notes: List[str] = field(default_factory=list)


class ReportRenderer:
    """Renders report documents to bytes."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        for name, (parent, size, after, colour, extra) in PARAGRAPH_STYLES.items():
            self.styles.add(ParagraphStyle(
                name=name,
                parent=self.styles[parent],
                fontSize=size,
                spaceAfter=after,
                textColor=colors.HexColor(f"#{colour}"),
                **extra,
            ))

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    def render(self, document: ReportDocument, format: ReportFormat) -> bytes:
        if format == ReportFormat.PDF:
            return self.render_pdf(document)
        return self.render_excel(document)

    # =========================================================================
    # PDF GENERATION
    # =========================================================================

    def render_pdf(self, document: ReportDocument) -> bytes:
        buffer = io.BytesIO()
        pagesize = landscape(A4) if document.orientation == "landscape" else A4
        doc = SimpleDocTemplate(
            buffer,
            pagesize=pagesize,
            **{side: MARGIN for side in ("leftMargin", "rightMargin", "topMargin", "bottomMargin")},
        )

        elements = []

        # Header
        elements.append(Paragraph(document.title, self.styles['ReportTitle']))
        elements.append(Paragraph(document.subtitle, self.styles['ReportSubtitle']))
        elements.append(Paragraph(document.period, self.styles['ReportSubtitle']))
        elements.append(Spacer(1, 12))

        for section in document.sections:
            if section.heading:
                elements.append(Paragraph(section.heading, self.styles['SectionHeader']))
            for note in section.notes_before:
                elements.append(Paragraph(note, self.styles['Normal']))
            if section.notes_before:
                elements.append(Spacer(1, 4))
            elements.append(self._create_table(section))
            for note in section.notes_after:
                elements.append(Paragraph(note, self.styles['Normal']))
            elements.append(Spacer(1, 12))

        for note in document.footer_notes:
            elements.append(Paragraph(note, self.styles['Footer']))

        # Footer
        elements.append(Spacer(1, 20))
        elements.append(HRFlowable(width="100%", color=colors.gray))
        elements.append(Paragraph(
            f"Generated by LedgerFlow on {datetime.now().strftime('%Y-%m-%d %H:%M')}",
            self.styles['Footer']
        ))

        doc.build(elements)
        buffer.seek(0)
        return buffer.read()

    def _create_table(self, section: ReportSection) -> Table:
        """Create a styled table."""
        data = [list(section.columns)]
        for row in section.rows:
            data.append([self._pdf_cell(value) for value in row])
        if section.totals is not None:
            data.append([self._pdf_cell(value) for value in section.totals])

        widths = [w*inch for w in section.col_widths] if section.col_widths else None
        table = Table(data, colWidths=widths, repeatRows=1)

        style_commands = [
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(f"#{SLATE}")),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, 0), 8),
            ('BOTTOMPADDING', (0, 0), (-1, 0), 6),
            ('TOPPADDING', (0, 0), (-1, 0), 6),
            ('FONTSIZE', (0, 1), (-1, -1), 7),
            ('TOPPADDING', (0, 1), (-1, -1), 3),
            ('BOTTOMPADDING', (0, 1), (-1, -1), 3),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.gray),
        ]

        for col in self._numeric_columns(section):
            style_commands.append(('ALIGN', (col, 1), (col, -1), 'RIGHT'))

        for index in section.emphasized_rows:
            style_commands.append(('FONTNAME', (0, index + 1), (-1, index + 1), 'Helvetica-Bold'))

        if section.totals is not None:
            style_commands.extend([
                ('BACKGROUND', (0, -1), (-1, -1), colors.HexColor(f"#{TOTALS_SHADE}")),
                ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ])

        table.setStyle(TableStyle(style_commands))
        return table

    # =========================================================================
    # EXCEL GENERATION
    # =========================================================================

    def render_excel(self, document: ReportDocument) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.title = document.sheet_title[:31]

        title_font = Font(bold=True, size=14)
        section_font = Font(bold=True, size=11)
        header_fill = PatternFill(start_color=SLATE, end_color=SLATE, fill_type="solid")
        header_font = Font(bold=True, size=10, color="FFFFFF")
        totals_fill = PatternFill(start_color=TOTALS_SHADE, end_color=TOTALS_SHADE, fill_type="solid")

        # Title
        ws['A1'] = document.title
        ws['A1'].font = title_font
        ws['A2'] = document.subtitle
        ws['A3'] = document.period

        row = 5
        widths = {}
        for section in document.sections:
            if section.heading:
                ws.cell(row=row, column=1, value=section.heading).font = section_font
                row += 1
            for note in section.notes_before:
                ws.cell(row=row, column=1, value=note)
                row += 1

            # Headers
            for col, header in enumerate(section.columns, 1):
                cell = ws.cell(row=row, column=col, value=header)
                cell.fill = header_fill
                cell.font = header_font
                cell.alignment = Alignment(horizontal="center")
                widths[col] = max(widths.get(col, 0), len(str(header)))
            row += 1

            for index, values in enumerate(section.rows):
                self._write_excel_row(ws, row, values, widths, bold=index in section.emphasized_rows)
                row += 1

            if section.totals is not None:
                self._write_excel_row(ws, row, section.totals, widths, bold=True, fill=totals_fill)
                row += 1

            for note in section.notes_after:
                ws.cell(row=row, column=1, value=note)
                row += 1
            row += 1

        for note in document.footer_notes:
            ws.cell(row=row, column=1, value=note)
            row += 1

        # Adjust column widths
        for col, width in widths.items():
            ws.column_dimensions[get_column_letter(col)].width = min(max(width + 2, 10), 50)

        buffer = io.BytesIO()
        wb.save(buffer)
        buffer.seek(0)
        return buffer.read()

    def _write_excel_row(self, ws, row: int, values: Sequence[Any], widths: dict, bold: bool = False, fill=None):
        for col, value in enumerate(values, 1):
            if value is None or value == "":
                cell = ws.cell(row=row, column=col)
            elif isinstance(value, Decimal):
                cell = ws.cell(row=row, column=col, value=float(value))
                cell.number_format = CURRENCY_FORMAT
            else:
                cell = ws.cell(row=row, column=col, value=str(value))
            if bold:
                cell.font = Font(bold=True)
            if fill is not None:
                cell.fill = fill
            widths[col] = max(widths.get(col, 0), len(self._pdf_cell(value)))

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _numeric_columns(self, section: ReportSection) -> List[int]:
        rows = section.rows + ([section.totals] if section.totals is not None else [])
        numeric = set()
        for values in rows:
            for col, value in enumerate(values):
                if isinstance(value, Decimal):
                    numeric.add(col)
        return sorted(numeric)

    def _pdf_cell(self, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, Decimal):
            return self._format_currency(value)
        return str(value)

    def _format_currency(self, amount: Decimal) -> str:
        """Format amount as currency string."""
        return f"{amount:,.2f}"
