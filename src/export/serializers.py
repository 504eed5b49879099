"""
Report serializers.

Each serializer turns a ReportData into bytes:
- csv: delimited text, quoting fields that contain the delimiter or quote
- json: structural dump of {metadata, summary, data}
- excel: openpyxl workbook with report and summary sheets
- pdf: reportlab document with summary and a paginated data table
"""

import csv
import io
import json
from typing import Any, Callable, Dict, List, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from src.core.records import Row, jsonable
from src.reporting.models import ReportData
from .models import ExportFormat

HEADER_DARK = colors.HexColor("#1a1a2e")
LIGHT_GREY = colors.HexColor("#f5f5f5")
MAX_PDF_CELL = 40
WIDE_TABLE_COLUMNS = 6

CONTENT_TYPES = {
    ExportFormat.CSV: "text/csv",
    ExportFormat.JSON: "application/json",
    ExportFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ExportFormat.PDF: "application/pdf",
}

EXTENSIONS = {
    ExportFormat.CSV: "csv",
    ExportFormat.JSON: "json",
    ExportFormat.EXCEL: "xlsx",
    ExportFormat.PDF: "pdf",
}


def columns_of(rows: Sequence[Row]) -> List[str]:
    """Union of row keys in first-seen order."""
    seen: Dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


def cell_value(value: Any) -> Any:
    """Flatten a row value for tabular output."""
    if value is None:
        return ""
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(jsonable(value), default=str)
    if isinstance(value, (int, float, str, bool)):
        return value
    return str(jsonable(value))


def to_csv(report: ReportData, delimiter: str = ",") -> bytes:
    buffer = io.StringIO(newline="")
    columns = columns_of(report.data)
    writer = csv.writer(buffer, delimiter=delimiter, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(columns)
    for row in report.data:
        writer.writerow([cell_value(row.get(col)) for col in columns])
    return buffer.getvalue().encode("utf-8")


def to_json(report: ReportData) -> bytes:
    document = {
        "metadata": jsonable(report.metadata),
        "summary": jsonable(report.summary),
        "data": jsonable(report.data),
    }
    return json.dumps(document, indent=2, default=str).encode("utf-8")


def to_excel(report: ReportData) -> bytes:
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="1A1A2E", end_color="1A1A2E", fill_type="solid")

    wb = Workbook()
    ws = wb.active
    ws.title = "Report"
    columns = columns_of(report.data)
    ws.append(columns)
    for row in report.data:
        ws.append([cell_value(row.get(col)) for col in columns])

    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")
    ws.freeze_panes = "A2"
    for col_cells in ws.columns:
        max_len = max(len(str(cell.value or "")) for cell in col_cells)
        ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 40)

    summary = wb.create_sheet(title="Summary")
    summary.append(["Report", report.report_id])
    summary.append(["Generated", report.metadata.generated_at.isoformat()])
    summary.append(["Records", report.metadata.total_records])
    if report.summary:
        summary.append([])
        summary.append(["Metric", "Value"])
        for metric in report.summary.key_metrics:
            summary.append([metric.label, cell_value(metric.value)])
        summary.append([])
        summary.append(["Insights"])
        for insight in report.summary.insights:
            summary.append([insight])
    summary.column_dimensions["A"].width = 40

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _pdf_table(data: List[List[Any]]) -> Table:
    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_DARK),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 7),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, LIGHT_GREY]),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    return table


def _pdf_text(value: Any) -> str:
    text = str(cell_value(value))
    return text if len(text) <= MAX_PDF_CELL else text[:MAX_PDF_CELL - 3] + "..."


def to_pdf(report: ReportData) -> bytes:
    styles = getSampleStyleSheet()
    small = ParagraphStyle("small", parent=styles["Normal"], fontSize=8, textColor=colors.grey)
    columns = columns_of(report.data)

    story = [
        Paragraph(report.report_type.value.replace("-", " ").title(), styles["Title"]),
        Paragraph(
            f"Report {report.report_id} generated {report.metadata.generated_at:%Y-%m-%d %H:%M} UTC, "
            f"{report.metadata.total_records} records",
            small,
        ),
        Spacer(1, 0.5 * cm),
    ]

    if report.summary:
        story.append(Paragraph("Summary", styles["Heading2"]))
        metrics = [["Metric", "Value"]] + [
            [m.label, f"{m.value}{m.unit if m.unit == '%' else ''}"] for m in report.summary.key_metrics
        ]
        story.append(_pdf_table(metrics))
        story.append(Spacer(1, 0.3 * cm))
        for insight in report.summary.insights:
            story.append(Paragraph(f"&bull; {insight}", styles["Normal"]))
        for recommendation in report.summary.recommendations:
            story.append(Paragraph(f"<b>Recommendation:</b> {recommendation}", styles["Normal"]))
        story.append(Spacer(1, 0.5 * cm))

    story.append(Paragraph("Data", styles["Heading2"]))
    if columns:
        rows = [columns] + [[_pdf_text(row.get(col)) for col in columns] for row in report.data]
        story.append(_pdf_table(rows))
    else:
        story.append(Paragraph("No records.", styles["Normal"]))

    buffer = io.BytesIO()
    pagesize = landscape(A4) if len(columns) > WIDE_TABLE_COLUMNS else A4
    doc = SimpleDocTemplate(
        buffer,
        pagesize=pagesize,
        leftMargin=1.5 * cm,
        rightMargin=1.5 * cm,
        topMargin=1.5 * cm,
        bottomMargin=1.5 * cm,
        title=report.report_id,
    )
    doc.build(story)
    return buffer.getvalue()


SERIALIZERS: Dict[ExportFormat, Callable[[ReportData], bytes]] = {
    ExportFormat.CSV: to_csv,
    ExportFormat.JSON: to_json,
    ExportFormat.EXCEL: to_excel,
    ExportFormat.PDF: to_pdf,
}


def serialize(report: ReportData, fmt: ExportFormat) -> bytes:
    return SERIALIZERS[ExportFormat(fmt)](report)
