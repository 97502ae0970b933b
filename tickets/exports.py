"""
tickets/exports.py
==================
Ticket exports (CSV, XLSX via openpyxl, PDF via reportlab) over any ticket
queryset, usually one built by search.search_tickets(), and the CSV import.

Exports return bytes / write to a text stream so callers decide where they
go: a file from the management command, an HttpResponse, an e-mail.
"""

import csv
import io
import logging
from dataclasses import dataclass, field

from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Table, TableStyle

from .forms import TicketImportForm
from .lifecycle import create_ticket
from .rules import PRIORITY_LABELS

logger = logging.getLogger(__name__)


EXPORT_COLUMNS = [
    ("ticket_number",  "Ticket #"),
    ("created_at",     "Created"),
    ("subject",        "Subject"),
    ("requester",      "Requester"),
    ("category",       "Category"),
    ("priority",       "Priority"),
    ("status",         "Status"),
    ("assigned_team",  "Team"),
    ("assigned_agent", "Agent"),
    ("sla_policy",     "SLA Policy"),
    ("resolution_due", "Resolution Due"),
    ("sla_breached",   "SLA Breached"),
    ("estimated_cost", "Est. Cost"),
]

PRIORITY_COLUMN = 6   # 1-based column of "Priority"


def _fmt(dt, pattern="%Y-%m-%d %H:%M"):
    return timezone.localtime(dt).strftime(pattern) if dt else ""


def ticket_row(ticket) -> list:
    return [
        ticket.ticket_number,
        _fmt(ticket.created_at),
        ticket.subject,
        ticket.requester.full_name if ticket.requester_id else "",
        ticket.category.name if ticket.category_id else "",
        PRIORITY_LABELS.get(ticket.priority, ticket.priority),
        ticket.get_status_display(),
        ticket.assigned_team.name if ticket.assigned_team_id else "",
        ticket.assigned_agent.full_name if ticket.assigned_agent_id else "",
        ticket.sla_policy.name if ticket.sla_policy_id else "",
        _fmt(ticket.resolution_due_at),
        "Yes" if ticket.sla_breached else "No",
        f"{ticket.estimated_cost:.2f}" if ticket.estimated_cost is not None else "",
    ]


def _rows(tickets):
    return tickets.select_related(
        "requester", "category", "assigned_team", "assigned_agent", "sla_policy",
    )


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def export_csv(tickets, stream) -> int:
    """Write *tickets* to the text *stream*; returns the number of rows."""
    writer = csv.writer(stream)
    writer.writerow([label for _, label in EXPORT_COLUMNS])
    count = 0
    for ticket in _rows(tickets):
        writer.writerow(ticket_row(ticket))
        count += 1
    return count


# ---------------------------------------------------------------------------
# XLSX
# ---------------------------------------------------------------------------

def export_xlsx(tickets, title="Help Desk Ticket Export") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Tickets"

    # ── Colour palette
    NAVY   = "08111F"
    GOLD   = "C9A84C"
    WHITE  = "EEF2F8"
    STEEL  = "1E3358"

    last_col = get_column_letter(len(EXPORT_COLUMNS))

    # ── Title row
    ws.merge_cells(f"A1:{last_col}1")
    title_cell = ws["A1"]
    title_cell.value     = title
    title_cell.font      = Font(name="Calibri", bold=True, size=14, color=WHITE)
    title_cell.fill      = PatternFill("solid", fgColor=NAVY)
    title_cell.alignment = Alignment(horizontal="center", vertical="center")
    ws.row_dimensions[1].height = 28

    # ── Header row
    header_font   = Font(name="Calibri", bold=True, size=10, color=GOLD)
    header_fill   = PatternFill("solid", fgColor=STEEL)
    header_border = Border(bottom=Side(style="thin", color=GOLD))
    for col_idx, (_, label) in enumerate(EXPORT_COLUMNS, start=1):
        cell = ws.cell(row=2, column=col_idx, value=label)
        cell.font      = header_font
        cell.fill      = header_fill
        cell.border    = header_border
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    # ── Data rows, priority cell tinted
    PRIORITY_FILLS = {
        "Critical": PatternFill("solid", fgColor="F8D7DA"),
        "High":     PatternFill("solid", fgColor="FFE5B4"),
        "Medium":   PatternFill("solid", fgColor="DCE8F7"),
        "Low":      PatternFill("solid", fgColor="EEF2F8"),
    }
    row_idx = 2
    for row_idx, ticket in enumerate(_rows(tickets), start=3):
        row = ticket_row(ticket)
        for col_idx, value in enumerate(row, start=1):
            ws.cell(row=row_idx, column=col_idx, value=value)
        priority_cell = ws.cell(row=row_idx, column=PRIORITY_COLUMN)
        if row[PRIORITY_COLUMN - 1] in PRIORITY_FILLS:
            priority_cell.fill = PRIORITY_FILLS[row[PRIORITY_COLUMN - 1]]
            priority_cell.font = Font(name="Calibri", bold=True, size=10)

    # ── Column widths & frozen header
    widths = [12, 16, 40, 22, 18, 10, 12, 22, 22, 18, 16, 12, 12]
    for i, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width
    ws.freeze_panes = "A3"
    if row_idx > 2:
        ws.auto_filter.ref = f"A2:{last_col}{row_idx}"

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------

def export_pdf(tickets, title="Help Desk Ticket Report") -> bytes:
    tickets = list(_rows(tickets))

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(letter),
        leftMargin=0.5 * inch, rightMargin=0.5 * inch,
        topMargin=0.6 * inch,  bottomMargin=0.5 * inch,
        title=title,
    )

    NAVY  = colors.HexColor("#08111F")
    GOLD  = colors.HexColor("#C9A84C")
    STEEL = colors.HexColor("#1E3358")
    PRI_COLOURS = {
        "Critical": colors.HexColor("#F8D7DA"),
        "High":     colors.HexColor("#FFE5B4"),
        "Medium":   colors.HexColor("#DCE8F7"),
        "Low":      colors.HexColor("#EEF2F8"),
    }

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "title", parent=styles["Heading1"],
        textColor=colors.white, backColor=NAVY,
        fontSize=15, spaceAfter=4, spaceBefore=0, leftIndent=6,
    )
    sub_style = ParagraphStyle("sub", parent=styles["Normal"], textColor=STEEL,
                               fontSize=9, spaceAfter=10)

    story = [
        Paragraph(title, title_style),
        Paragraph(
            f"Generated: {timezone.localtime().strftime('%B %d, %Y at %I:%M %p')}  ·  "
            f"Total records: {len(tickets)}",
            sub_style,
        ),
        HRFlowable(width="100%", thickness=1, color=GOLD, spaceAfter=8),
    ]

    header = ["Ticket #", "Created", "Subject", "Requester", "Category",
              "Priority", "Status", "Team", "Agent", "SLA"]
    table_data = [header]
    for ticket in tickets:
        row = ticket_row(ticket)
        subject = row[2] if len(row[2]) <= 40 else row[2][:40] + "…"
        table_data.append([
            row[0], _fmt(ticket.created_at, "%m/%d/%Y"), subject, row[3][:20],
            row[4][:16], row[5], row[6], row[7][:20], row[8][:20],
            "Breached" if ticket.sla_breached else "",
        ])

    col_widths = [0.8, 0.75, 2.4, 1.2, 1.0, 0.65, 0.75, 1.1, 1.1, 0.65]
    tbl = Table(table_data, colWidths=[w * inch for w in col_widths], repeatRows=1)
    tbl_style = TableStyle([
        # Header
        ("BACKGROUND",    (0, 0), (-1, 0),  STEEL),
        ("TEXTCOLOR",     (0, 0), (-1, 0),  GOLD),
        ("FONTNAME",      (0, 0), (-1, 0),  "Helvetica-Bold"),
        ("FONTSIZE",      (0, 0), (-1, 0),  8),
        ("BOTTOMPADDING", (0, 0), (-1, 0),  8),
        # Data rows
        ("FONTNAME",      (0, 1), (-1, -1), "Helvetica"),
        ("FONTSIZE",      (0, 1), (-1, -1), 7.5),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F4F6FA")]),
        ("GRID",          (0, 0), (-1, -1), 0.4, colors.HexColor("#C8CED8")),
        ("VALIGN",        (0, 0), (-1, -1), "MIDDLE"),
    ])
    for row_idx, ticket in enumerate(tickets, start=1):
        label = PRIORITY_LABELS.get(ticket.priority)
        if label in PRI_COLOURS:
            tbl_style.add("BACKGROUND", (5, row_idx), (5, row_idx), PRI_COLOURS[label])
        if ticket.sla_breached:
            tbl_style.add("TEXTCOLOR", (9, row_idx), (9, row_idx), colors.red)
    tbl.setStyle(tbl_style)
    story.append(tbl)

    def on_page(canvas, doc):
        canvas.saveState()
        canvas.setFont("Helvetica", 7)
        canvas.setFillColor(STEEL)
        canvas.drawRightString(landscape(letter)[0] - 0.5 * inch, 0.3 * inch, f"Page {doc.page}")
        canvas.restoreState()

    doc.build(story, onFirstPage=on_page, onLaterPages=on_page)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# CSV IMPORT
# ---------------------------------------------------------------------------

@dataclass
class ImportResult:
    """
    Fields
    ------
    created   Tickets created, in file order.
    errors    (line number, {field: [messages]}) for every rejected row.
    """
    created: list = field(default_factory=list)
    errors:  list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def error_report(self) -> str:
        lines = []
        for line_no, errors in self.errors:
            details = "; ".join(
                f"{name}: {' '.join(messages)}" for name, messages in errors.items()
            )
            lines.append(f"Line {line_no}: {details}")
        return "\n".join(lines)


def import_csv(stream, actor=None, dry_run=False) -> ImportResult:
    """
    Create one ticket per valid row of the CSV text *stream*. Invalid rows
    are reported and skipped; valid rows are still imported.
    """
    result = ImportResult()
    reader = csv.DictReader(stream)
    for line_no, row in enumerate(reader, start=2):
        row = {k.strip(): (v or "").strip() for k, v in row.items() if k}
        form = TicketImportForm(row)
        if not form.is_valid():
            result.errors.append((line_no, {k: list(v) for k, v in form.errors.items()}))
            continue
        if dry_run:
            continue
        result.created.append(create_ticket(form.ticket_data(), actor=actor))

    logger.info(
        "CSV import: %d created, %d rejected%s",
        len(result.created), len(result.errors), " (dry run)" if dry_run else "",
    )
    return result
