"""
Export Service: CSV and PDF renderings of the change log.

CSV: fixed 20-column layout, exactly one line per log.
PDF: landscape table with a 7-column summary, drawn with matplotlib.
Rendering is synchronous and pyplot-free; async callers run it via asyncio.to_thread.
"""

import csv
import io
import logging
from datetime import datetime
from typing import Optional

from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.figure import Figure

from changetracker.schemas import AccountOut, ChangeLogOut, PerformanceMetrics, UserOut
from changetracker.utils import truncate

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

CSV_HEADERS = [
    "ID", "Date of Change", "Account Name", "Campaign Name", "Category", "Description", "Reason",
    "Expected Impact",
    "Pre-CTR", "Pre-CPC", "Pre-ConvRate", "Pre-CPA",
    "Post-CTR", "Post-CPC", "Post-ConvRate", "Post-CPA",
    "Result", "Result Summary", "Logged By", "Review Date",
]

PDF_HEADERS = ["Date", "Account", "Campaign", "Category", "Description", "Result", "Logged By"]
PDF_DESCRIPTION_LENGTH = 50
PDF_ROWS_PER_PAGE = 25
PDF_COLUMN_WIDTHS = [0.09, 0.15, 0.17, 0.11, 0.30, 0.08, 0.10]
# A4 landscape, inches
PDF_PAGE_SIZE = (11.69, 8.27)


def _metric_cells(metrics: Optional[PerformanceMetrics]) -> list:
    if metrics is None:
        return ["", "", "", ""]
    return ["" if v is None else v for v in (metrics.ctr, metrics.cpc, metrics.conv_rate, metrics.cpa)]


def _lookups(accounts: list[AccountOut], users: list[UserOut]) -> tuple[dict[str, str], dict[str, str]]:
    return {a.id: a.name for a in accounts}, {u.id: u.name for u in users}


def _single_line(text: Optional[str]) -> str:
    """Collapse any line breaks (\\n, \\r\\n, \\r, ...) in free text to single spaces."""
    return " ".join((text or "").splitlines())


def build_change_log_csv(logs: list[ChangeLogOut], accounts: list[AccountOut], users: list[UserOut]) -> str:
    """Render logs as CSV text: header plus exactly one line per log, no trailing newline.

    Line breaks inside free text are flattened to spaces. Fields with commas or
    quotes are quoted; embedded quotes are doubled.
    """
    account_names, user_names = _lookups(accounts, users)
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")

    writer.writerow(CSV_HEADERS)
    for log in logs:
        writer.writerow([
            log.id,
            log.date_of_change.isoformat(),
            _single_line(account_names.get(log.account_id, NOT_AVAILABLE)),
            _single_line(log.campaign_name),
            log.category.value,
            _single_line(log.description),
            _single_line(log.reason),
            log.expected_impact.value,
            *_metric_cells(log.pre_change_metrics),
            *_metric_cells(log.post_change_metrics),
            log.result.value,
            _single_line(log.result_summary),
            _single_line(user_names.get(log.logged_by_id, NOT_AVAILABLE)),
            log.next_review_date.isoformat() if log.next_review_date else "",
        ])

    return output.getvalue().rstrip("\n")


def pdf_rows(logs: list[ChangeLogOut], accounts: list[AccountOut], users: list[UserOut]) -> list[list[str]]:
    """The 7-column summary rows shown in the PDF report."""
    account_names, user_names = _lookups(accounts, users)
    return [
        [
            log.date_of_change.isoformat(),
            account_names.get(log.account_id, NOT_AVAILABLE),
            log.campaign_name,
            log.category.value,
            truncate(_single_line(log.description), PDF_DESCRIPTION_LENGTH),
            log.result.value,
            user_names.get(log.logged_by_id, NOT_AVAILABLE),
        ]
        for log in logs
    ]


def _draw_page(pdf: PdfPages, title: str, rows: list[list[str]], page: int, pages: int) -> None:
    fig = Figure(figsize=PDF_PAGE_SIZE)
    ax = fig.add_subplot()
    ax.axis("off")
    ax.set_title(title, fontsize=14, fontweight="bold", loc="left", color="#0f2942")
    fig.text(0.95, 0.03, f"Page {page} of {pages}", ha="right", fontsize=8, color="#233647")

    table = ax.table(
        cellText=rows or [[""] * len(PDF_HEADERS)],
        colLabels=PDF_HEADERS,
        colWidths=PDF_COLUMN_WIDTHS,
        cellLoc="left",
        colLoc="left",
        loc="upper center",
    )
    table.auto_set_font_size(False)
    table.set_fontsize(7)
    table.scale(1, 1.4)
    for (row, _col), cell in table.get_celld().items():
        cell.set_edgecolor("#b8c7db")
        if row == 0:
            cell.set_facecolor("#4285F4")
            cell.set_text_props(color="white", fontweight="bold")

    pdf.savefig(fig)


def build_change_log_pdf(
    logs: list[ChangeLogOut],
    accounts: list[AccountOut],
    users: list[UserOut],
    generated_at: Optional[datetime] = None,
) -> bytes:
    """Render the landscape change-log report, paginated, as PDF bytes."""
    rows = pdf_rows(logs, accounts, users)
    stamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M")
    title = f"Change Log Report: {len(rows)} change(s), generated {stamp}"

    chunks = [rows[i:i + PDF_ROWS_PER_PAGE] for i in range(0, len(rows), PDF_ROWS_PER_PAGE)] or [[]]
    buf = io.BytesIO()
    with PdfPages(buf) as pdf:
        for page, chunk in enumerate(chunks, start=1):
            _draw_page(pdf, title, chunk, page, len(chunks))
        info = pdf.infodict()
        info["Title"] = "Change Log Report"
    logger.info(f"PDF export rendered: {len(rows)} row(s), {len(chunks)} page(s)")
    return buf.getvalue()
