"""Export service - CSV and Excel downloads of access review data"""

import io
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from saas_control.core.exceptions import ValidationError
from saas_control.repositories.interfaces import DirectoryStore
from saas_control.schemas.access_review import CampaignResponse, CampaignStatus
from saas_control.schemas.audit import AuditObjectType
from saas_control.services.access_review_service import AccessReviewService
from saas_control.services.audit_service import AuditContext, AuditService
from saas_control.utils.format import PLACEHOLDER, format_date, format_percent

logger = logging.getLogger(__name__)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SUPPORTED_FORMATS = ("csv", "xlsx")

Row = Mapping[str, Any]
Accessor = Union[str, Callable[[Row], Any]]


@dataclass(frozen=True)
class CsvColumn:
    header: str
    accessor: Accessor

    def value(self, row: Row) -> Any:
        if callable(self.accessor):
            return self.accessor(row)
        return row.get(self.accessor)


@dataclass
class ExportFile:
    filename: str
    media_type: str
    content: bytes
    row_count: int


def escape_csv(value: Any) -> str:
    """
    Render one cell for CSV output

    None becomes empty, dates become ISO 8601, booleans become Yes/No and
    non-finite numbers become empty. Text containing a comma, quote, CR or LF
    is quoted with embedded quotes doubled.
    """
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return ""
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, int):
        return str(value)

    text = str(value)
    if any(ch in text for ch in (",", '"', "\n", "\r")):
        return '"' + text.replace('"', '""') + '"'
    return text


def generate_csv(rows: Sequence[Row], columns: Sequence[CsvColumn]) -> str:
    header = ",".join(escape_csv(col.header) for col in columns)
    lines = [",".join(escape_csv(col.value(row)) for col in columns) for row in rows]
    return "\n".join([header, *lines])


def generate_filename(prefix: str, ext: str = "csv", now: Optional[datetime] = None) -> str:
    """<prefix>_<YYYYMMDDTHHMMSS>.<ext> in UTC"""
    now = now or datetime.now(timezone.utc)
    return f"{prefix}_{now.astimezone(timezone.utc).strftime('%Y%m%dT%H%M%S')}.{ext}"


def _xlsx_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, datetime):
        # Excel has no timezone support
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return value


def build_workbook(rows: Sequence[Row], columns: Sequence[CsvColumn], title: str) -> bytes:
    """Single-sheet workbook with a styled header row"""
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    ws.append([col.header for col in columns])

    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for row in rows:
        ws.append([_xlsx_value(col.value(row)) for col in columns])

    # Auto-adjust column widths
    for column in ws.columns:
        column_letter = column[0].column_letter
        max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
        ws.column_dimensions[column_letter].width = min(max_length + 2, 50)

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


DECISION_COLUMNS = [
    CsvColumn("Campaign ID", "campaign_id"),
    CsvColumn("Campaign Name", "campaign_name"),
    CsvColumn("User Name", "user_name"),
    CsvColumn("User Email", "user_email"),
    CsvColumn("Department", "user_department"),
    CsvColumn("Application", "application_name"),
    CsvColumn("Category", "application_category"),
    CsvColumn("Risk Level", "risk_level"),
    CsvColumn("Access Level", "access_level"),
    CsvColumn("Last Login", "last_login"),
    CsvColumn("Decision", "decision"),
    CsvColumn("Decided By", "decided_by"),
    CsvColumn("Decided At", "decided_at"),
    CsvColumn("Rationale", "rationale"),
]

CAMPAIGN_COLUMNS = [
    CsvColumn("Campaign ID", "id"),
    CsvColumn("Name", "name"),
    CsvColumn("Status", "status"),
    CsvColumn("Due Date", lambda row: format_date(row.get("due_date"), placeholder="")),
    CsvColumn("Tasks Total", "tasks_total"),
    CsvColumn("Tasks Completed", "tasks_completed"),
    CsvColumn("Completion", lambda row: format_percent(row.get("completion_percent"))),
]


class ExportService:
    """Builds downloadable exports and audits every one of them"""

    def __init__(
        self,
        access_reviews: AccessReviewService,
        directory: DirectoryStore,
        audit: AuditService,
        max_rows: int = 50000,
    ):
        self.access_reviews = access_reviews
        self.directory = directory
        self.audit = audit
        self.max_rows = max_rows

    def _check_size(self, rows: Sequence[Row]) -> None:
        if len(rows) > self.max_rows:
            raise ValidationError(
                f"Export too large: {len(rows)} rows (limit {self.max_rows})",
                details={"row_count": len(rows), "max_rows": self.max_rows},
            )

    @staticmethod
    def _check_format(fmt: str) -> str:
        fmt = (fmt or "csv").lower()
        if fmt not in SUPPORTED_FORMATS:
            raise ValidationError(f"Unsupported export format '{fmt}'", details={"allowed": list(SUPPORTED_FORMATS)})
        return fmt

    @staticmethod
    def _render(rows: List[Dict[str, Any]], columns: Sequence[CsvColumn], prefix: str, fmt: str, title: str) -> ExportFile:
        if fmt == "xlsx":
            return ExportFile(
                filename=generate_filename(prefix, "xlsx"),
                media_type=XLSX_MEDIA_TYPE,
                content=build_workbook(rows, columns, title),
                row_count=len(rows),
            )
        return ExportFile(
            filename=generate_filename(prefix, "csv"),
            media_type=CSV_MEDIA_TYPE,
            content=generate_csv(rows, columns).encode("utf-8"),
            row_count=len(rows),
        )

    def campaign_decision_rows(self, campaign: CampaignResponse) -> List[Dict[str, Any]]:
        decisions = self.access_reviews.get_decisions(campaign.id)
        access = self.directory.access_for_pairs((d.user_id, d.application_id) for d in decisions)

        rows = []
        for d in decisions:
            grant = access.get((d.user_id, d.application_id))
            rows.append({
                "campaign_id": d.campaign_id,
                "campaign_name": campaign.name,
                "user_name": d.user.name if d.user else "",
                "user_email": d.user.email if d.user else "",
                "user_department": (d.user.department or "") if d.user else "",
                "application_name": d.application.name if d.application else "",
                "application_category": d.application.category if d.application else "",
                "risk_level": d.application.risk_level if d.application else "",
                "access_level": grant.access_level if grant and grant.access_level else PLACEHOLDER,
                "last_login": format_date(grant.last_login if grant else None),
                "decision": d.decision.value,
                "decided_by": d.decided_by or "",
                "decided_at": d.decided_at,
                "rationale": d.rationale or "",
            })
        return rows

    def export_campaign_decisions(self, ctx: AuditContext, campaign_id: str, fmt: str = "csv") -> ExportFile:
        fmt = self._check_format(fmt)
        campaign = self.access_reviews.require_campaign(campaign_id)
        rows = self.campaign_decision_rows(campaign)
        self._check_size(rows)

        export = self._render(rows, DECISION_COLUMNS, f"access_review_{campaign_id}", fmt, "Decisions")
        self.audit.emit_export(
            ctx,
            AuditObjectType.CAMPAIGN,
            fmt,
            export.row_count,
            {"campaign_id": campaign_id, "campaign_name": campaign.name},
        )
        logger.info(f"Exported {export.row_count} decisions for campaign {campaign_id} as {fmt}")
        return export

    def export_campaigns(
        self, ctx: AuditContext, status: Optional[CampaignStatus] = None, fmt: str = "csv"
    ) -> ExportFile:
        fmt = self._check_format(fmt)
        campaigns = self.access_reviews.get_all_campaigns(status)
        rows = [c.model_dump(mode="python") for c in campaigns]
        for row in rows:
            row["status"] = row["status"].value
        self._check_size(rows)

        export = self._render(rows, CAMPAIGN_COLUMNS, "access_review_campaigns", fmt, "Campaigns")
        self.audit.emit_export(
            ctx,
            AuditObjectType.CAMPAIGN,
            fmt,
            export.row_count,
            {"status": status.value} if status else None,
        )
        logger.info(f"Exported {export.row_count} campaigns as {fmt}")
        return export
