"""Export routes - CSV/XLSX downloads"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from typing import Optional

from saas_control.api.deps import actor_of, get_export_service, require_permission
from saas_control.core import permissions
from saas_control.schemas.access_review import CampaignStatus
from saas_control.schemas.auth import Session
from saas_control.services.export_service import ExportFile, ExportService

router = APIRouter()

can_export = require_permission(permissions.REPORTS_EXPORT)


def _download(export: ExportFile) -> Response:
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{export.filename}"',
            "X-Record-Count": str(export.row_count),
        },
    )


@router.get("/access-reviews")
def export_campaigns(
    status_filter: Optional[CampaignStatus] = Query(None, alias="status"),
    fmt: str = Query("csv", alias="format"),
    session: Session = Depends(can_export),
    exports: ExportService = Depends(get_export_service),
):
    """
    Download the campaign list

    Args:
        status_filter: Only campaigns in this status
        fmt: csv or xlsx
    """
    return _download(exports.export_campaigns(actor_of(session), status_filter, fmt))


@router.get("/access-reviews/{campaign_id}")
def export_campaign_decisions(
    campaign_id: str,
    fmt: str = Query("csv", alias="format"),
    session: Session = Depends(can_export),
    exports: ExportService = Depends(get_export_service),
):
    """
    Download every decision of one campaign

    Args:
        campaign_id: Campaign ID
        fmt: csv or xlsx
    """
    return _download(exports.export_campaign_decisions(actor_of(session), campaign_id, fmt))
