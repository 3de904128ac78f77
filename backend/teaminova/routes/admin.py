"""
Administrator routes: the recent error log kept by the ErrorReporter.
"""

from fastapi import APIRouter, Depends, status

from teaminova.error_reporting import ErrorLog, ErrorReporter, get_error_reporter
from teaminova.exceptions import NotFoundError
from teaminova.schemas import ErrorLogView
from teaminova.services import authorization
from teaminova.services.authorization import ViewerContext
from teaminova.routes.deps import get_viewer

router = APIRouter()


def _require_admin(viewer: ViewerContext) -> None:
    authorization.require(authorization.can_manage_users(viewer), "view error logs", viewer)


def _to_view(index: int, entry: ErrorLog) -> ErrorLogView:
    return ErrorLogView(
        index=index,
        timestamp=entry.timestamp,
        severity=entry.severity.value,
        category=entry.category.value,
        message=entry.message,
        user_id=entry.user_id,
        context=entry.context,
        resolved=entry.resolved,
    )


@router.get("/error-logs", response_model=list[ErrorLogView])
async def list_error_logs(
    viewer: ViewerContext = Depends(get_viewer),
    reporter: ErrorReporter = Depends(get_error_reporter),
) -> list[ErrorLogView]:
    """Recent error reports, newest first."""
    _require_admin(viewer)
    return [_to_view(index, entry) for index, entry in enumerate(reporter.recent())]


@router.post("/error-logs/{index}/resolve", response_model=ErrorLogView)
async def resolve_error_log(
    index: int,
    viewer: ViewerContext = Depends(get_viewer),
    reporter: ErrorReporter = Depends(get_error_reporter),
) -> ErrorLogView:
    _require_admin(viewer)
    try:
        entry = reporter.resolve(index)
    except IndexError:
        raise NotFoundError("Error log", str(index)) from None
    return _to_view(index, entry)


@router.delete("/error-logs", status_code=status.HTTP_204_NO_CONTENT)
async def clear_error_logs(
    viewer: ViewerContext = Depends(get_viewer),
    reporter: ErrorReporter = Depends(get_error_reporter),
) -> None:
    _require_admin(viewer)
    reporter.clear()
