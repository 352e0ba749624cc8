"""
Request dependencies shared by the API routes.
"""

from fastapi import HTTPException, Request, status

from agileboard.core.sync import RecordingNotifier, SyncService

NOT_CONFIGURED_DETAIL = (
    "Backend not configured: set SUPABASE_URL and SUPABASE_KEY, "
    "or AGILEBOARD_BACKEND=local"
)


def get_service(request: Request) -> SyncService:
    """The app's service, whatever its configuration."""
    service: SyncService = request.app.state.service
    return service


def get_configured_service(request: Request) -> SyncService:
    """
    The app's service, provided a backend is configured.

    Raises:
        HTTPException: 503 when running without a backend
    """
    service = get_service(request)
    if not service.configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=NOT_CONFIGURED_DETAIL,
        )
    return service


def last_alert(service: SyncService, default: str = "Backend operation failed") -> str:
    """Most recent user-facing alert, used as the detail of a failed mutation."""
    notifier = service.notifier
    if isinstance(notifier, RecordingNotifier) and notifier.messages:
        return notifier.messages[-1]
    return default


def backend_failure(service: SyncService) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=last_alert(service))
