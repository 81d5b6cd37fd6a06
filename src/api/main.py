"""
FastAPI application for the Family Portal calendar.

This is the main entry point for the HTTP API, providing:
- Occurrence listing over a date window (recurring events expanded)
- Event management (create, update, delete) with role permissions
- Series-wide RSVPs
- iCalendar export
- Health endpoint
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, Query, Response
from fastapi.responses import JSONResponse

from src.api.dependencies import get_calendar_service, get_viewer
from src.api.middleware import RequestLoggingMiddleware
from src.api.models import (
    CreateEventRequest,
    UpdateEventRequest,
    RsvpRequest,
    HealthResponse,
    EventListResponse,
    EventResponse,
    RsvpResponse,
    ErrorResponse,
)
from src.database import check_connection
from src.exceptions import CalendarError
from src.logging_config import configure_logging
from src.services.calendar_service import CalendarExport, CalendarService
from src.services.records import Viewer

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    401: {"model": ErrorResponse, "description": "Missing or unknown X-User-ID"},
    403: {"model": ErrorResponse, "description": "Not allowed for this role"},
    404: {"model": ErrorResponse, "description": "Event not found (or hidden from you)"},
}


# =============================================================================
# Application Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    configure_logging()
    logger.info("Starting Family Portal calendar API")

    yield

    # Shutdown
    logger.info("Shutting down Family Portal calendar API")


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title="Family Portal Calendar API",
    description="""
# Family Portal Calendar API

Shared family calendar with recurring events, surprise events and RSVPs.

## Identity

Every request names the calling family member in the **X-User-ID** header.

## Recurring Events

A recurring event is stored once. **GET /events** expands it into every
occurrence that starts inside the requested window; each occurrence has a
stable `occurrenceId` and the series' `originalDate`. RSVPs apply to the
whole series.

## Surprise Events

Events can be hidden from selected members (`hiddenFromUserIds`). Hidden
events are absent from listings and answer **404** on direct access. Only the
creator and admins see the `hiddenFrom` list.

## Roles

- **ADMIN** - edit any event, set event images
- **MEMBER** - create events, edit own events, RSVP
- **CHILD** - read only

## Error Handling

Errors return `{"error_type", "message", "retryable"}`.

- **400** - Validation error (dates, category, recurrence rule, limits)
- **401** - Missing or unknown X-User-ID
- **403** - Not allowed for this role
- **404** - Event not found
- **422** - Malformed request body
- **500** - Server error
    """,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(CalendarError)
async def calendar_exception_handler(request, exc: CalendarError):
    """Render domain errors with their status and error type."""
    if exc.status_code >= 500:
        logger.error(f"Calendar error: {exc.message}")
    else:
        logger.info(f"{exc.error_type}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_type": exc.error_type,
            "message": exc.message,
            "retryable": exc.retryable,
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_type": "http_error",
            "message": exc.detail,
            "retryable": exc.status_code >= 500,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error_type": "internal_error",
            "message": "An unexpected error occurred",
            "retryable": True,
        },
    )


def _ics_response(export: CalendarExport) -> Response:
    return Response(
        content=export.content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


# =============================================================================
# Health & Status Endpoints
# =============================================================================


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    tags=["System"],
)
def health_check() -> HealthResponse:
    """
    Check API health status.

    Returns:
        Health status including database connectivity
    """
    database_connected = check_connection()

    return HealthResponse(
        status="healthy" if database_connected else "unhealthy",
        version=API_VERSION,
        database_connected=database_connected,
    )


# =============================================================================
# Event Endpoints
# =============================================================================


@app.get(
    "/events",
    response_model=EventListResponse,
    summary="List occurrences in a date range",
    description="""
List every event occurrence the caller may see whose start falls inside
[start, end] (both inclusive, ISO 8601). Recurring events are expanded;
results are sorted by start.
    """,
    responses=ERROR_RESPONSES,
    tags=["Events"],
)
def list_events(
    start: str = Query(..., description="Window start (ISO 8601, inclusive)"),
    end: str = Query(..., description="Window end (ISO 8601, inclusive)"),
    category: Optional[str] = Query(None, description="Filter by category"),
    viewer: Viewer = Depends(get_viewer),
    service: CalendarService = Depends(get_calendar_service),
) -> EventListResponse:
    events = service.list_events(viewer, start, end, category)
    return EventListResponse(events=events, total=len(events))


@app.post(
    "/events",
    response_model=EventResponse,
    status_code=201,
    summary="Create event",
    responses=ERROR_RESPONSES,
    tags=["Events"],
)
def create_event(
    request: CreateEventRequest,
    viewer: Viewer = Depends(get_viewer),
    service: CalendarService = Depends(get_calendar_service),
) -> EventResponse:
    """
    Create an event owned by the caller.

    Children cannot create events; only admins may set an image.
    """
    event = service.create_event(viewer, request.model_dump(exclude_unset=True))
    return EventResponse(event=event)


# Declared before /events/{event_id} so "export" is not parsed as an event ID
@app.get(
    "/events/export",
    summary="Export calendar (.ics)",
    description="Download visible events as iCalendar. With start and end, only events occurring in that window.",
    response_class=Response,
    responses={200: {"content": {"text/calendar": {}}}, **ERROR_RESPONSES},
    tags=["Export"],
)
def export_calendar(
    start: Optional[str] = Query(None, description="Window start (ISO 8601)"),
    end: Optional[str] = Query(None, description="Window end (ISO 8601)"),
    category: Optional[str] = Query(None, description="Filter by category"),
    viewer: Viewer = Depends(get_viewer),
    service: CalendarService = Depends(get_calendar_service),
) -> Response:
    return _ics_response(service.export_calendar(viewer, start, end, category))


@app.get(
    "/events/{event_id}",
    response_model=EventResponse,
    summary="Get event details",
    responses=ERROR_RESPONSES,
    tags=["Events"],
)
def get_event(
    event_id: uuid.UUID,
    viewer: Viewer = Depends(get_viewer),
    service: CalendarService = Depends(get_calendar_service),
) -> EventResponse:
    """Get an event with canEdit / canRsvp flags for the caller."""
    return EventResponse(event=service.get_event(viewer, event_id))


@app.put(
    "/events/{event_id}",
    response_model=EventResponse,
    summary="Update event",
    responses=ERROR_RESPONSES,
    tags=["Events"],
)
def update_event(
    event_id: uuid.UUID,
    request: UpdateEventRequest,
    viewer: Viewer = Depends(get_viewer),
    service: CalendarService = Depends(get_calendar_service),
) -> EventResponse:
    """
    Update an event (creator or admin).

    Only fields present in the body change.
    """
    event = service.update_event(viewer, event_id, request.model_dump(exclude_unset=True))
    return EventResponse(event=event)


@app.delete(
    "/events/{event_id}",
    status_code=204,
    response_class=Response,
    summary="Delete event",
    responses=ERROR_RESPONSES,
    tags=["Events"],
)
def delete_event(
    event_id: uuid.UUID,
    viewer: Viewer = Depends(get_viewer),
    service: CalendarService = Depends(get_calendar_service),
) -> Response:
    service.delete_event(viewer, event_id)
    return Response(status_code=204)


# =============================================================================
# RSVP Endpoints
# =============================================================================


@app.post(
    "/events/{event_id}/rsvp",
    response_model=RsvpResponse,
    summary="RSVP to event",
    description="Set the caller's response. For a recurring event it applies to every occurrence.",
    responses=ERROR_RESPONSES,
    tags=["RSVP"],
)
def set_rsvp(
    event_id: uuid.UUID,
    request: RsvpRequest,
    viewer: Viewer = Depends(get_viewer),
    service: CalendarService = Depends(get_calendar_service),
) -> RsvpResponse:
    return RsvpResponse(rsvp=service.set_rsvp(viewer, event_id, request.status))


@app.delete(
    "/events/{event_id}/rsvp",
    status_code=204,
    response_class=Response,
    summary="Withdraw RSVP",
    responses=ERROR_RESPONSES,
    tags=["RSVP"],
)
def remove_rsvp(
    event_id: uuid.UUID,
    viewer: Viewer = Depends(get_viewer),
    service: CalendarService = Depends(get_calendar_service),
) -> Response:
    service.remove_rsvp(viewer, event_id)
    return Response(status_code=204)


@app.get(
    "/events/{event_id}/export",
    summary="Export event (.ics)",
    response_class=Response,
    responses={200: {"content": {"text/calendar": {}}}, **ERROR_RESPONSES},
    tags=["Export"],
)
def export_event(
    event_id: uuid.UUID,
    viewer: Viewer = Depends(get_viewer),
    service: CalendarService = Depends(get_calendar_service),
) -> Response:
    return _ics_response(service.export_event(viewer, event_id))


# =============================================================================
# Run with Uvicorn
# =============================================================================


def run_server(host: Optional[str] = None, port: Optional[int] = None, reload: Optional[bool] = None):
    """Run the API server with Uvicorn (defaults from settings)."""
    import uvicorn

    from src.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "src.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=settings.api_reload if reload is None else reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run_server()
