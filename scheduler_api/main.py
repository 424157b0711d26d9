"""
FastAPI application for the Scheduler Task API.

Exposes the BigQuery task tables via HTTP endpoints with auto-generated
OpenAPI documentation at /docs.
"""

from functools import lru_cache
from typing import Dict, List, Optional
import logging

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from utils import log

from .access import AdminDirectory, parse_emails
from .config import settings
from .data_access import TaskDataProvider
from .errors import AccessListError, NotFoundError
from .models import (
    AccessResponse,
    AdminListResponse,
    DeadlineRequest,
    DeliveryCountsUpdate,
    HealthResponse,
    MessageResponse,
    PerKeyGroup,
    PerPersonGroup,
    PersonEmailUpdate,
    ReassignRequest,
    StatusRequest,
    TaskUpdateRequest,
    TaskUpsertRequest,
    UpsertResponse,
)
from .sheets import SheetsClient
from .warehouse import WarehouseClient

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Enable CORS for the scheduler UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=settings.CORS_METHODS,
    allow_headers=["*"],
)


# ----------------------------------------------------------------
# Dependencies
# ----------------------------------------------------------------

@lru_cache()
def get_warehouse() -> WarehouseClient:
    return WarehouseClient()


@lru_cache()
def get_sheets() -> Optional[SheetsClient]:
    if not settings.SHEET_ID:
        return None
    return SheetsClient()


@lru_cache()
def get_data() -> TaskDataProvider:
    return TaskDataProvider(get_warehouse(), settings, sheets=get_sheets())


@lru_cache()
def get_admins() -> AdminDirectory:
    return AdminDirectory(settings, warehouse=get_warehouse(), sheets=get_sheets())


def check_admin(admins: AdminDirectory, email: Optional[str]) -> bool:
    """Admin membership, with a broken allow-list surfaced as a 500."""
    try:
        return admins.is_admin(email)
    except AccessListError as e:
        raise HTTPException(status_code=500, detail=str(e))


def require_admin(
    email: Optional[str] = Query(None, description="Requester email"),
    admins: AdminDirectory = Depends(get_admins)
) -> str:
    """Dependency gating admin-only routes."""
    if not check_admin(admins, email):
        logger.warning(f"Admin route refused for {email!r}")
        raise HTTPException(status_code=403, detail="Admin access required")
    return email


# ----------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------

@app.on_event("startup")
def startup_event():
    """Print the configuration banner and attach the file logger."""
    log.setup_verbose_logging("scheduler_api")
    log.header(f"{settings.API_TITLE} v{settings.API_VERSION}")
    log.summary_table("Configuration", settings.summary())
    if not (settings.PROJECT_ID and settings.DATASET and settings.TASK_TABLE):
        log.err("GOOGLE_PROJECT_ID, BIGQUERY_DATASET or BIGQUERY_TABLE is not set")
    elif settings.ADMIN_SOURCE == "static" and not settings.ADMIN_EMAILS:
        log.warn("ADMIN_SOURCE=static with an empty ADMIN_EMAILS list, nobody is an admin")
    else:
        log.ok(f"Serving {settings.table(settings.TASK_TABLE)}")


@app.on_event("shutdown")
def shutdown_event():
    """Close the BigQuery client on shutdown."""
    get_warehouse().close()
    logger.info("BigQuery client closed")


# ----------------------------------------------------------------
# Health & Access
# ----------------------------------------------------------------

@app.get("/", response_model=HealthResponse, tags=["Health"])
def root():
    """API health check and configured dataset."""
    return {
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "status": "healthy",
        "project": settings.PROJECT_ID,
        "dataset": settings.DATASET,
    }


@app.get("/api/access", response_model=AccessResponse, tags=["Access"])
def get_access(
    email: str = Query(..., description="Email to check"),
    admins: AdminDirectory = Depends(get_admins)
):
    """Whether `email` is on the admin allow-list."""
    return {"email": email.strip().lower(), "isAdmin": check_admin(admins, email)}


@app.post("/api/admin/refresh", response_model=AdminListResponse, tags=["Access"])
def refresh_admins(
    _: str = Depends(require_admin),
    admins: AdminDirectory = Depends(get_admins)
):
    """Reload the admin allow-list from its source."""
    try:
        emails = admins.refresh()
    except AccessListError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"source": admins.source, "count": len(emails)}


# ----------------------------------------------------------------
# Persons
# ----------------------------------------------------------------

@app.get("/api/persons", response_model=List[str], tags=["Persons"])
def get_persons(data: TaskDataProvider = Depends(get_data)):
    """Distinct task owners (Responsibility)."""
    try:
        return data.get_persons()
    except Exception as e:
        logger.error(f"Error fetching persons: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/person-emails", response_model=Dict[str, str], tags=["Persons"])
def get_person_emails(data: TaskDataProvider = Depends(get_data)):
    """Person -> email mapping from the spreadsheet."""
    try:
        return data.get_person_emails()
    except Exception as e:
        logger.error(f"Error reading person/email mapping: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.put("/api/person-emails/{person}", response_model=MessageResponse, tags=["Persons"])
def set_person_email(
    person: str,
    body: PersonEmailUpdate,
    _: str = Depends(require_admin),
    data: TaskDataProvider = Depends(get_data)
):
    """Write one person's email into the spreadsheet (admin only)."""
    try:
        target = data.set_person_email(person, body.Email)
        return {"message": f"Mapping for {person} written to {target}."}
    except Exception as e:
        logger.error(f"Error writing mapping for {person}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


# ----------------------------------------------------------------
# Tasks
# ----------------------------------------------------------------

@app.get("/api/data", tags=["Tasks"])
def get_tasks(
    email: Optional[str] = Query(None, description="Requester email(s), comma-separated"),
    delCode: Optional[str] = Query(None, description="Delivery code for the detail view"),
    limit: Optional[int] = Query(None, ge=1, description="Page size for the delivery list"),
    offset: int = Query(0, ge=0, description="Page offset for the delivery list"),
    client: Optional[str] = Query(None, description="Filter headers by client"),
    status: Optional[str] = Query(None, description="Filter headers by status"),
    responsibility: Optional[str] = Query(None, description="Filter headers by owner"),
    planned_from: Optional[str] = Query(None, alias="from", description="Planned delivery on/after (ISO timestamp)"),
    planned_to: Optional[str] = Query(None, alias="to", description="Planned delivery on/before (ISO timestamp)"),
    data: TaskDataProvider = Depends(get_data),
    admins: AdminDirectory = Depends(get_admins)
):
    """
    Task rows grouped by delivery code.

    **List view** (no delCode): workflow headers (Step_ID 0). Admins see
    every workflow; other users only workflows whose rows mention them.

    **Detail view** (delCode): admins get every row of the workflow;
    other users get the header plus the tasks assigned to them.
    """
    if not email:
        raise HTTPException(status_code=400, detail="Email is required for non-admin requests")

    is_admin = check_admin(admins, email)
    emails = parse_emails(email)
    logger.info(f"/api/data: request from {email}, admin={is_admin}, delCode={delCode}")

    if not is_admin and not delCode and not emails:
        raise HTTPException(
            status_code=400,
            detail="No valid email addresses provided for non-admin request."
        )

    filters = {
        "client": client,
        "status": status,
        "responsibility": responsibility,
        "planned_from": planned_from,
        "planned_to": planned_to,
    }

    try:
        return data.get_tasks(
            emails=emails,
            is_admin=is_admin,
            del_code=delCode,
            limit=limit or settings.DEFAULT_PAGE_SIZE,
            offset=offset,
            filters=filters,
        )
    except Exception as e:
        logger.error(f"Error querying tasks: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/post", response_model=UpsertResponse, tags=["Tasks"])
def upsert_task(body: TaskUpsertRequest, data: TaskDataProvider = Depends(get_data)):
    """Insert or update a task and its daily slider allocations."""
    if not body.sliders:
        raise HTTPException(status_code=400, detail="Slider data is mandatory.")

    try:
        result = data.upsert_task(body)
        return {"message": "Task and slider data stored or updated successfully.", **result}
    except Exception as e:
        logger.error(f"Error storing task {body.Key}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.put("/api/data/{key}", response_model=MessageResponse, tags=["Tasks"])
def update_task(key: int, body: TaskUpdateRequest, data: TaskDataProvider = Depends(get_data)):
    """Update the provided fields of one task."""
    try:
        data.update_task(key, body)
        return {"message": "Task updated successfully."}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating task {key}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.delete("/api/data/{deliveryCode}", response_model=MessageResponse, tags=["Tasks"])
def delete_delivery(deliveryCode: str, data: TaskDataProvider = Depends(get_data)):
    """Delete every task of a workflow, with their slider rows."""
    try:
        deleted = data.delete_delivery(deliveryCode)
        return {"message": f"Deleted {deleted} task(s) with delivery code {deliveryCode}."}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error deleting delivery {deliveryCode}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.put("/api/delivery_counts/{delCode}", response_model=MessageResponse, tags=["Tasks"])
def update_delivery_counts(
    delCode: str,
    body: DeliveryCountsUpdate,
    data: TaskDataProvider = Depends(get_data)
):
    """Update Planned_Tasks / Total_Tasks on a workflow header."""
    try:
        data.update_delivery_counts(delCode, body.newPlannedTasks, body.newTotalTasks)
        return {"message": "Delivery task counts updated successfully."}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating counts for {delCode}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


# ----------------------------------------------------------------
# Durations
# ----------------------------------------------------------------

@app.get("/api/per-key-per-day", response_model=Dict[str, PerKeyGroup], tags=["Durations"])
def get_per_key_per_day(
    key: Optional[int] = Query(None, description="Restrict to one task Key"),
    data: TaskDataProvider = Depends(get_data)
):
    """Slider rows grouped by task Key with their total duration."""
    try:
        return data.get_per_key_per_day(key)
    except Exception as e:
        logger.error(f"Error querying per-key durations: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/per-person-per-day", response_model=Dict[str, PerPersonGroup], tags=["Durations"])
def get_per_person_per_day(
    person: Optional[str] = Query(None, description="Restrict to one person"),
    start: Optional[str] = Query(None, description="First day (YYYY-MM-DD)"),
    end: Optional[str] = Query(None, description="Last day (YYYY-MM-DD)"),
    data: TaskDataProvider = Depends(get_data)
):
    """Allocated minutes per person per day."""
    try:
        return data.get_per_person_per_day(person, start, end)
    except Exception as e:
        logger.error(f"Error querying per-person durations: {e}")
        raise HTTPException(status_code=500, detail=str(e))


# ----------------------------------------------------------------
# Admin edits
# ----------------------------------------------------------------

@app.put("/api/admin/data/{key}/reassign", response_model=MessageResponse, tags=["Admin"])
def reassign_task(
    key: int,
    body: ReassignRequest,
    _: str = Depends(require_admin),
    data: TaskDataProvider = Depends(get_data)
):
    """Move a task to another person."""
    try:
        data.reassign_task(key, body)
        return {"message": f"Task {key} reassigned to {body.Responsibility}."}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error reassigning task {key}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.put("/api/admin/deadline/{delCode}", response_model=MessageResponse, tags=["Admin"])
def update_deadline(
    delCode: str,
    body: DeadlineRequest,
    _: str = Depends(require_admin),
    data: TaskDataProvider = Depends(get_data)
):
    """Change the planned dates on a workflow header."""
    try:
        data.update_deadline(delCode, body)
        return {"message": f"Deadline for {delCode} updated."}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating deadline for {delCode}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.put("/api/admin/data/{key}/status", response_model=MessageResponse, tags=["Admin"])
def update_status(
    key: int,
    body: StatusRequest,
    _: str = Depends(require_admin),
    data: TaskDataProvider = Depends(get_data)
):
    """Set the status of a task."""
    try:
        data.update_status(key, body.Current_Status)
        return {"message": f"Status of task {key} set to {body.Current_Status}."}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating status of task {key}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level="info"
    )
