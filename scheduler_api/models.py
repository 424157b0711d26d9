"""
Pydantic models for API request/response validation.
Auto-generates OpenAPI documentation.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Task rows
# ---------------------------------------------------------------------------

class TaskRecord(BaseModel):
    """One row of the task table: a workflow header (Step_ID 0) or a task."""
    Key: int
    Delivery_code: Optional[str] = None
    DelCode_w_o__: Optional[str] = None
    Step_ID: Optional[int] = None
    Task_Details: Optional[str] = None
    Frequency___Timeline: Optional[str] = None
    Client: Optional[str] = None
    Short_Description: Optional[str] = None
    Planned_Start_Timestamp: Optional[datetime] = None
    Planned_Delivery_Timestamp: Optional[datetime] = None
    Responsibility: Optional[str] = None
    Current_Status: Optional[str] = None
    Email: Optional[str] = None
    Emails: Optional[str] = None
    Total_Tasks: Optional[int] = None
    Completed_Tasks: Optional[int] = None
    Planned_Tasks: Optional[int] = None
    Percent_Tasks_Completed: Optional[float] = None
    Created_at: Optional[str] = None
    Updated_at: Optional[str] = None
    Time_Left_For_Next_Task_dd_hh_mm_ss: Optional[str] = None
    Card_Corner_Status: Optional[str] = None


class SliderEntry(BaseModel):
    """A per-day time allocation chosen in the UI."""
    day: str
    duration: int
    slot: str
    personResponsible: Optional[str] = None


class TaskUpsertRequest(TaskRecord):
    """POST /api/post body: the task row plus its slider allocations."""
    sliders: List[SliderEntry] = Field(default_factory=list)


class TaskUpdateRequest(BaseModel):
    """PUT /api/data/{key} body. Only provided fields are written."""
    taskName: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    assignTo: Optional[str] = None
    status: Optional[str] = None
    client: Optional[str] = None
    totalTasks: Optional[int] = None
    plannedTasks: Optional[int] = None
    completedTasks: Optional[int] = None


class DeliveryCountsUpdate(BaseModel):
    newPlannedTasks: Optional[int] = None
    newTotalTasks: Optional[int] = None


# ---------------------------------------------------------------------------
# Admin edits
# ---------------------------------------------------------------------------

class ReassignRequest(BaseModel):
    Responsibility: str
    Emails: Optional[str] = None
    Email: Optional[str] = None


class DeadlineRequest(BaseModel):
    Planned_Delivery_Timestamp: datetime
    Planned_Start_Timestamp: Optional[datetime] = None


class StatusRequest(BaseModel):
    Current_Status: str


class PersonEmailUpdate(BaseModel):
    Email: str


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class MessageResponse(BaseModel):
    message: str


class UpsertResponse(BaseModel):
    message: str
    taskAction: str
    slidersInserted: int
    slidersUpdated: int


class AccessResponse(BaseModel):
    email: str
    isAdmin: bool


class AdminListResponse(BaseModel):
    source: str
    count: int


class PerKeyGroup(BaseModel):
    """Slider rows of one task and their summed duration."""
    totalDuration: float
    entries: List[Dict[str, Any]]


class PerPersonGroup(BaseModel):
    """Minutes allocated to one person, by day."""
    totalDuration: float
    days: Dict[str, float]


class HealthResponse(BaseModel):
    """API health check response."""
    service: str
    version: str
    status: str
    project: str
    dataset: str
