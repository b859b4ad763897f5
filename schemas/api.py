"""
Pydantic schemas for API request/response models
"""

from pydantic import AliasChoices, BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from models.base import LabeledIntEnum


def _label(value):
    if isinstance(value, LabeledIntEnum):
        return value.label
    return value


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, unhealthy")
    timestamp: datetime
    database_connected: bool
    running_flows: int = 0
    tracking_enabled: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "running_flows": 2,
                "tracking_enabled": True
            }
        }


# ============================================================================
# Stats Schemas
# ============================================================================

class StatsResponse(BaseModel):
    """Counts across every process"""
    processes_count: int
    active_processes: int
    total_flows: int
    flows_today: int
    running: int
    completed: int
    failed: int
    skipped: int
    failed_today: int
    by_category: Dict[str, int] = Field(default_factory=dict)
    avg_duration_ms: Optional[int] = None


class ProcessStatsResponse(BaseModel):
    """Counts over one process's flows"""
    total_flows: int
    completed: int
    failed: int
    running: int
    avg_duration_ms: Optional[int] = None
    last_execution: Optional[datetime] = None
    success_rate: Optional[float] = None


# ============================================================================
# Process Schemas
# ============================================================================

class ProcessResponse(BaseModel):
    """Process definition"""
    id: int
    identifier: str
    name: str
    category: str
    active: bool
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("category", mode="before")
    @classmethod
    def category_label(cls, v):
        return _label(v)

    class Config:
        from_attributes = True


# ============================================================================
# Flow Schemas
# ============================================================================

class FlowSummary(BaseModel):
    """One execution, without its logs"""
    id: int
    process_id: int
    correlation_id: str
    triggered_by: Optional[str] = None
    status: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    duration_human: Optional[str] = None
    progress: float
    total: int
    ok_count: int
    ko_count: int
    skip_count: int
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("flow_metadata", "metadata")
    )

    @field_validator("status", mode="before")
    @classmethod
    def status_label(cls, v):
        return _label(v)

    class Config:
        from_attributes = True


class LogEntryResponse(BaseModel):
    """One log line of a flow"""
    id: int
    level: str
    content: str
    context: Dict[str, Any] = Field(default_factory=dict)
    logged_at: datetime
    formatted_message: str

    @field_validator("level", mode="before")
    @classmethod
    def level_label(cls, v):
        return _label(v)

    class Config:
        from_attributes = True


class FlowDetailResponse(FlowSummary):
    """One execution with its process and chronological logs"""
    error_backtrace: Optional[str] = None
    process: ProcessResponse
    logs: List[LogEntryResponse] = Field(default_factory=list)


class ProcessDetailResponse(BaseModel):
    """Process with its stats and filtered flows"""
    process: ProcessResponse
    stats: ProcessStatsResponse
    flows: List[FlowSummary] = Field(default_factory=list)


# ============================================================================
# Cleanup Schemas
# ============================================================================

class CleanupResponse(BaseModel):
    """Result of a retention sweep"""
    deleted: int
    days: int
    message: str
