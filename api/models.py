"""Pydantic request/response models for the taskflow API."""

from pydantic import BaseModel, Field


# ── Request models ──────────────────────────────────────


class CreateTaskRequest(BaseModel):
    name: str
    status: str = "pending"


class UpdateTaskRequest(BaseModel):
    status: str


class BulkStatusRequest(BaseModel):
    task_ids: list[str]
    status: str
    skip_blocked: bool = False


class BulkTaskIdsRequest(BaseModel):
    task_ids: list[str]


class CreateDependencyRequest(BaseModel):
    dependent_task_id: str
    blocking_task_id: str
    created_by: str | None = None


class CheckDependencyRequest(BaseModel):
    dependent_task_id: str
    blocking_task_id: str


# ── Response models ─────────────────────────────────────


class TaskResponse(BaseModel):
    id: str
    name: str
    status: str
    created_at: str
    updated_at: str
    completed_at: str | None = None


class DependencyInfoResponse(BaseModel):
    is_blocked: bool = False
    blocked_by: list[TaskResponse] = []
    blocked_by_ids: list[str] = []
    blocks: list[TaskResponse] = []
    blocks_ids: list[str] = []
    dependency_status: str | None = None
    dependency_count: int = 0


class TaskDetailResponse(TaskResponse):
    dependencies: DependencyInfoResponse


class DependencyResponse(BaseModel):
    id: str
    dependent_task_id: str
    blocking_task_id: str
    created_by: str | None = None
    created_at: str


class ChainEntryResponse(BaseModel):
    task: TaskResponse
    depth: int
    dependency_id: str


class ChainResponse(BaseModel):
    task_id: str
    chain: list[ChainEntryResponse]


class BlockedTaskInfoResponse(BaseModel):
    task_id: str
    task_name: str
    blocked_by_count: int


class BulkStatusResponse(BaseModel):
    affected_count: int
    skipped_count: int
    skipped_task_ids: list[str] = Field(default_factory=list)

