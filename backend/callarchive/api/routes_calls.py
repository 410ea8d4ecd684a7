"""Call listing and deletion endpoints.

Paths and body field names follow what the timeline client posts:

1. ``POST /data``         – list calls in a time range, plus archive size and free space.
2. ``POST /delete``       – delete calls by archive-relative path.
3. ``POST /deleteBefore`` – delete every call older than a cutoff.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field

from ..services.calls import CallService

router = APIRouter()
logger = logging.getLogger(__name__)


class CallFilter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    freq: Optional[str] = None
    after_time: Optional[int] = Field(default=None, alias="afterTime")
    before_time: Optional[int] = Field(default=None, alias="beforeTime")


class CallInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    freq: str
    time: int
    duration: float
    size: int
    relative_path: str


class CallListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    calls: List[CallInfo]
    total_archive_size: int = Field(alias="totalArchiveSize")
    free_space: int = Field(alias="freeSpace")


class DeleteRequest(BaseModel):
    files: List[str]


class DeleteBeforeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    delete_before_time: int = Field(alias="deleteBeforeTime")


class DeleteResponse(BaseModel):
    deleted: List[str]
    missing: List[str]
    failed: List[str]


def _service(request: Request) -> CallService:
    return request.app.state.call_service


@router.post("/data", response_model=CallListResponse)
async def list_calls(request: Request, call_filter: Optional[CallFilter] = None) -> CallListResponse:
    """Calls matching the filter, oldest first."""
    call_filter = call_filter or CallFilter()
    try:
        listing = await run_in_threadpool(
            _service(request).list_calls,
            call_filter.freq,
            call_filter.after_time,
            call_filter.before_time,
        )
    except Exception as exc:
        logger.error("Failed to list calls: %s", exc, exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error listing calls")
    return CallListResponse(
        calls=[CallInfo.model_validate(call) for call in listing.calls],
        total_archive_size=listing.total_archive_size,
        free_space=listing.free_space,
    )


@router.post("/delete", response_model=DeleteResponse)
async def delete_calls(request: Request, body: DeleteRequest) -> DeleteResponse:
    logger.info("Delete requested for %d files", len(body.files))
    report = await run_in_threadpool(_service(request).delete_calls, body.files)
    return DeleteResponse(deleted=report.deleted, missing=report.missing, failed=report.failed)


@router.post("/deleteBefore", response_model=DeleteResponse)
async def delete_before(request: Request, body: DeleteBeforeRequest) -> DeleteResponse:
    logger.info("Delete requested for calls before %s", body.delete_before_time)
    report = await run_in_threadpool(_service(request).delete_before, body.delete_before_time)
    return DeleteResponse(deleted=report.deleted, missing=report.missing, failed=report.failed)
