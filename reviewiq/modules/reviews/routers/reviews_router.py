# reviewiq/modules/reviews/routers/reviews_router.py

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Path, Query, WebSocket, status
from typing import Any, Dict, List, Optional
import logging

from reviewiq.core.deps import get_response_service, get_review_pipeline
from reviewiq.modules.reviews.schemas.review_schemas import (
    CategoryOverride,
    ResponseCreate,
    ResponseRecord,
    ReviewRecord,
    ReviewResult,
    SyncResult,
)
from reviewiq.modules.reviews.services.response_service import ResponseService
from reviewiq.modules.reviews.services.review_pipeline import ReviewPipeline
from reviewiq.modules.reviews.websocket.review_channel import review_websocket_endpoint

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["Reviews"])
ws_router = APIRouter(prefix="/ws", tags=["reviews-websocket"])


@router.post("", response_model=ReviewResult, status_code=status.HTTP_201_CREATED)
async def submit_review(
    background_tasks: BackgroundTasks,
    payload: Dict[str, Any] = Body(...),
    pipeline: ReviewPipeline = Depends(get_review_pipeline),
):
    """
    Submit a review for enrichment.

    The body is validated by the pipeline so every violation is reported in
    one 400 response. Broadcast, audit and alert run after the response.
    """
    return await pipeline.submit_review(payload, background_tasks=background_tasks)


@router.get("", response_model=List[ReviewRecord])
async def list_reviews(
    branch_id: Optional[str] = Query(None, description="Filter by branch"),
    include_deleted: bool = Query(False),
    pipeline: ReviewPipeline = Depends(get_review_pipeline),
):
    return pipeline.list_reviews(branch_id=branch_id, include_deleted=include_deleted)


@router.post("/sync/{branch_id}", response_model=SyncResult)
async def sync_branch_reviews(
    branch_id: str = Path(..., description="Branch ID"),
    pipeline: ReviewPipeline = Depends(get_review_pipeline),
):
    """Pull external reviews for a branch right away"""
    return await pipeline.sync_external_reviews(branch_id)


@router.get("/{review_id}", response_model=ReviewRecord)
async def get_review(
    review_id: str = Path(..., description="Review ID"),
    pipeline: ReviewPipeline = Depends(get_review_pipeline),
):
    return pipeline.get_review(review_id)


@router.patch("/{review_id}/category", response_model=ReviewRecord)
async def override_category(
    override: CategoryOverride,
    review_id: str = Path(..., description="Review ID"),
    pipeline: ReviewPipeline = Depends(get_review_pipeline),
):
    return pipeline.override_category(review_id, override.category)


@router.delete("/{review_id}")
async def delete_review(
    review_id: str = Path(..., description="Review ID"),
    pipeline: ReviewPipeline = Depends(get_review_pipeline),
):
    pipeline.soft_delete_review(review_id)
    return {"message": "Review deleted", "review_id": review_id}


@router.post(
    "/{review_id}/responses",
    response_model=ResponseRecord,
    status_code=status.HTTP_201_CREATED,
)
async def create_response(
    response: ResponseCreate,
    review_id: str = Path(..., description="Review ID"),
    responses: ResponseService = Depends(get_response_service),
):
    return responses.record_response(review_id, response)


@router.get("/{review_id}/responses", response_model=List[ResponseRecord])
async def list_responses(
    review_id: str = Path(..., description="Review ID"),
    responses: ResponseService = Depends(get_response_service),
):
    return responses.list_responses(review_id)


@ws_router.websocket("/reviews/{branch_id}")
async def review_events_websocket(websocket: WebSocket, branch_id: str):
    """
    Live feed of finalized reviews for one branch.

    Message types:
    - review_finalized: one per finalized review, data is the review result
    - pong: reply to a client {"type": "ping"}
    """
    await review_websocket_endpoint(websocket, branch_id, websocket.app.state.review_channel)
