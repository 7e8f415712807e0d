"""
Simulator router for what-if prompt and branch generation.

Endpoints:
- POST /simulator/prompts - Generate ranked what-if prompts
- POST /simulator/branches - Suggest branches for a story node
- POST /simulator/feedback - Apply user feedback to a template
- GET /simulator/health - Engine health snapshot
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from src.simulator.errors import (
    GenerationError,
    InvalidFeedbackError,
    InvalidParametersError,
    TemplateNotFoundError,
)

from ..schemas.simulator import (
    BranchGenerateRequest,
    BranchGenerateResponse,
    FeedbackRequest,
    FeedbackResponse,
    PromptGenerateRequest,
    PromptGenerateResponse,
    SimulatorHealthResponse,
)
from ..services.simulator_service import SimulatorService, get_simulator_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/prompts", response_model=PromptGenerateResponse)
def generate_prompts(
    request: PromptGenerateRequest,
    service: SimulatorService = Depends(get_simulator_service),
):
    """
    Generate ranked what-if prompts from sparse story parameters.

    The result may hold fewer prompts than requested: unfillable candidates
    and near-duplicates are dropped.
    """
    try:
        prompts = service.generate_prompts(
            request.parameters.model_dump(exclude_none=True), request.count
        )
    except InvalidParametersError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except GenerationError as e:
        logger.error(f"[SimulatorAPI] Prompt generation failed: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return PromptGenerateResponse(prompts=prompts, count=len(prompts))


@router.post("/branches", response_model=BranchGenerateResponse)
def generate_branches(
    request: BranchGenerateRequest,
    service: SimulatorService = Depends(get_simulator_service),
):
    """Suggest ranked branches for a story node; density sets how many are generated."""
    try:
        branches = service.generate_branches(
            request.node_content,
            request.parameters.model_dump(exclude_none=True),
            request.count,
        )
    except InvalidParametersError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except GenerationError as e:
        logger.error(f"[SimulatorAPI] Branch generation failed: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return BranchGenerateResponse(branches=branches, count=len(branches))


@router.post("/feedback", response_model=FeedbackResponse)
def submit_feedback(
    request: FeedbackRequest,
    service: SimulatorService = Depends(get_simulator_service),
):
    """Apply accept/edit/reject feedback (with optional 1-5 rating) to a template."""
    try:
        result = service.submit_feedback(request.template_id, request.feedback_type, request.rating)
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (InvalidFeedbackError, InvalidParametersError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return FeedbackResponse(**result)


@router.get("/health", response_model=SimulatorHealthResponse)
def simulator_health(service: SimulatorService = Depends(get_simulator_service)):
    """Advisory component health; generation proceeds regardless."""
    return SimulatorHealthResponse(**service.health())
