"""
Template router for registry inspection and maintenance.

Endpoints:
- GET /templates - List templates (filtered, best first)
- GET /templates/stats - Registry statistics
- GET /templates/recommendations - Templates worth promoting or reviewing
- POST /templates - Add a template
- POST /templates/prune - Deactivate consistently weak templates
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.registry.template_registry import TemplateFilter
from src.simulator.errors import InvalidParametersError

from ..schemas.templates import (
    PruneRequest,
    PruneResponse,
    TemplateCreateRequest,
    TemplateListResponse,
    TemplateOut,
    TemplateRecommendationsResponse,
    TemplateStatsResponse,
)
from ..services.simulator_service import SimulatorService, get_simulator_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=TemplateListResponse)
def list_templates(
    category: Optional[str] = Query(default=None),
    genre: Optional[str] = Query(default=None),
    tone: Optional[str] = Query(default=None),
    audience_age: Optional[str] = Query(default=None),
    min_effectiveness: Optional[float] = Query(default=None, ge=0.0, le=1.0),
    is_active: Optional[bool] = Query(default=None),
    service: SimulatorService = Depends(get_simulator_service),
):
    """List templates matching every given filter, highest effectiveness first."""
    templates = service.list_templates(TemplateFilter(
        category=category,
        genre=genre,
        tone=tone,
        audience_age=audience_age,
        min_effectiveness=min_effectiveness,
        is_active=is_active,
    ))
    return TemplateListResponse(templates=templates, total=len(templates))


@router.get("/stats", response_model=TemplateStatsResponse)
def template_stats(service: SimulatorService = Depends(get_simulator_service)):
    return TemplateStatsResponse(**service.template_stats())


@router.get("/recommendations", response_model=TemplateRecommendationsResponse)
def template_recommendations(service: SimulatorService = Depends(get_simulator_service)):
    return TemplateRecommendationsResponse(**service.template_recommendations())


@router.post("", response_model=TemplateOut, status_code=status.HTTP_201_CREATED)
def add_template(
    request: TemplateCreateRequest,
    service: SimulatorService = Depends(get_simulator_service),
):
    try:
        template = service.add_template(request.model_dump())
    except InvalidParametersError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(f"[TemplatesAPI] Added template {template['id']}")
    return TemplateOut(**template)


@router.post("/prune", response_model=PruneResponse)
def prune_templates(
    request: PruneRequest,
    service: SimulatorService = Depends(get_simulator_service),
):
    """Deactivate (never delete) templates with enough usage and low effectiveness."""
    return PruneResponse(**service.prune_templates(request.min_effectiveness, request.min_usage))
