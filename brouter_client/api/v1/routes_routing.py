# brouter_client/api/v1/routes_routing.py
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from brouter_client.core.config import settings
from brouter_client.core.exceptions import (
    BackendTimeout,
    BrouterError,
    EmptyRoute,
    InvalidProfile,
    InvalidRequest,
    NoRouteFound,
)
from brouter_client.core.logger import logger
from brouter_client.models.routing import Nogo, OutputFormat, Point, TurnInstructionMode
from brouter_client.services.router import Router

router = APIRouter(
    prefix="/route",
    tags=["routing"],
)


class RouteBody(BaseModel):
    """
    Request body for the /route endpoint.
    """
    points: List[Point] = Field(min_length=2)
    profile: str = Field(default_factory=lambda: settings.DEFAULT_PROFILE)
    alternative_index: Optional[int] = None
    nogos: List[Nogo] = []
    turn_instruction_mode: Optional[TurnInstructionMode] = None
    track_name: Optional[str] = None
    export_waypoints: bool = False


@lru_cache
def get_router() -> Router:
    # One shared Router per process, built from settings
    if settings.BACKEND == "local":
        return Router.local(
            cache_root=settings.CACHE_DIR,
            archive=settings.ENGINE_ARCHIVE,
            timeout=settings.REQUEST_TIMEOUT,
        )
    return Router.remote(settings.BASE_URL, timeout=settings.REQUEST_TIMEOUT)


def _status_for(error: BrouterError) -> int:
    if isinstance(error, (InvalidProfile, InvalidRequest)):
        return 422
    if isinstance(error, (EmptyRoute, NoRouteFound)):
        return 404
    if isinstance(error, BackendTimeout):
        return 504
    return 502


@router.post(
    "/",
    summary="Compute a route along the given waypoints",
    response_class=Response,
    responses={200: {"content": {"application/gpx+xml": {}}}},
)
def compute_route(body: RouteBody, brouter: Router = Depends(get_router)) -> Response:
    """
    Compute a route with brouter and return it as GPX.

    - Remote or local backend, depending on BROUTER_BACKEND.
    - Domain errors are reported with their structured details.
    """
    try:
        result = brouter.route(
            body.points,
            body.profile,
            alternative_index=body.alternative_index,
            output_format=OutputFormat.GPX,
            nogos=body.nogos,
            turn_instruction_mode=body.turn_instruction_mode,
            track_name=body.track_name,
            export_waypoints=body.export_waypoints,
        )
    except BrouterError as e:
        status_code = _status_for(e)
        logger.warning(f"Route request failed with {status_code}: {e}")
        raise HTTPException(status_code=status_code, detail=e.to_dict()) from e

    return Response(content=result.to_xml(), media_type="application/gpx+xml")
