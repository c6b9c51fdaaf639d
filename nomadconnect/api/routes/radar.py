from fastapi import APIRouter, Depends

from nomadconnect.api.deps import get_radar_scanner
from nomadconnect.core.auth import get_current_user_id
from nomadconnect.schemas.radar import (
    LocationUpdateRequest,
    LocationUpdateResponse,
    ScanRequest,
    ScanResponse,
    VisibilityRequest,
    VisibilityResponse,
)
from nomadconnect.services.radar import RadarScanner

router = APIRouter()


# ------------------------------------------------------------------
# SCAN
# ------------------------------------------------------------------

@router.post("/scan", response_model=ScanResponse)
def radar_scan(
    payload: ScanRequest,
    scanner: RadarScanner = Depends(get_radar_scanner),
    user_id: str = Depends(get_current_user_id),
):
    result = scanner.scan(
        user_id,
        payload.lat,
        payload.lng,
        radius_km=payload.radius_km,
        tier=payload.tier,
    )
    return ScanResponse.model_validate(result)


# ------------------------------------------------------------------
# LOCATION / VISIBILITY
# ------------------------------------------------------------------

@router.post("/location", response_model=LocationUpdateResponse)
def radar_update_location(
    payload: LocationUpdateRequest,
    scanner: RadarScanner = Depends(get_radar_scanner),
    user_id: str = Depends(get_current_user_id),
):
    record = scanner.update_location(user_id, payload.lat, payload.lng)
    return {"success": True, "updated_at": record.updated_at}


@router.post("/visibility", response_model=VisibilityResponse)
def radar_toggle_visibility(
    payload: VisibilityRequest,
    scanner: RadarScanner = Depends(get_radar_scanner),
    user_id: str = Depends(get_current_user_id),
):
    visible = scanner.set_visibility(user_id, payload.is_visible)
    return {"success": True, "is_visible": visible}
