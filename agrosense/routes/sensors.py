"""Realtime sensor snapshot route."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, status

from agrosense.middleware.logging import annotate_request
from agrosense.schemas.sensors import SensorSnapshotResponse
from agrosense.services.sensor_feed import SensorFeedError, SensorFeedNotConfiguredError, SensorFeedService

router = APIRouter(prefix="/sensors", tags=["sensors"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, SensorFeedNotConfiguredError):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	if isinstance(exc, SensorFeedError):
		return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="sensor feed failure")


@router.get("/latest", response_model=SensorSnapshotResponse)
async def get_latest_readings(request: Request) -> SensorSnapshotResponse:
	service = SensorFeedService(getattr(request.app.state, "redis", None))
	try:
		snapshot = await service.latest()
	except Exception as exc:
		error = _map_error(exc)
		annotate_request(request, error_code=type(exc).__name__)
		raise error from exc

	annotate_request(request, cached=snapshot.cached, online=snapshot.online)
	return snapshot
