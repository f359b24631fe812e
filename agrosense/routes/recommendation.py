"""Crop catalog and NPK recommendation routes."""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from agrosense.config import get_settings
from agrosense.middleware.logging import annotate_request
from agrosense.schemas.recommendation import CropListResponse, RecommendationRequest, RecommendationResponse
from agrosense.services.catalog import CatalogSource, CatalogUnavailableError, CropNotFoundError
from agrosense.services.recommendation_service import InvalidRequestError, RecommendationService

router = APIRouter(tags=["recommendation"])


def get_catalog_source() -> CatalogSource:
	return CatalogSource(get_settings().catalog_path)


def _map_error(exc: Exception, crop: str | None = None) -> HTTPException:
	detail: dict[str, Any] = {"message": str(exc)}
	if crop is not None:
		detail["crop"] = crop
	if isinstance(exc, InvalidRequestError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"error": "invalid_request", **detail})
	if isinstance(exc, CropNotFoundError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"error": "crop_not_found", **detail})
	if isinstance(exc, CatalogUnavailableError):
		return HTTPException(
			status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
			detail={"error": "catalog_unavailable", **detail},
		)
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail={"error": "recommendation_failure", "message": "failed to compute recommendation"},
	)


async def read_recommendation_request(request: Request) -> RecommendationRequest:
	"""Parse the request body; an absent or non-JSON body counts as an empty request."""
	raw = await request.body()
	try:
		body = json.loads(raw) if raw.strip() else {}
	except ValueError:
		body = {}

	try:
		payload = RecommendationRequest.model_validate(body)
	except ValidationError as exc:
		annotate_request(request, error_code="invalid_request")
		invalid = InvalidRequestError(f"invalid recommendation request: {exc.error_count()} field error(s)")
		raise _map_error(invalid) from exc

	annotate_request(request, crop=(payload.crop or "").strip() or None, stage=payload.stage)
	return payload


@router.get("/crops", response_model=CropListResponse)
def list_crops(request: Request, catalog: CatalogSource = Depends(get_catalog_source)) -> CropListResponse:
	service = RecommendationService(catalog)
	try:
		return service.list_crops()
	except Exception as exc:
		error = _map_error(exc)
		annotate_request(request, error_code=error.detail["error"])
		raise error from exc


@router.post("/recommendation", response_model=RecommendationResponse)
def create_recommendation(
	request: Request,
	payload: RecommendationRequest = Depends(read_recommendation_request),
	catalog: CatalogSource = Depends(get_catalog_source),
) -> RecommendationResponse:
	service = RecommendationService(catalog)
	try:
		return service.recommend(payload)
	except Exception as exc:
		error = _map_error(exc, crop=(payload.crop or "").strip() or None)
		annotate_request(request, error_code=error.detail["error"])
		raise error from exc
