"""Recommendation orchestration: request validation, catalog lookup, dose adjustment."""

from __future__ import annotations

from typing import Any

import structlog

from agrosense.schemas.recommendation import (
	AdjustedDosesOut,
	AdjustmentInputs,
	BaseDoses,
	CropListResponse,
	OptimalRanges,
	RangeOut,
	RecommendationRequest,
	RecommendationResponse,
)
from agrosense.services.adjustment import adjust_doses
from agrosense.services.catalog import (
	CatalogSource,
	CatalogUnavailableError,
	CropNotFoundError,
	find_crop,
	list_crop_names,
)

logger = structlog.get_logger("agrosense.recommendation")


class InvalidRequestError(ValueError):
	"""Raised for recommendation requests rejected before any catalog access."""


def _echo_cell(value: Any) -> float | str | None:
	if value is None or isinstance(value, (int, float, str)):
		return value
	return str(value)


class RecommendationService:
	def __init__(self, catalog: CatalogSource):
		self.catalog = catalog

	def list_crops(self) -> CropListResponse:
		try:
			matrix = self.catalog.read_matrix()
		except CatalogUnavailableError as exc:
			logger.warning("catalog_unavailable", error=str(exc))
			raise
		return CropListResponse(crops=list_crop_names(matrix))

	def recommend(self, payload: RecommendationRequest) -> RecommendationResponse:
		crop = (payload.crop or "").strip()
		if not crop:
			raise InvalidRequestError("missing crop in request")
		stage = (payload.stage or "").strip() or None

		try:
			rows = self.catalog.read_rows()
		except CatalogUnavailableError as exc:
			logger.warning("catalog_unavailable", crop=crop, error=str(exc))
			raise

		try:
			record = find_crop(rows, crop)
		except CropNotFoundError:
			logger.info("crop_not_found", crop=crop)
			raise

		readings = payload.readings
		adjusted = adjust_doses(
			record.base_n,
			record.base_p,
			record.base_k,
			optimal_ph=record.optimal_ph,
			optimal_moisture=record.optimal_moisture,
			ph=readings.ph,
			moisture=readings.moisture,
		)

		logger.info(
			"recommendation_computed",
			crop=crop,
			stage=stage,
			n=adjusted.n,
			p=adjusted.p,
			k=adjusted.k,
		)
		return RecommendationResponse(
			crop=crop,
			stage=stage,
			base=BaseDoses(
				n=_echo_cell(record.base_n),
				p=_echo_cell(record.base_p),
				k=_echo_cell(record.base_k),
			),
			optimal=OptimalRanges(
				ph=RangeOut.from_range(record.optimal_ph),
				moisture=RangeOut.from_range(record.optimal_moisture),
				temperature=RangeOut.from_range(record.optimal_temperature),
			),
			adjusted=AdjustedDosesOut(
				n=adjusted.n,
				p=adjusted.p,
				k=adjusted.k,
				adjustments=AdjustmentInputs(ph=adjusted.ph, moisture=adjusted.moisture),
			),
		)
