"""Pydantic schemas for the crop list and recommendation endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from agrosense.services.parsing import Range

RECOMMENDATION_NOTE = (
	"Values are adjusted conservatively using sensor pH and soil moisture relative "
	"to optimal ranges from the crop sheet. Tune algorithm for local agronomy."
)

ReadingValue = float | str | None
CellValue = int | float | str | None


class SensorReadingsIn(BaseModel):
	model_config = ConfigDict(extra="ignore")

	ph: ReadingValue = None
	moisture: ReadingValue = None
	temperature: ReadingValue = None


class RecommendationRequest(BaseModel):
	crop: str | None = None
	stage: str | None = None
	readings: SensorReadingsIn = Field(default_factory=SensorReadingsIn)


class RangeOut(BaseModel):
	low: float
	high: float

	@classmethod
	def from_range(cls, value: Range | None) -> "RangeOut | None":
		if value is None:
			return None
		return cls(low=value.low, high=value.high)


class BaseDoses(BaseModel):
	n: CellValue = None
	p: CellValue = None
	k: CellValue = None


class OptimalRanges(BaseModel):
	ph: RangeOut | None = None
	moisture: RangeOut | None = None
	temperature: RangeOut | None = None


class AdjustmentInputs(BaseModel):
	ph: float | None = None
	moisture: float | None = None


class AdjustedDosesOut(BaseModel):
	n: int
	p: int
	k: int
	adjustments: AdjustmentInputs


class RecommendationResponse(BaseModel):
	crop: str
	stage: str | None = None
	base: BaseDoses
	optimal: OptimalRanges
	adjusted: AdjustedDosesOut
	note: str = RECOMMENDATION_NOTE


class CropListResponse(BaseModel):
	crops: list[str] = Field(default_factory=list)
