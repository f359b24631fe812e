"""Pydantic schemas for the realtime sensor snapshot endpoint."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class SensorSnapshot(BaseModel):
	ph: float | None = None
	moisture: float | None = None
	temperature: float | None = None
	humidity: float | None = None
	tds: float | None = None


class SensorSnapshotResponse(BaseModel):
	readings: SensorSnapshot
	last_seen: datetime | None = None
	online: bool | None = None
	cached: bool = False
	fetched_at: datetime
