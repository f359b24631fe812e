"""Realtime sensor feed adapter: latest reading, field normalization, heartbeat."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import httpx
from redis.asyncio import Redis

from agrosense.config import Settings, get_settings
from agrosense.schemas.sensors import SensorSnapshot, SensorSnapshotResponse
from agrosense.services.parsing import parse_number

SENSOR_CACHE_KEY = "sensors:latest"

# Canonical field -> accepted keys, compared after lowercasing and dropping
# "-", "_" and spaces. Earlier keys win when a record carries several.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
	"ph": ("ph",),
	"humidity": ("humidity", "hum"),
	"moisture": ("soilmoisture", "moisture", "soil"),
	"tds": ("tds",),
	"temperature": ("temperature", "temp"),
}

TIMESTAMP_KEYS = ("timestamp", "ts")
_EPOCH_MILLIS_THRESHOLD = 1e12

_logger = logging.getLogger("agrosense.sensor_feed")


class SensorFeedError(RuntimeError):
	"""Raised when the realtime database cannot be queried."""


class SensorFeedNotConfiguredError(SensorFeedError):
	"""Raised when no realtime database URL is configured."""


def _fold(key: str) -> str:
	return key.lower().replace("-", "").replace("_", "").replace(" ", "")


def normalize_reading(raw: Mapping[str, Any]) -> SensorSnapshot:
	folded = {_fold(str(key)): value for (key, value) in raw.items()}
	values: dict[str, float | None] = {}
	for field, aliases in FIELD_ALIASES.items():
		values[field] = None
		for alias in aliases:
			if alias in folded:
				values[field] = parse_number(folded[alias])
				break
	return SensorSnapshot(**values)


def _parse_epoch(value: float) -> datetime | None:
	if value <= 0:
		return None
	if value > _EPOCH_MILLIS_THRESHOLD:
		value = value / 1000.0
	try:
		return datetime.fromtimestamp(value, tz=UTC)
	except (OverflowError, OSError, ValueError):
		return None


def parse_timestamp(value: Any) -> datetime | None:
	if value is None or isinstance(value, bool):
		return None
	if isinstance(value, (int, float)):
		return _parse_epoch(float(value))

	text = str(value).strip()
	if not text:
		return None
	try:
		return _parse_epoch(float(text))
	except ValueError:
		pass
	try:
		parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
	except ValueError:
		return None
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=UTC)
	return parsed


def extract_timestamp(raw: Mapping[str, Any], key: str | None = None) -> datetime | None:
	"""Record time from a ``timestamp``/``ts`` field, else from a numeric record key."""
	for name in TIMESTAMP_KEYS:
		if name in raw:
			parsed = parse_timestamp(raw[name])
			if parsed is not None:
				return parsed
	if key is not None:
		return parse_timestamp(key)
	return None


def is_online(last_seen: datetime | None, now: datetime, stale_after_seconds: float) -> bool | None:
	"""``None`` when the record carries no usable time, else whether it is fresh."""
	if last_seen is None:
		return None
	return (now - last_seen).total_seconds() <= stale_after_seconds


def pick_latest(payload: Any) -> tuple[str | None, Mapping[str, Any]] | None:
	"""Newest child of a history node, or the node itself when it is a flat record."""
	if not isinstance(payload, Mapping) or not payload:
		return None
	children = [(key, value) for (key, value) in payload.items() if isinstance(value, Mapping)]
	if children and len(children) == len(payload):
		key, record = max(children, key=lambda item: str(item[0]))
		return str(key), record
	return None, payload


class SensorFeedService:
	def __init__(self, redis_client: Redis | None = None, settings: Settings | None = None):
		self.redis_client = redis_client
		self.settings = settings or get_settings()

	async def latest(self) -> SensorSnapshotResponse:
		now = datetime.now(UTC)
		cached = await self._read_cached()
		if cached is not None:
			readings, last_seen = cached
			return self._to_response(readings, last_seen, now, cached=True)

		payload = await self.fetch_latest()
		picked = pick_latest(payload)
		if picked is None:
			raise LookupError("No sensor readings available")
		key, record = picked

		readings = normalize_reading(record)
		last_seen = extract_timestamp(record, key)
		await self._write_cache(readings, last_seen)
		return self._to_response(readings, last_seen, now, cached=False)

	async def fetch_latest(self) -> Any:
		base_url = self.settings.sensor_feed_url.rstrip("/")
		if not base_url:
			raise SensorFeedNotConfiguredError("Realtime sensor feed is not configured")

		url = f"{base_url}/{self.settings.sensor_feed_path.strip('/')}.json"
		params: dict[str, Any] = {}
		if self.settings.sensor_feed_history:
			params = {"orderBy": '"$key"', "limitToLast": 1}
		if self.settings.sensor_feed_auth:
			params["auth"] = self.settings.sensor_feed_auth

		start = time.perf_counter()
		try:
			async with httpx.AsyncClient(timeout=self.settings.sensor_feed_timeout_seconds) as client:
				response = await client.get(url, params=params)
				response.raise_for_status()
				payload = response.json()
		except (httpx.HTTPError, ValueError) as exc:
			_logger.error(
				"sensor_feed_fetch_failed",
				extra={
					"path": self.settings.sensor_feed_path,
					"duration_ms": round((time.perf_counter() - start) * 1000.0, 2),
					"error": str(exc),
				},
			)
			raise SensorFeedError(f"Failed to fetch sensor readings: {exc}") from exc

		_logger.info(
			"sensor_feed_fetch",
			extra={
				"path": self.settings.sensor_feed_path,
				"duration_ms": round((time.perf_counter() - start) * 1000.0, 2),
			},
		)
		return payload

	def _to_response(
		self,
		readings: SensorSnapshot,
		last_seen: datetime | None,
		now: datetime,
		*,
		cached: bool,
	) -> SensorSnapshotResponse:
		return SensorSnapshotResponse(
			readings=readings,
			last_seen=last_seen,
			online=is_online(last_seen, now, self.settings.sensor_stale_after_seconds),
			cached=cached,
			fetched_at=now,
		)

	async def _read_cached(self) -> tuple[SensorSnapshot, datetime | None] | None:
		if self.redis_client is None:
			return None
		value = await self.redis_client.get(SENSOR_CACHE_KEY)
		if value is None:
			return None
		payload = json.loads(value)
		last_seen = payload.get("last_seen")
		return (
			SensorSnapshot(**payload.get("readings", {})),
			datetime.fromisoformat(last_seen) if last_seen else None,
		)

	async def _write_cache(self, readings: SensorSnapshot, last_seen: datetime | None) -> None:
		if self.redis_client is None:
			return
		payload = {
			"readings": readings.model_dump(),
			"last_seen": last_seen.isoformat() if last_seen else None,
		}
		await self.redis_client.setex(SENSOR_CACHE_KEY, self.settings.sensor_cache_ttl_seconds, json.dumps(payload))
