"""Shared pytest fixtures: async test client, catalog workbooks, fake Redis."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from openpyxl import Workbook

from agrosense.main import app
from agrosense.routes.recommendation import get_catalog_source
from agrosense.services.catalog import CatalogSource

CATALOG_HEADER = [
	"Crop Name",
	"N (kg/ha)",
	"P (kg/ha)",
	"K (kg/ha)",
	"Soil pH",
	"Soil Moisture (in %)",
	"Temperature Range (in °C)",
]

CATALOG_ROWS: list[list[Any]] = [
	["Tomato", 120, 60, 80, "6.0 - 7.0", "40 - 70", "20 - 30"],
	["Potato", 150, 75, 120, "5.0–6.5", "60 - 80", "15 - 25"],
	["Rice", 100, 50, 50, "5.5 - 7.0", "not measured", None],
	["Banana", 200, 60, 300, "6.5 - 7.5", "60 - 80", "26 - 30"],
]


def write_workbook(path: Path, rows: list[list[Any]]) -> Path:
	workbook = Workbook()
	sheet = workbook.active
	sheet.title = "Crops"
	for row in rows:
		sheet.append(row)
	workbook.save(path)
	return path


class FakeRedis:
	def __init__(self, value: str | None = None) -> None:
		self.get = AsyncMock(return_value=value)
		self.setex = AsyncMock()
		self.ping = AsyncMock(return_value=True)


@pytest.fixture
def make_workbook() -> Callable[[Path, list[list[Any]]], Path]:
	"""Factory writing rows to the first sheet of a fresh workbook."""
	return write_workbook


@pytest.fixture
def catalog_path(tmp_path: Path) -> Path:
	"""A crop catalog workbook with a header row and a handful of crops."""
	return write_workbook(tmp_path / "crops.xlsx", [CATALOG_HEADER, *CATALOG_ROWS])


@pytest.fixture
def catalog(catalog_path: Path) -> CatalogSource:
	return CatalogSource(catalog_path)


@pytest.fixture
def fake_redis() -> FakeRedis:
	"""Fake Redis client with an empty sensor snapshot cache."""
	return FakeRedis()


@pytest.fixture
async def client(catalog: CatalogSource) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled and the catalog pointed at a temp workbook."""

	app.dependency_overrides[get_catalog_source] = lambda: catalog
	original_lifespan = app.router.lifespan_context

	@asynccontextmanager
	async def noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
		yield

	app.router.lifespan_context = noop_lifespan

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()
