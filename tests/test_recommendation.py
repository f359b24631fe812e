from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from httpx import AsyncClient
from structlog.testing import capture_logs

from agrosense.main import app
from agrosense.routes.recommendation import get_catalog_source
from agrosense.schemas.recommendation import RECOMMENDATION_NOTE, RecommendationRequest
from agrosense.services.catalog import CatalogSource, CatalogUnavailableError
from agrosense.services.recommendation_service import InvalidRequestError, RecommendationService


@pytest.mark.asyncio
async def test_recommendation_acidic_soil(client: AsyncClient) -> None:
	response = await client.post(
		"/api/v1/recommendation",
		json={"crop": "Tomato", "stage": " fruiting ", "readings": {"ph": 5.5, "moisture": "50%"}},
	)

	assert response.status_code == 200
	body = response.json()
	assert body["crop"] == "Tomato"
	assert body["stage"] == "fruiting"
	assert body["base"] == {"n": 120, "p": 60, "k": 80}
	assert body["optimal"]["ph"] == {"low": 6.0, "high": 7.0}
	assert body["optimal"]["moisture"] == {"low": 40.0, "high": 70.0}
	assert body["optimal"]["temperature"] == {"low": 20.0, "high": 30.0}
	assert body["adjusted"] == {"n": 132, "p": 63, "k": 80, "adjustments": {"ph": 5.5, "moisture": 50.0}}
	assert body["note"] == RECOMMENDATION_NOTE


@pytest.mark.asyncio
async def test_recommendation_alkaline_waterlogged(client: AsyncClient) -> None:
	response = await client.post(
		"/api/v1/recommendation",
		json={"crop": "  tomato ", "readings": {"ph": "7.5", "moisture": 80, "temperature": "28°C"}},
	)

	assert response.status_code == 200
	body = response.json()
	assert body["crop"] == "tomato"
	assert body["stage"] is None
	assert (body["adjusted"]["n"], body["adjusted"]["p"], body["adjusted"]["k"]) == (103, 60, 80)


@pytest.mark.asyncio
async def test_recommendation_without_readings_echoes_base(client: AsyncClient) -> None:
	response = await client.post("/api/v1/recommendation", json={"crop": "Rice"})

	assert response.status_code == 200
	body = response.json()
	assert body["optimal"]["moisture"] is None
	assert body["optimal"]["temperature"] is None
	assert body["adjusted"] == {"n": 100, "p": 50, "k": 50, "adjustments": {"ph": None, "moisture": None}}


@pytest.mark.asyncio
async def test_recommendation_unknown_crop_is_not_found(client: AsyncClient) -> None:
	response = await client.post("/api/v1/recommendation", json={"crop": "Quinoa", "readings": {"ph": 5}})

	assert response.status_code == 404
	detail = response.json()["detail"]
	assert detail["error"] == "crop_not_found"
	assert detail["crop"] == "Quinoa"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"crop": ""}, {"crop": "   "}])
async def test_recommendation_requires_crop(client: AsyncClient, payload: dict[str, Any]) -> None:
	response = await client.post("/api/v1/recommendation", json=payload)

	assert response.status_code == 400
	assert response.json()["detail"]["error"] == "invalid_request"


@pytest.mark.asyncio
async def test_recommendation_catalog_missing(client: AsyncClient, tmp_path: Path) -> None:
	app.dependency_overrides[get_catalog_source] = lambda: CatalogSource(tmp_path / "missing.xlsx")

	response = await client.post("/api/v1/recommendation", json={"crop": "Tomato"})

	assert response.status_code == 503
	detail = response.json()["detail"]
	assert detail["error"] == "catalog_unavailable"
	assert detail["crop"] == "Tomato"


@pytest.mark.asyncio
async def test_list_crops(client: AsyncClient) -> None:
	response = await client.get("/api/v1/crops")

	assert response.status_code == 200
	assert response.json() == {"crops": ["Banana", "Potato", "Rice", "Tomato"]}


@pytest.mark.asyncio
async def test_list_crops_empty_workbook_is_unavailable(
	client: AsyncClient,
	tmp_path: Path,
	make_workbook: Callable[..., Path],
) -> None:
	path = make_workbook(tmp_path / "empty.xlsx", [])
	app.dependency_overrides[get_catalog_source] = lambda: CatalogSource(path)

	response = await client.get("/api/v1/crops")

	assert response.status_code == 503
	assert response.json()["detail"]["error"] == "catalog_unavailable"


@pytest.mark.asyncio
async def test_recommendation_openapi_contract(client: AsyncClient) -> None:
	response = await client.get("/openapi.json")
	assert response.status_code == 200

	body = response.json()
	assert "/api/v1/crops" in body["paths"]
	assert "/api/v1/recommendation" in body["paths"]

	schema = body["components"]["schemas"]["RecommendationResponse"]
	assert {"crop", "base", "optimal", "adjusted"} <= set(schema["required"])


def test_service_rejects_blank_crop_before_catalog_access() -> None:
	class _ExplodingCatalog:
		def read_rows(self) -> list[dict[str, Any]]:
			raise AssertionError("catalog must not be read")

	service = RecommendationService(_ExplodingCatalog())  # type: ignore[arg-type]
	with pytest.raises(InvalidRequestError):
		service.recommend(RecommendationRequest(crop="  "))


def test_service_propagates_catalog_unavailable(tmp_path: Path) -> None:
	service = RecommendationService(CatalogSource(tmp_path / "missing.xlsx"))
	with pytest.raises(CatalogUnavailableError):
		service.recommend(RecommendationRequest(crop="Tomato"))
	with pytest.raises(CatalogUnavailableError):
		service.list_crops()


def test_service_recommend_is_repeatable(catalog: CatalogSource) -> None:
	service = RecommendationService(catalog)
	payload = RecommendationRequest(crop="Potato", readings={"ph": 7.1, "moisture": 50})
	first = service.recommend(payload)
	second = service.recommend(payload)
	assert first == second
	# pH 7.1 > 6.5 and moisture 50 < 60: 150 * 0.90 * 1.05 = 141.75
	assert first.adjusted.n == 142
	assert first.optimal.ph is not None
	assert first.optimal.ph.high == 6.5


@pytest.mark.asyncio
async def test_recommendation_without_body_is_invalid(client: AsyncClient) -> None:
	response = await client.post("/api/v1/recommendation")

	assert response.status_code == 400
	assert response.json()["detail"]["error"] == "invalid_request"


@pytest.mark.asyncio
async def test_recommendation_null_crop_is_invalid(client: AsyncClient) -> None:
	response = await client.post("/api/v1/recommendation", json={"crop": None, "readings": {"ph": 6}})

	assert response.status_code == 400
	assert response.json()["detail"]["error"] == "invalid_request"


@pytest.mark.asyncio
async def test_recommendation_unparsable_body_is_invalid(client: AsyncClient) -> None:
	response = await client.post(
		"/api/v1/recommendation",
		content=b"not json",
		headers={"content-type": "application/json"},
	)

	assert response.status_code == 400
	assert response.json()["detail"]["error"] == "invalid_request"


@pytest.mark.asyncio
async def test_recommendation_mistyped_body_is_invalid(client: AsyncClient) -> None:
	response = await client.post("/api/v1/recommendation", json={"crop": "Tomato", "readings": ["ph", 6]})

	assert response.status_code == 400
	detail = response.json()["detail"]
	assert detail["error"] == "invalid_request"
	assert "field error" in detail["message"]


@pytest.mark.asyncio
async def test_recommendation_echoes_integer_base_cells(client: AsyncClient) -> None:
	response = await client.post("/api/v1/recommendation", json={"crop": "Tomato"})

	assert response.status_code == 200
	base = response.json()["base"]
	assert base == {"n": 120, "p": 60, "k": 80}
	assert all(type(value) is int for value in base.values())


@pytest.mark.asyncio
async def test_recommendation_request_log_carries_crop(client: AsyncClient) -> None:
	with capture_logs() as logs:
		response = await client.post("/api/v1/recommendation", json={"crop": " Quinoa ", "stage": "seedling"})

	assert response.status_code == 404
	entry = next(log for log in logs if log["event"] == "http_request")
	assert entry["crop"] == "Quinoa"
	assert entry["stage"] == "seedling"
	assert entry["error_code"] == "crop_not_found"
	assert entry["status_code"] == 404
