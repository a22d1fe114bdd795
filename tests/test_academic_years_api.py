from typing import Dict

import pytest
from httpx import AsyncClient

from tests.factories import make_token


YEAR = {
    "name": "2026",
    "start_date": "2026-01-05",
    "end_date": "2026-12-04",
    "set_as_current": True,
    "terms": [
        {"name": "Term 1", "start_date": "2026-01-05", "end_date": "2026-04-03"},
        {"name": "Term 2", "start_date": "2026-05-04", "end_date": "2026-07-31"},
        {"name": "Term 3", "start_date": "2026-08-31", "end_date": "2026-12-04"},
    ],
}


@pytest.mark.asyncio
async def test_create_year_numbers_terms_in_order(client: AsyncClient, auth_headers: Dict[str, str]) -> None:
    response = await client.post("/api/v1/academic-years", json=YEAR, headers=auth_headers)
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["is_current"] is True
    assert [(t["name"], t["ordinal"]) for t in data["terms"]] == [("Term 1", 1), ("Term 2", 2), ("Term 3", 3)]

    response = await client.get(f"/api/v1/academic-years/{data['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert len(response.json()["terms"]) == 3

    response = await client.get("/api/v1/academic-years/current", headers=auth_headers)
    assert response.json()["id"] == data["id"]


@pytest.mark.asyncio
async def test_duplicate_year_name_conflicts(client: AsyncClient, auth_headers: Dict[str, str]) -> None:
    await client.post("/api/v1/academic-years", json=YEAR, headers=auth_headers)
    response = await client.post("/api/v1/academic-years", json=YEAR, headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_term_outside_year_is_rejected(client: AsyncClient, auth_headers: Dict[str, str]) -> None:
    payload = dict(YEAR, terms=[{"name": "Term 1", "start_date": "2025-12-01", "end_date": "2026-03-01"}])
    response = await client.post("/api/v1/academic-years", json=payload, headers=auth_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_new_current_year_replaces_previous(
    client: AsyncClient, auth_headers: Dict[str, str], school: Dict
) -> None:
    response = await client.post("/api/v1/academic-years", json=YEAR, headers=auth_headers)
    new_id = response.json()["id"]

    years = (await client.get("/api/v1/academic-years", headers=auth_headers)).json()
    current = [y["id"] for y in years if y["is_current"]]
    assert current == [new_id]
    assert years[0]["id"] == new_id


@pytest.mark.asyncio
async def test_missing_permission_is_forbidden(client: AsyncClient) -> None:
    headers = {"Authorization": f"Bearer {make_token(role='TEACHER', permissions={'academic_years': {'read': True}})}"}
    assert (await client.get("/api/v1/academic-years", headers=headers)).status_code == 200
    response = await client.post("/api/v1/academic-years", json=YEAR, headers=headers)
    assert response.status_code == 403
