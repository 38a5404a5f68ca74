from __future__ import annotations

import asyncio
import os
from datetime import date, timedelta
from typing import Any, Dict, List, Tuple

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from mongomock_motor import AsyncMongoMockClient  # noqa: E402

from bloodconnect import main  # noqa: E402
from bloodconnect.database import ensure_indexes, get_database  # noqa: E402
from bloodconnect.routers import donor, hospital  # noqa: E402

PASSWORD = "secret123"


class RecordingHub:
    def __init__(self) -> None:
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    async def notify_users(self, user_ids, event, payload) -> None:
        for user_id in dict.fromkeys(user_ids):
            self.events.append((user_id, event, payload))

    def for_user(self, user_id: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [(event, payload) for uid, event, payload in self.events if uid == user_id]


def donor_profile(**overrides: Any) -> Dict[str, Any]:
    profile = {
        "name": "Asha Rao",
        "age": 30,
        "weight": 62.5,
        "phone": "+91 98765 43210",
        "city": "Pune",
        "state": "Maharashtra",
        "country": "India",
        "pincode": 411001,
        "blood_group": "A+",
        "health_condition": "Generally Healthy",
        "hemoglobin": 13.5,
        "last_donation_date": (date.today() - timedelta(days=120)).isoformat(),
    }
    profile.update(overrides)
    return profile


HOSPITAL_PROFILE = {
    "hospital_name": "City General",
    "phone": "020-5550100",
    "address": "1 Main Road",
    "city": "Pune",
    "state": "Maharashtra",
    "country": "India",
    "pincode": 411002,
    "description": "Trauma centre",
}


@pytest.fixture
def mock_db():
    database = AsyncMongoMockClient()["bloodconnect_test"]
    asyncio.run(ensure_indexes(database))
    return database


@pytest.fixture
def hub():
    recorder = RecordingHub()
    donor.init_router(recorder)
    hospital.init_router(recorder)
    yield recorder
    donor.init_router(main.hub)
    hospital.init_router(main.hub)


@pytest.fixture
def client(mock_db, hub):
    main.app.dependency_overrides[get_database] = lambda: mock_db
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def signup(client: TestClient, email: str, role: str) -> Tuple[Dict[str, str], str]:
    response = client.post("/auth/register", json={"email": email, "password": PASSWORD, "role": role})
    assert response.status_code == 201, response.text
    login = client.post("/auth/login", data={"username": email, "password": PASSWORD, "role": role})
    assert login.status_code == 200, login.text
    body = login.json()
    return {"Authorization": f"Bearer {body['access_token']}"}, body["user"]["_id"]


@pytest.fixture
def make_donor(client):
    counter = {"n": 0}

    def factory(**overrides: Any) -> Tuple[Dict[str, str], str]:
        counter["n"] += 1
        headers, user_id = signup(client, f"donor{counter['n']}@example.com", "donor")
        response = client.put("/donors/me/profile", json=donor_profile(**overrides), headers=headers)
        assert response.status_code == 200, response.text
        return headers, user_id

    return factory


@pytest.fixture
def hospital_account(client):
    headers, user_id = signup(client, "blood@citygeneral.org", "hospital")
    response = client.put("/hospitals/me/profile", json=HOSPITAL_PROFILE, headers=headers)
    assert response.status_code == 200, response.text
    return headers, user_id
