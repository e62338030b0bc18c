"""
Root conftest for the pytest test suite.

Every test gets its own record stores under ``tmp_path``, so nothing touches
the real ``./data`` directory and tests never see each other's users,
orders or products.

Key Fixtures:
- `fast_password_hashing`: (autouse) Lowers the bcrypt cost so hashing is quick.
- `data_dir`: A fresh directory for the JSON files of one test.
- `services`: Services wired to file-backed stores in `data_dir`.
- `memory_services`: Services wired to in-memory stores.
- `app_for_testing`: The FastAPI application with `services` installed.
- `client`: A non-authenticated TestClient.
- `customer_client`: A TestClient signed in as a freshly registered customer.
- `admin_client`: A TestClient signed in as the bootstrapped admin.
"""

from pathlib import Path
from typing import Any, Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from storefront.common.store import FileRecordStore, InMemoryRecordStore
from storefront.core import config
from storefront.core.services import Services, build_services
from storefront.main import app as actual_app

TEST_SETUP_PASSWORD = "TestSetup!2025"
TEST_SECRET_KEY = "test-session-secret"

CUSTOMER_EMAIL = "customerfixture@example.com"
CUSTOMER_PASSWORD = "Customer!123"
ADMIN_EMAIL = "adminfixture@example.com"
ADMIN_PASSWORD = "AdminPass!123"


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(config, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def services(data_dir: Path) -> Services:
    return build_services(
        user_store=FileRecordStore("users", data_dir / "users.json"),
        order_store=FileRecordStore("orders", data_dir / "orders.json"),
        product_store=FileRecordStore("products", data_dir / "products.json"),
        admin_setup_password=TEST_SETUP_PASSWORD,
        secret_key=TEST_SECRET_KEY,
    )


@pytest.fixture
def memory_services() -> Services:
    return build_services(
        user_store=InMemoryRecordStore("users"),
        order_store=InMemoryRecordStore("orders"),
        product_store=InMemoryRecordStore("products"),
        admin_setup_password=TEST_SETUP_PASSWORD,
        secret_key=TEST_SECRET_KEY,
    )


@pytest.fixture
def app_for_testing(services: Services) -> Generator[FastAPI, Any, None]:
    """
    Provides the FastAPI application with the test services installed, so
    the lifespan does not build stores of its own.
    """
    actual_app.state.services = services
    yield actual_app
    actual_app.state.services = None


@pytest.fixture
def client(app_for_testing: FastAPI) -> Generator[TestClient, Any, None]:
    """
    Provides a non-authenticated starlette TestClient.
    """
    with TestClient(app_for_testing) as tc:
        yield tc


def login(tc: TestClient, email: str, password: str) -> str:
    response = tc.post("/api/v1/auth/token", data={"username": email, "password": password})
    if response.status_code != 200:
        raise Exception(f"Authentication failed for {email}: {response.text}")
    return response.json()["access_token"]


@pytest.fixture
def customer_client(app_for_testing: FastAPI) -> Generator[TestClient, Any, None]:
    """
    Provides a TestClient authenticated as a newly registered customer.
    """
    with TestClient(app_for_testing) as tc:
        response = tc.post(
            "/api/v1/auth/register",
            json={"name": "Customer Fixture", "email": CUSTOMER_EMAIL, "password": CUSTOMER_PASSWORD},
        )
        assert response.status_code == 201, response.text
        tc.headers.update({"Authorization": f"Bearer {login(tc, CUSTOMER_EMAIL, CUSTOMER_PASSWORD)}"})
        yield tc


@pytest.fixture
def admin_client(app_for_testing: FastAPI) -> Generator[TestClient, Any, None]:
    """
    Provides a TestClient authenticated as the admin created through the
    one-time bootstrap endpoint.
    """
    with TestClient(app_for_testing) as tc:
        response = tc.post(
            "/api/v1/auth/create-admin",
            json={
                "name": "Admin Fixture",
                "email": ADMIN_EMAIL,
                "password": ADMIN_PASSWORD,
                "admin_setup_password": TEST_SETUP_PASSWORD,
            },
        )
        assert response.status_code == 201, response.text
        tc.headers.update({"Authorization": f"Bearer {login(tc, ADMIN_EMAIL, ADMIN_PASSWORD)}"})
        yield tc
