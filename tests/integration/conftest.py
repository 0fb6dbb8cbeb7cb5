import os

import pytest
from fastapi.testclient import TestClient

from storefront.app import build_app


@pytest.fixture()
def client():
    return TestClient(build_app())


@pytest.fixture()
def admin_headers():
    return {"Authorization": f"Bearer {os.environ['ADMIN_API_TOKEN']}"}


@pytest.fixture()
def cron_headers():
    return {"Authorization": f"Bearer {os.environ['CRON_SECRET_TOKEN']}"}
