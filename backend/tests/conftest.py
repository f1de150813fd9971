import os
from datetime import datetime, timezone

import pytest
import pytest_asyncio

# Set dummy environment variables for testing before importing the app
os.environ["JWT_SECRET"] = "fake_jwt_secret"
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = ""
os.environ["FREE_MODE"] = "0"

from httpx import AsyncClient, ASGITransport
from plyr_access.clock import ManualClock
from plyr_access.main import app

SIGNUP_AT = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def clock():
    return ManualClock(SIGNUP_AT)

