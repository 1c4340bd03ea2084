"""Shared fixtures for PulseDeck tests.

Every fixture builds its own configuration and database under a temporary
directory; nothing touches ~/.pulsedeck.
"""

import tempfile
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from api.main import create_app
from config import AppConfig
from storage import Database


def make_config(tmpdir: str, **ingestion) -> AppConfig:
    """AppConfig rooted in a temporary directory."""
    return AppConfig(
        database={"path": str(Path(tmpdir) / "test.db")},
        uploads={"storage_dir": str(Path(tmpdir) / "uploads")},
        ingestion=ingestion,
        default_user_id="test-user",
    )


@pytest_asyncio.fixture
async def temp_db():
    """Create a temporary initialized database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db = Database(Path(tmpdir) / "test.db")
        await db.initialize()
        yield db


@pytest.fixture
def app_config():
    """Application config with database and uploads in a temp directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield make_config(tmpdir)


@pytest.fixture
def client(app_config):
    """Test client; background ingestion finishes before each request returns."""
    with TestClient(create_app(app_config)) as test_client:
        yield test_client


def upload_csv(
    client: TestClient,
    workspace_id: str,
    content: str,
    platform: str = "facebook",
    filename: str = "report.csv",
    **form,
):
    """POST a CSV body to the uploads endpoint."""
    data = {"platform": platform}
    data.update({k: v for k, v in form.items() if v is not None})
    return client.post(
        f"/api/workspaces/{workspace_id}/uploads",
        files={"file": (filename, content.encode("utf-8"), "text/csv")},
        data=data,
    )
