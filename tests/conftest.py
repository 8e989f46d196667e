"""
Pytest configuration and fixtures
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from rollbaz.models.config import AppConfig
from rollbaz.models.rollbar import parse_instances, parse_item, parse_items


@pytest.fixture
def item_payload():
    """Item result as returned by GET /item/{id}/"""
    return {
        "id": 1755568172,
        "project_id": 766510,
        "counter": 269,
        "title": "RST_STREAM",
        "status": "active",
        "environment": "production",
        "level": 40,
        "last_occurrence_timestamp": 1700000000,
        "total_occurrences": 7,
    }


@pytest.fixture
def instance_payload():
    """Latest instance with a nested trace_chain in its data blob"""
    return {
        "id": "9001",
        "timestamp": 1700000000,
        "body": {"message": {"body": "body-level error"}},
        "data": {
            "body": {
                "trace_chain": [
                    {"exception": {"class": "GrpcError", "message": "stream reset by peer"}}
                ]
            }
        },
    }


@pytest.fixture
def make_item():
    """Build a normalized Item from keyword fields"""

    def _make(**fields):
        return parse_items([fields])[0]

    return _make


@pytest.fixture
def mock_api(item_payload, instance_payload):
    """Rollbar API double with one item and its latest instance"""
    api = MagicMock()
    api.resolve_item_id_by_counter = AsyncMock(return_value=1755568172)
    api.get_item = AsyncMock(return_value=parse_item(item_payload))
    api.get_latest_instance = AsyncMock(return_value=parse_instances([instance_payload])[0])
    api.update_item = AsyncMock(return_value=None)
    api.list_active_items = AsyncMock(return_value=[])
    api.list_items = AsyncMock(return_value=[])
    return api


@pytest.fixture
def app_config(tmp_path):
    """AppConfig pointing the token store at a temporary directory"""
    return AppConfig(config_dir=tmp_path / "rollbaz", access_token="")


@pytest.fixture
def cli_obj(app_config, mock_api):
    """Context object injected into the click group"""
    factory = MagicMock(return_value=mock_api)
    return {"config": app_config, "client_factory": factory}
