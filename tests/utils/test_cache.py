from unittest.mock import MagicMock, patch

import pytest
import redis
from pydantic import BaseModel

from glimpse.utils import cache as cache_module


class CacheTestModel(BaseModel):
    id: int
    name: str


@pytest.fixture
def reset_redis_client():
    """Reset the singleton RedisClient."""
    cache_module.RedisClient._instance = None
    cache_module.RedisClient._failed = False
    yield
    cache_module.RedisClient._instance = None
    cache_module.RedisClient._failed = False


@pytest.fixture
def mock_client():
    client = MagicMock()
    with patch.object(cache_module.RedisClient, "get_client", return_value=client):
        yield client


def test_get_client_success(reset_redis_client):
    with (
        patch.object(cache_module.redis, "Redis") as mock_redis_cls,
        patch.object(cache_module.redis, "ConnectionPool") as mock_pool,
        patch.object(cache_module, "settings") as mock_settings,
    ):
        mock_settings.REDIS_URL = "redis://localhost:6379/0"

        client = cache_module.RedisClient.get_client()

        assert client is not None
        mock_pool.from_url.assert_called_once()
        mock_redis_cls.assert_called_once()
        assert cache_module.RedisClient.get_client() is client


def test_get_client_no_url(reset_redis_client):
    with patch.object(cache_module, "settings") as mock_settings:
        mock_settings.REDIS_URL = None

        assert cache_module.RedisClient.get_client() is None
        assert cache_module.RedisClient._failed is True


def test_get_client_init_failure(reset_redis_client):
    with (
        patch.object(cache_module.redis.ConnectionPool, "from_url", side_effect=ValueError("bad url")),
        patch.object(cache_module, "settings") as mock_settings,
    ):
        mock_settings.REDIS_URL = "nonsense"

        assert cache_module.RedisClient.get_client() is None


def test_set_cache_serializes_models(mock_client):
    cache_module.set_cache("k", CacheTestModel(id=1, name="a"), expiration=60)

    mock_client.set.assert_called_once_with("k", '{"id":1,"name":"a"}', ex=60)


def test_set_cache_serializes_dicts(mock_client):
    cache_module.set_cache("k", {"a": 1})

    mock_client.set.assert_called_once_with("k", '{"a": 1}', ex=300)


def test_set_cache_forces_expiration(mock_client):
    cache_module.set_cache("k", "v", expiration=0)

    mock_client.set.assert_called_once_with("k", "v", ex=300)


def test_set_cache_swallows_redis_errors(mock_client):
    mock_client.set.side_effect = redis.ConnectionError("down")

    cache_module.set_cache("k", "v")


def test_get_cache_model_hit(mock_client):
    mock_client.get.return_value = '{"id": 2, "name": "b"}'

    assert cache_module.get_cache_model("k", CacheTestModel) == CacheTestModel(id=2, name="b")


def test_get_cache_model_corrupt_entry_is_dropped(mock_client):
    mock_client.get.return_value = "not json"

    assert cache_module.get_cache_model("k", CacheTestModel) is None
    mock_client.delete.assert_called_once_with("k")


def test_get_cache_redis_error(mock_client):
    mock_client.get.side_effect = redis.TimeoutError("slow")

    assert cache_module.get_cache("k") is None


def test_cache_disabled():
    # autouse fixture marks the client failed
    assert cache_module.get_cache("k") is None
    cache_module.set_cache("k", "v")
    cache_module.delete_cache("k")
