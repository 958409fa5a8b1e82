"""Tests for the Redis-backed rate limiter."""
from unittest.mock import ANY, MagicMock

import pytest
import redis
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

import redis_rate_limiter
from redis_rate_limiter import RedisRateLimiter


def _redis(window_count=0):
    client = MagicMock()
    client.pipeline.return_value.execute.return_value = [0, window_count, 1, True]
    return client


def _app(redis_client, **limits):
    app = FastAPI()
    app.add_middleware(RedisRateLimiter, redis_client=redis_client, **limits)

    @app.get("/ping")
    async def ping():
        return {"pong": True}

    @app.get("/sold-out")
    async def sold_out():
        raise HTTPException(status_code=400, detail="Insufficient stock")

    return app


def test_request_under_limit_is_allowed():
    limiter = RedisRateLimiter(FastAPI(), redis_client=_redis(window_count=4))

    assert limiter._check_rate_limit("rate:ip:1.2.3.4", 5, 60) == (True, 5)


def test_request_at_limit_is_rejected():
    limiter = RedisRateLimiter(FastAPI(), redis_client=_redis(window_count=5))

    assert limiter._check_rate_limit("rate:ip:1.2.3.4", 5, 60) == (False, 6)


def test_redis_errors_fail_open():
    client = _redis()
    client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")
    limiter = RedisRateLimiter(FastAPI(), redis_client=client)

    assert limiter._check_rate_limit("rate:ip:1.2.3.4", 5, 60) == (True, 0)


def test_middleware_passes_requests_through():
    client = TestClient(_app(_redis(window_count=0)))

    response = client.get("/ping", headers={"X-User-Id": "7"})

    assert response.status_code == 200
    assert response.json() == {"pong": True}


@pytest.mark.parametrize("headers", [{}, {"X-User-Id": "7"}])
def test_middleware_answers_429_over_limit(headers):
    client = TestClient(_app(_redis(window_count=100), requests_per_minute_ip=100, requests_per_minute_user=100))

    response = client.get("/ping", headers=headers)

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"
    assert "Rate limit exceeded" in response.json()["detail"]


def test_user_limit_applies_to_identified_requests():
    redis_client = _redis()
    redis_client.pipeline.return_value.execute.side_effect = [
        [0, 0, 1, True],   # ip window
        [0, 3, 1, True],   # user window
    ]
    client = TestClient(_app(redis_client, requests_per_minute_ip=100, requests_per_minute_user=3))

    response = client.get("/ping", headers={"X-User-Id": "7"})

    assert response.status_code == 429
    assert "user" in response.json()["detail"]


def _tracked_keys(redis_client):
    pipe = redis_client.pipeline.return_value
    return [call.args[0] for call in pipe.zadd.call_args_list if call.args[0].startswith("suspicious:")]


def test_not_found_responses_are_tracked_and_pruned():
    redis_client = _redis()
    client = TestClient(_app(redis_client))

    for _ in range(3):
        assert client.get("/missing").status_code == 404

    assert _tracked_keys(redis_client) == ["suspicious:404:testclient"] * 3
    pipe = redis_client.pipeline.return_value
    pipe.zremrangebyscore.assert_any_call("suspicious:404:testclient", 0, ANY)
    pipe.expire.assert_any_call("suspicious:404:testclient", 301)


def test_ordinary_client_errors_are_not_tracked():
    redis_client = _redis()
    client = TestClient(_app(redis_client))

    assert client.get("/sold-out").status_code == 400

    assert _tracked_keys(redis_client) == []


def test_repeated_rejections_are_reported(monkeypatch):
    counter = MagicMock()
    monkeypatch.setattr(redis_rate_limiter, "suspicious_activity_counter", counter)
    request = MagicMock()
    request.url.path = "/api/orders"

    below = RedisRateLimiter(FastAPI(), redis_client=_redis(window_count=3))
    below._track_rejection(request, 401, "1.2.3.4", "7")
    counter.add.assert_not_called()

    at = RedisRateLimiter(FastAPI(), redis_client=_redis(window_count=4))
    at._track_rejection(request, 401, "1.2.3.4", "7")
    counter.add.assert_called_once_with(1, {"type": "unknown_actor"})


def test_tracking_errors_do_not_fail_the_request():
    redis_client = _redis()
    client = TestClient(_app(redis_client))
    redis_client.pipeline.return_value.execute.side_effect = [
        [0, 0, 1, True],
        redis.ConnectionError("down"),
    ]

    assert client.get("/missing").status_code == 404
