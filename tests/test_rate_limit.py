from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient


def _find_rate_limit_instance(app: FastAPI):
    """Walk the middleware stack to find the live RateLimitMiddleware instance."""

    cur = app.middleware_stack
    while cur is not None:
        if cur.__class__.__name__ == "RateLimitMiddleware":
            return cur
        cur = getattr(cur, "app", None)
    return None


def _ping_app(**kw) -> FastAPI:
    from vestmint.api.security import RateLimitMiddleware

    app = FastAPI()

    @app.get("/ping")
    def _ping():
        return {"ok": True}

    @app.post("/ping")
    def _ping_post():
        return {"ok": True}

    app.add_middleware(RateLimitMiddleware, **kw)
    return app


def test_write_burst_then_429(monkeypatch: pytest.MonkeyPatch) -> None:
    import vestmint.api.security as sec
    from vestmint.api.security import TokenBucket

    monkeypatch.delenv("VESTMINT_RATE_LIMIT_DISABLE", raising=False)
    monkeypatch.setattr(sec.time, "time", lambda: 100.0)

    app = _ping_app(write_bucket=TokenBucket(rate_per_sec=1.0, burst=3.0))
    with TestClient(app) as client:
        codes = [client.post("/ping").status_code for _ in range(4)]
        assert codes == [200, 200, 200, 429]
        r = client.post("/ping")
        assert r.json()["error"]["code"] == "rate_limited"
        assert r.headers["retry-after"] == "1"

        # Reads draw from their own bucket.
        assert client.get("/ping").status_code == 200


def test_bucket_refills_over_time(monkeypatch: pytest.MonkeyPatch) -> None:
    import vestmint.api.security as sec
    from vestmint.api.security import TokenBucket

    monkeypatch.delenv("VESTMINT_RATE_LIMIT_DISABLE", raising=False)
    t = 100.0
    monkeypatch.setattr(sec.time, "time", lambda: t)

    app = _ping_app(read_bucket=TokenBucket(rate_per_sec=1.0, burst=1.0))
    with TestClient(app) as client:
        assert client.get("/ping").status_code == 200
        assert client.get("/ping").status_code == 429
        t += 2.0
        assert client.get("/ping").status_code == 200


def test_rate_limit_can_be_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    from vestmint.api.security import TokenBucket

    monkeypatch.setenv("VESTMINT_RATE_LIMIT_DISABLE", "1")
    app = _ping_app(write_bucket=TokenBucket(rate_per_sec=0.0, burst=1.0))
    with TestClient(app) as client:
        assert all(client.post("/ping").status_code == 200 for _ in range(5))


def test_rate_limit_prunes_by_ttl(monkeypatch: pytest.MonkeyPatch) -> None:
    """TTL eviction prevents unbounded key growth under churn."""
    import vestmint.api.security as sec

    monkeypatch.delenv("VESTMINT_RATE_LIMIT_DISABLE", raising=False)
    monkeypatch.setenv("VESTMINT_TRUST_PROXY_HEADERS", "1")

    t = 1_000.0
    monkeypatch.setattr(sec.time, "time", lambda: t)

    app = _ping_app(ttl_s=10, max_keys=1000, prune_every=1)
    with TestClient(app) as client:
        for i in range(50):
            r = client.get("/ping", headers={"x-forwarded-for": f"203.0.113.{i}"})
            assert r.status_code == 200

        rl = _find_rate_limit_instance(app)
        assert rl is not None
        before = len(rl.table)
        assert before >= 50

        t += 60.0
        assert client.get("/ping", headers={"x-forwarded-for": "203.0.113.250"}).status_code == 200
        assert len(rl.table) == 1


def test_rate_limit_prunes_by_max_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    import vestmint.api.security as sec

    monkeypatch.delenv("VESTMINT_RATE_LIMIT_DISABLE", raising=False)
    monkeypatch.setenv("VESTMINT_TRUST_PROXY_HEADERS", "1")

    t = 5_000.0
    monkeypatch.setattr(sec.time, "time", lambda: t)

    app = _ping_app(ttl_s=0, max_keys=3, prune_every=1)
    with TestClient(app) as client:
        for i in range(4):
            t += 1.0
            assert client.get("/ping", headers={"x-forwarded-for": f"198.51.100.{i}"}).status_code == 200

        rl = _find_rate_limit_instance(app)
        assert rl is not None
        assert len(rl.table) == 3


def test_untrusted_forwarded_header_is_ignored(monkeypatch: pytest.MonkeyPatch) -> None:
    import vestmint.api.security as sec

    monkeypatch.delenv("VESTMINT_RATE_LIMIT_DISABLE", raising=False)
    monkeypatch.delenv("VESTMINT_TRUST_PROXY_HEADERS", raising=False)
    monkeypatch.setattr(sec.time, "time", lambda: 1.0)

    app = _ping_app()
    with TestClient(app) as client:
        for i in range(5):
            client.get("/ping", headers={"x-forwarded-for": f"198.51.100.{i}"})
        rl = _find_rate_limit_instance(app)
        assert len(rl.table) == 1


def test_retry_after_reflects_refill_rate() -> None:
    from vestmint.api.security import TokenBucket

    b = TokenBucket(rate_per_sec=0.25, burst=5.0)
    assert b.wait_s(0.0) == 4
    assert b.wait_s(0.5) == 2
    assert TokenBucket(rate_per_sec=0.0, burst=1.0).wait_s(0.0) == 60
    assert b.refill(1.0, 100.0) == 5.0
