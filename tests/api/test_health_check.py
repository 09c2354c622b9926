"""Health Check: verifies the default probe, path overrides and handler overrides.

Invariants:
    - GET {apiPrefix}health returns 200 {"ok": true} by default
    - Health path and handler are both configurable
    - Health route is GET-only
"""

from starlette.responses import JSONResponse


async def test_default_health_check(config, make_client):
    res = await make_client(config).get("/api/health")
    assert res.status_code == 200
    assert res.json() == {"ok": True}


async def test_health_path_override(config, make_client):
    config.set_api_prefix("svc").set_health_path("alive")
    client = make_client(config)
    assert (await client.get("/svc/alive")).json() == {"ok": True}
    assert (await client.get("/api/health")).status_code == 404


async def test_health_handler_override(config, make_client):
    async def custom(request):
        return JSONResponse({"ok": False, "reason": "draining"}, status_code=503)

    res = await make_client(config.set_health_check(custom)).get("/api/health")
    assert res.status_code == 503
    assert res.json()["reason"] == "draining"


async def test_sync_health_handler_override(config, make_client):
    def custom(request):
        return JSONResponse({"ok": "sync"})

    res = await make_client(config.set_health_check(custom)).get("/api/health")
    assert res.json() == {"ok": "sync"}


async def test_health_rejects_post(config, make_client):
    res = await make_client(config).post("/api/health", json={})
    assert res.status_code == 405


async def test_health_rejects_head(config, make_client):
    res = await make_client(config).head("/api/health")
    assert res.status_code == 405
