"""
Guards as FastAPI dependencies: denial renders 429 with Retry-After, success resets via request.state.brute.

Run: pytest tests/test_fastapi_integration.py -v
"""
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.testclient import TestClient

from bruteguard import BruteGuard, MemoryStore, fail_mark


def _build_app() -> FastAPI:
    store = MemoryStore()
    brute = BruteGuard(store, free_retries=1, min_wait=60_000, max_wait=60_000)
    login_guard = brute.get_guard(key=lambda request: request.headers.get("x-username", ""))
    marked_guard = brute.get_guard(key="marked", failure_policy=fail_mark)

    app = FastAPI()

    @app.post("/login", dependencies=[Depends(login_guard.dependency)])
    async def login(request: Request):
        if request.headers.get("x-password") != "secret":
            raise HTTPException(status_code=401, detail="Invalid credentials")
        await request.state.brute.reset()
        return {"ok": True}

    @app.get("/marked", dependencies=[Depends(marked_guard.dependency)])
    async def marked(response: Response):
        return {"throttled": response.status_code == 429}

    return app


def test_login_throttled_after_free_retries():
    with TestClient(_build_app()) as client:
        headers = {"x-username": "alice", "x-password": "wrong"}
        assert client.post("/login", headers=headers).status_code == 401
        assert client.post("/login", headers=headers).status_code == 401
        r = client.post("/login", headers=headers)
    assert r.status_code == 429
    assert r.headers["Retry-After"] == "60"
    assert "nextValidRequestDate" in r.json()["detail"]["error"]


def test_usernames_throttled_independently():
    with TestClient(_build_app()) as client:
        for _ in range(2):
            client.post("/login", headers={"x-username": "alice", "x-password": "wrong"})
        r = client.post("/login", headers={"x-username": "bob", "x-password": "wrong"})
    assert r.status_code == 401


def test_successful_login_resets_counter():
    with TestClient(_build_app()) as client:
        client.post("/login", headers={"x-username": "alice", "x-password": "wrong"})
        assert client.post("/login", headers={"x-username": "alice", "x-password": "secret"}).status_code == 200
        # counter cleared: two more free attempts
        assert client.post("/login", headers={"x-username": "alice", "x-password": "wrong"}).status_code == 401
        assert client.post("/login", headers={"x-username": "alice", "x-password": "wrong"}).status_code == 401
        assert client.post("/login", headers={"x-username": "alice", "x-password": "wrong"}).status_code == 429


def test_mark_policy_lets_request_through():
    with TestClient(_build_app()) as client:
        client.get("/marked")
        client.get("/marked")
        r = client.get("/marked")
    assert r.status_code == 429
    assert r.json() == {"throttled": True}
