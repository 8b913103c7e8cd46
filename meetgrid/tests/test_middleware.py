import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from meetgrid.middleware import HTTPLogMiddleware


def test_logs_method_path_and_status(caplog):
    app = FastAPI()
    app.add_middleware(HTTPLogMiddleware)

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    with caplog.at_level(logging.DEBUG, logger="meetgrid.http"):
        resp = TestClient(app).get("/ping")

    assert resp.status_code == 200
    records = [r.getMessage() for r in caplog.records if r.name == "meetgrid.http"]
    assert any("method=GET path=/ping status=200" in m for m in records)
