from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from blog_api.core.errors import NotFound, register_exception_handlers


def make_error_app():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/missing")
    async def missing():
        raise NotFound("Nothing here")

    @app.get("/query")
    async def query():
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    # Unhandled errors are re-raised by Starlette after the response is sent
    return TestClient(app, raise_server_exceptions=False)


def test_api_errors_use_envelope():
    response = make_error_app().get("/missing")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Nothing here"}


def test_unknown_route_uses_envelope():
    response = make_error_app().get("/no-such-route")
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_query_errors_become_storage_failure(caplog):
    response = make_error_app().get("/query")
    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Database error occurred"}
    assert "disk I/O error" not in response.text
    assert any(record.levelname == "ERROR" for record in caplog.records)


def test_unexpected_errors_are_generic_500(caplog):
    response = make_error_app().get("/boom")
    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"success": False, "message": "Internal server error"}
    assert "secret internals" not in response.text
    assert any("Unhandled error on GET /boom" in record.message for record in caplog.records)


def test_read_failure_outside_restore_is_enveloped(client, engine):
    with engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE users")

    response = client.get("/api/auth/check-users")

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Database error occurred"}
