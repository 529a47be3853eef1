# ruff: noqa: INP001
"""Request-id propagation, request logging and JSON error envelopes."""

from __future__ import annotations

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field
from starlette.requests import Request

from task_tracker.core import error_handling
from task_tracker.core.error_handling import (
    REQUEST_ID_HEADER,
    _error_payload,
    _get_request_id,
    _http_exception_exception_handler,
    _request_validation_exception_handler,
    _response_validation_exception_handler,
    _task_tracker_error_handler,
    install_error_handling,
)
from task_tracker.services.errors import (
    ForbiddenError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    SubtaskGenerationFailedError,
)


def _app() -> FastAPI:
    app = FastAPI()
    install_error_handling(app)
    return app


def test_request_validation_error_includes_request_id_and_code() -> None:
    app = _app()

    @app.get("/needs-int")
    def needs_int(limit: int) -> dict[str, int]:
        return {"limit": limit}

    resp = TestClient(app).get("/needs-int?limit=abc")

    assert resp.status_code == 422
    body = resp.json()
    assert isinstance(body.get("detail"), list)
    assert body["code"] == "invalid_argument"
    assert isinstance(body.get("request_id"), str) and body["request_id"]
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_request_validation_error_handles_bytes_input_without_500() -> None:
    class Payload(BaseModel):
        content: str

    app = _app()

    @app.put("/needs-object")
    def needs_object(payload: Payload) -> dict[str, str]:
        return {"content": payload.content}

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.put(
        "/needs-object",
        content=b"plain-text-body",
        headers={"content-type": "text/plain"},
    )

    assert resp.status_code == 422
    assert isinstance(resp.json().get("detail"), list)


@pytest.mark.parametrize(
    ("exc", "status_code", "code"),
    [
        (NotFoundError("Task not found"), 404, "not_found"),
        (ForbiddenError("Not authorized to access this task"), 403, "forbidden"),
        (InvalidStateError("Task is not in trash"), 409, "invalid_state"),
        (SubtaskGenerationFailedError(), 422, "subtask_generation_failed"),
        (InternalError(), 500, "internal"),
    ],
)
def test_domain_errors_map_to_status_and_code(
    exc: Exception,
    status_code: int,
    code: str,
) -> None:
    app = _app()

    @app.get("/fail")
    def fail() -> None:
        raise exc

    resp = TestClient(app, raise_server_exceptions=False).get("/fail")

    assert resp.status_code == status_code
    body = resp.json()
    assert body["code"] == code
    assert body["detail"] == str(exc)
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_http_exception_includes_request_id() -> None:
    app = _app()

    @app.get("/nope")
    def nope() -> None:
        raise HTTPException(status_code=404, detail="nope")

    resp = TestClient(app).get("/nope")

    assert resp.status_code == 404
    body = resp.json()
    assert body["detail"] == "nope"
    assert "code" not in body
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_unhandled_exception_returns_500_with_request_id() -> None:
    app = _app()

    @app.get("/boom")
    def boom() -> None:
        raise RuntimeError("boom")

    resp = TestClient(app, raise_server_exceptions=False).get("/boom")

    assert resp.status_code == 500
    body = resp.json()
    assert body["detail"] == "Internal Server Error"
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_response_validation_error_returns_500_with_request_id() -> None:
    class Out(BaseModel):
        name: str = Field(min_length=1)

    app = _app()

    @app.get("/bad", response_model=Out)
    def bad() -> dict[str, str]:
        return {"name": ""}

    resp = TestClient(app, raise_server_exceptions=False).get("/bad")

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Internal Server Error"


def test_client_provided_request_id_is_preserved() -> None:
    app = _app()

    @app.get("/needs-int")
    def needs_int(limit: int) -> dict[str, int]:
        return {"limit": limit}

    resp = TestClient(app).get("/needs-int?limit=abc", headers={REQUEST_ID_HEADER: "  req-123  "})

    assert resp.json()["request_id"] == "req-123"
    assert resp.headers.get(REQUEST_ID_HEADER) == "req-123"


def test_oversized_request_id_is_replaced() -> None:
    app = _app()

    @app.get("/ok")
    def ok() -> dict[str, str]:
        return {"ok": "1"}

    resp = TestClient(app).get("/ok", headers={REQUEST_ID_HEADER: "x" * 500})

    assert resp.status_code == 200
    echoed = resp.headers.get(REQUEST_ID_HEADER)
    assert echoed and echoed != "x" * 500


def test_slow_request_emits_slow_log(monkeypatch: pytest.MonkeyPatch) -> None:
    warnings: list[tuple[str, dict[str, object]]] = []

    def _fake_warning(message: str, *args: object, **kwargs: object) -> None:
        _ = args
        extra = kwargs.get("extra")
        warnings.append((message, extra if isinstance(extra, dict) else {}))

    perf_ticks = iter((100.0, 100.2))

    monkeypatch.setattr(error_handling.settings, "request_log_slow_ms", 1)
    monkeypatch.setattr(error_handling, "perf_counter", lambda: next(perf_ticks))
    monkeypatch.setattr(error_handling.logger, "warning", _fake_warning)

    app = _app()

    @app.get("/slow")
    def slow() -> dict[str, str]:
        return {"ok": "1"}

    resp = TestClient(app).get("/slow")

    assert resp.status_code == 200
    assert any(
        message == "http.request.slow" and extra.get("slow_threshold_ms") == 1
        for message, extra in warnings
    )


def test_get_request_id_returns_none_for_missing_or_invalid_state() -> None:
    assert _get_request_id(Request({"type": "http", "headers": [], "state": {}})) is None
    req = Request({"type": "http", "headers": [], "state": {"request_id": 123}})
    assert _get_request_id(req) is None
    req = Request({"type": "http", "headers": [], "state": {"request_id": ""}})
    assert _get_request_id(req) is None


def test_error_payload_omits_missing_fields() -> None:
    assert _error_payload(detail="x", request_id=None) == {"detail": "x"}
    assert _error_payload(detail="x", request_id="r", code="forbidden") == {
        "detail": "x",
        "code": "forbidden",
        "request_id": "r",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("handler", "expected"),
    [
        (_task_tracker_error_handler, "Expected TaskTrackerError"),
        (_request_validation_exception_handler, "Expected RequestValidationError"),
        (_response_validation_exception_handler, "Expected ResponseValidationError"),
        (_http_exception_exception_handler, "Expected StarletteHTTPException"),
    ],
)
async def test_handlers_reject_wrong_exception_type(handler, expected: str) -> None:
    req = Request({"type": "http", "headers": [], "state": {}})
    with pytest.raises(TypeError, match=expected):
        await handler(req, Exception("x"))


def test_json_safe_covers_bytes_and_fallback_str() -> None:
    assert error_handling._json_safe(b"\xff") == "�"
    assert error_handling._json_safe(memoryview(b"\xff")) == "�"

    class Weird:
        def __str__(self) -> str:
            return "weird"

    assert error_handling._json_safe(Weird()) == "weird"
