import pytest
from unittest.mock import AsyncMock, Mock
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.testclient import TestClient

from edge_gateway.headers import CORS_HEADERS, SECURITY_HEADERS
from edge_gateway.middleware import (
    CONTINUE,
    Continue,
    EdgeMiddleware,
    Terminal,
    edge_stage,
    run_stage,
)


@pytest.fixture
def mock_request():
    request = Mock(spec=Request)
    request.method = "GET"
    request.url.path = "/index.html"
    return request


@pytest.fixture
def client():
    app = FastAPI()
    app.add_middleware(EdgeMiddleware)

    @app.get("/ok")
    async def ok():
        return JSONResponse({"hello": "world"}, status_code=200)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("asset lookup exploded")

    with TestClient(app) as test_client:
        yield test_client


def test_continue_has_a_single_member():
    assert list(Continue) == [CONTINUE]
    assert Continue("continue") is CONTINUE


def test_options_is_terminal(mock_request):
    mock_request.method = "OPTIONS"

    outcome = edge_stage(mock_request)

    assert isinstance(outcome, Terminal)
    assert outcome.response.status_code == 204


@pytest.mark.parametrize("method", ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"])
def test_other_methods_continue(mock_request, method):
    mock_request.method = method

    assert edge_stage(mock_request) is CONTINUE


@pytest.mark.asyncio
async def test_terminal_skips_downstream(mock_request):
    mock_request.method = "OPTIONS"
    call_next = AsyncMock()

    response = await run_stage(edge_stage, mock_request, call_next)

    call_next.assert_not_called()
    assert response.status_code == 204


@pytest.mark.asyncio
async def test_continue_invokes_downstream(mock_request):
    downstream = Response(content=b"asset", status_code=200)
    call_next = AsyncMock(return_value=downstream)

    response = await run_stage(edge_stage, mock_request, call_next)

    call_next.assert_awaited_once_with(mock_request)
    assert response is downstream


@pytest.mark.asyncio
async def test_downstream_error_becomes_empty_500(mock_request):
    call_next = AsyncMock(side_effect=ValueError("boom"))

    response = await run_stage(edge_stage, mock_request, call_next)

    assert response.status_code == 500
    assert response.body == b""
    for name, value in SECURITY_HEADERS.items():
        assert response.headers[name] == value
    assert response.headers["access-control-allow-origin"] == "*"
    assert "access-control-allow-methods" not in response.headers


@pytest.mark.asyncio
async def test_custom_stage_is_honoured(mock_request):
    teapot = Response(status_code=418)
    call_next = AsyncMock()

    response = await run_stage(lambda request: Terminal(teapot), mock_request, call_next)

    assert response is teapot
    call_next.assert_not_called()


def test_preflight_through_app(client):
    response = client.options("/anything/at/all")

    assert response.status_code == 204
    assert response.content == b""
    for name, value in {**SECURITY_HEADERS, **CORS_HEADERS}.items():
        assert response.headers[name] == value


def test_downstream_exception_through_app(client, caplog):
    with caplog.at_level("ERROR", logger="uvicorn.error"):
        response = client.get("/boom")

    assert response.status_code == 500
    assert response.content == b""
    assert response.headers["x-frame-options"] == "DENY"
    assert response.headers["access-control-allow-origin"] == "*"
    assert "asset lookup exploded" in caplog.text


def test_successful_downstream_response_lacks_security_headers(client):
    # Only the responses the middleware builds itself carry the security
    # headers; pass-through responses are left as the downstream made them.
    response = client.get("/ok")

    assert response.status_code == 200
    assert response.json() == {"hello": "world"}
    for name in SECURITY_HEADERS:
        assert name not in response.headers
    assert "access-control-allow-origin" not in response.headers
