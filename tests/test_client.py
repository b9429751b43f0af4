import asyncio
from dataclasses import replace

import httpx
import pytest

from projectwise_mcp.client import ApiError


def run(coro):
    return asyncio.run(coro)


def _json(payload, status=200):
    return lambda request: httpx.Response(status, json=payload)


def test_get_document_end_to_end(make_client):
    client, requests = make_client(_json({"instances": [{"instanceId": "D1"}]}))

    result = run(client.get_document("D1"))

    assert result == {"instances": [{"instanceId": "D1"}]}
    (request,) = requests
    assert request.method == "GET"
    assert str(request.url) == "https://h/ws/v2.8/Repositories/R1/PW_WSG/Document/D1"
    assert request.headers["Authorization"] == "Bearer secret-token"


def test_headers(make_client):
    client, requests = make_client(_json([]))
    run(client.list_projects())
    headers = requests[0].headers
    assert headers["Accept"] == "application/json"
    assert headers["Content-Type"] == "application/json"
    assert headers["Mas-App-Guid"] == "test-app"
    assert headers["Mas-Uuid"] == "session-1"


def test_base_url_trailing_slash(make_client, config):
    client, _ = make_client(_json({}))
    client.config = replace(config, base_url="https://h/ws/v2.8/")
    assert str(client.build_url("/Repositories/R1")) == "https://h/ws/v2.8/Repositories/R1"


def test_list_root_folders(make_client):
    client, requests = make_client(_json({"instances": []}))
    run(client.list_folders())
    url = requests[0].url
    assert url.path == "/ws/v2.8/Repositories/R1/PW_WSG/Project"
    assert url.params["$filter"] == "TypeString eq 'Folder' and ParentGuid eq null"


def test_list_child_folders(make_client):
    client, requests = make_client(_json({"instances": []}))
    run(client.list_folders("X"))
    assert requests[0].url.params["$filter"] == "TypeString eq 'Folder' and ParentGuid eq 'X'"


def test_list_documents(make_client):
    client, requests = make_client(_json({"instances": []}))
    run(client.list_documents("F1"))
    url = requests[0].url
    assert url.path.endswith("/PW_WSG/Document")
    assert url.params["$filter"] == "ParentGuid eq 'F1'"


def test_search_documents_default_cap(make_client):
    client, requests = make_client(_json({"instances": []}))
    run(client.search_documents("bridge"))
    params = requests[0].url.params
    assert params["$filter"] == "contains(Name,'bridge')"
    assert params["$top"] == "50"


def test_search_documents_escapes_quotes(make_client):
    client, requests = make_client(_json({"instances": []}))
    run(client.search_documents("O'Neil plan", max_results=5))
    params = requests[0].url.params
    assert params["$filter"] == "contains(Name,'O''Neil plan')"
    assert params["$top"] == "5"


def test_get_folder_and_repository(make_client):
    client, requests = make_client(_json({}))
    run(client.get_folder("F9"))
    run(client.get_repository())
    assert requests[0].url.path == "/ws/v2.8/Repositories/R1/PW_WSG/Project/F9"
    assert requests[1].url.path == "/ws/v2.8/Repositories/R1"
    assert not requests[1].url.params


def test_error_carries_status_and_full_body(make_client):
    body = "x" * 5000 + " repository is offline"
    client, _ = make_client(lambda request: httpx.Response(503, text=body))

    with pytest.raises(ApiError) as excinfo:
        run(client.list_projects())

    err = excinfo.value
    assert err.status_code == 503
    assert err.reason == "Service Unavailable"
    assert err.body == body
    assert "503" in str(err)
    assert body in str(err)


def test_not_found(make_client):
    client, _ = make_client(lambda request: httpx.Response(404, text="No such document"))
    with pytest.raises(ApiError) as excinfo:
        run(client.get_document("missing"))
    assert str(excinfo.value) == "WSG API Error: 404 Not Found\nNo such document"


def test_transport_error_propagates(make_client):
    def handler(request):
        raise httpx.ConnectError("connection reset", request=request)

    client, _ = make_client(handler)
    with pytest.raises(httpx.TransportError):
        run(client.list_projects())
