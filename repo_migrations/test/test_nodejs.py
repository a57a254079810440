import pytest
import requests
from pytest_httpserver import HTTPServer

from repo_migrations.utils.nodejs import get_latest_node_version


def test_get_latest_node_version(httpserver: HTTPServer) -> None:
    httpserver.expect_request("/dist/index.json").respond_with_json([
        {"version": "v23.3.0", "lts": False},
        {"version": "v22.11.0", "lts": "Jod"},
        {"version": "v20.18.1", "lts": "Iron"},
    ])

    assert get_latest_node_version(url=httpserver.url_for("/dist/index.json")) == "v22.11.0"


def test_get_latest_node_version_no_lts(httpserver: HTTPServer) -> None:
    httpserver.expect_request("/dist/index.json").respond_with_json([
        {"version": "v23.3.0", "lts": False},
    ])

    with pytest.raises(ValueError, match="No LTS version found"):
        get_latest_node_version(url=httpserver.url_for("/dist/index.json"))


def test_get_latest_node_version_http_error(httpserver: HTTPServer) -> None:
    httpserver.expect_request("/dist/index.json").respond_with_data("", status=503)

    with pytest.raises(requests.HTTPError):
        get_latest_node_version(url=httpserver.url_for("/dist/index.json"))


def test_get_latest_node_version_with_session(httpserver: HTTPServer) -> None:
    httpserver.expect_request("/dist/index.json").respond_with_json([
        {"version": "v22.11.0", "lts": "Jod"},
    ])

    with requests.Session() as session:
        assert (
            get_latest_node_version(session, url=httpserver.url_for("/dist/index.json"))
            == "v22.11.0"
        )
