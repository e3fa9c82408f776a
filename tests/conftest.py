# tests/conftest.py
import pytest
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import MagicMock
from pathlib import Path

import requests

from cloudfiles.config import Settings, get_settings

BASE_URL = "https://dav.example.com"
FOLDER_URL = f"{BASE_URL}/notes"
WEBDAV_CREDENTIALS = {"url": FOLDER_URL, "username": "alice", "password": "s3cret"}


@pytest.fixture
def mock_settings():
    """
    Provides a mock of the application settings for testing.
    This avoids the need for environment variables during tests.
    """
    settings = MagicMock(spec=Settings)
    settings.CLOUD_PROVIDER = "webdav"
    settings.LOG_LEVEL = "INFO"
    settings.REQUEST_TIMEOUT_SECONDS = 5
    settings.WEBDAV_URL = FOLDER_URL
    settings.WEBDAV_USERNAME = "alice"
    settings.WEBDAV_PASSWORD = "s3cret"
    settings.BASE_DIR = Path("/tmp")
    settings.LOG_FILE = Path("/tmp/app.log")
    settings.credentials.return_value = dict(WEBDAV_CREDENTIALS)
    return settings


@pytest.fixture(autouse=True)
def patch_settings_class(monkeypatch, mock_settings):
    """
    Replaces the `Settings` class constructor so any `get_settings()` call
    made by the code under test receives `mock_settings`.
    """
    get_settings.cache_clear()
    monkeypatch.setattr("cloudfiles.config.Settings", lambda *args, **kwargs: mock_settings)
    yield
    get_settings.cache_clear()


def FakeResponse(status_code: int, text: str = "", content_type: str = "text/plain") -> requests.Response:
    """A real Response holding UTF-8 bytes and no declared charset, like most WebDAV servers send."""
    response = requests.Response()
    response.status_code = status_code
    response._content = text.encode("utf-8")
    response.headers["Content-Type"] = content_type
    return response


class FakeWebDAVServer:
    """
    A minimal in-memory WebDAV store standing in for `requests.request`.
    Resources are keyed by URL without a trailing slash.
    """

    def __init__(self):
        self.now = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.resources = {BASE_URL: {"collection": True, "modified": self.now}}
        self.requests = []
        self.timeouts = []
        self.forced = {}  # (method, url) -> FakeResponse

    def add_folder(self, url):
        self.resources[url.rstrip("/")] = {"collection": True, "modified": self.now}

    def add_file(self, url, content, modified=None):
        self.resources[url] = {
            "collection": False,
            "content": content,
            "modified": modified or self.now,
        }

    def tick(self, seconds=1):
        self.now += timedelta(seconds=seconds)

    def methods(self):
        return [method for method, _, _ in self.requests]

    def __call__(self, method, url, headers=None, data=None, timeout=None):
        headers = dict(headers or {})
        self.requests.append((method, url, headers))
        self.timeouts.append(timeout)
        if (method, url) in self.forced:
            return self.forced[(method, url)]
        return getattr(self, f"_{method.lower()}")(url.rstrip("/"), headers, data)

    def _propfind(self, url, headers, data):
        resource = self.resources.get(url)
        if resource is None:
            return FakeResponse(404, "Not Found")
        resourcetype = (
            "<d:resourcetype><d:collection/></d:resourcetype>"
            if resource["collection"]
            else "<d:resourcetype/>"
        )
        return FakeResponse(
            207,
            '<?xml version="1.0" encoding="utf-8"?>'
            '<d:multistatus xmlns:d="DAV:"><d:response>'
            f"<d:href>{url}</d:href><d:propstat><d:prop>{resourcetype}"
            f"<d:getlastmodified>{format_datetime(resource['modified'], usegmt=True)}</d:getlastmodified>"
            "</d:prop><d:status>HTTP/1.1 200 OK</d:status></d:propstat>"
            "</d:response></d:multistatus>",
            content_type="application/xml",
        )

    def _mkcol(self, url, headers, data):
        if url in self.resources:
            return FakeResponse(405, "Method Not Allowed")
        parent = self.resources.get(url.rsplit("/", 1)[0])
        if parent is None or not parent["collection"]:
            return FakeResponse(409, "Conflict")
        self.add_folder(url)
        return FakeResponse(201)

    def _get(self, url, headers, data):
        resource = self.resources.get(url)
        if resource is None or resource["collection"]:
            return FakeResponse(404, "Not Found")
        return FakeResponse(200, resource["content"])

    def _put(self, url, headers, data):
        resource = self.resources.get(url)
        since = headers.get("If-Unmodified-Since")
        if resource is not None and since is not None:
            limit = datetime.strptime(since, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)
            if resource["modified"].replace(microsecond=0) > limit:
                return FakeResponse(412, "Precondition Failed")
        self.add_file(url, data.decode("utf-8"))
        return FakeResponse(204 if resource is not None else 201)


@pytest.fixture
def webdav_server(monkeypatch):
    """Routes every WebDAV request to a fresh in-memory server."""
    server = FakeWebDAVServer()
    monkeypatch.setattr("cloudfiles.webdav.requests.request", server)
    return server


@pytest.fixture
def webdav_credentials():
    return dict(WEBDAV_CREDENTIALS)
