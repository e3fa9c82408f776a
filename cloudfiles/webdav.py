# webdav.py
import base64
import logging
import xml.etree.ElementTree as ET
from typing import Mapping, Optional

import requests

from .exceptions import HTTPError, TransientError, UnexpectedResponse
from .storage.base import Cloud
from .storage.dto import AuthorizationResult, FileHandle, MessageNames, RequiredParam
from .timestamps import Precision, Timestamp

DAV_NS = "{DAV:}"
DEFAULT_TIMEOUT_SECONDS = 30


def create_auth_header(username: str, password: str) -> str:
    """Builds the HTTP Basic Authorization header value."""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def file_url(folder_url: str, filename: str) -> str:
    return folder_url + filename if folder_url.endswith("/") else f"{folder_url}/{filename}"


def _request(
    method: str,
    url: str,
    username: str,
    password: str,
    headers=None,
    data=None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
):
    """Sends one authenticated request. Network failures become TransientError."""
    all_headers = {"Authorization": create_auth_header(username, password)}
    all_headers.update(headers or {})
    try:
        response = requests.request(
            method,
            url,
            headers=all_headers,
            data=data,
            timeout=timeout,
        )
    except requests.exceptions.RequestException as e:
        logging.error(f"WebDAV {method} {url} failed: {e}")
        raise TransientError(f"WebDAV {method} {url} failed: {e}") from e
    return response


def _text(response) -> str:
    # Servers omit the charset on text/plain, which requests would read as Latin-1.
    return response.content.decode("utf-8", errors="replace")


def _check(response, method: str, url: str):
    if not 200 <= response.status_code < 300:
        logging.error(f"WebDAV {method} {url} returned {response.status_code}")
        raise HTTPError(response.status_code, _text(response))


def _propfind(url: str, username: str, password: str, timeout: float = DEFAULT_TIMEOUT_SECONDS):
    """Shallow PROPFIND. Returns None on 404, the parsed XML root otherwise."""
    response = _request(
        "PROPFIND", url, username, password, headers={"Depth": "0"}, timeout=timeout
    )
    if response.status_code == 404:
        return None
    _check(response, "PROPFIND", url)
    try:
        return ET.fromstring(response.content)
    except ET.ParseError as e:
        raise UnexpectedResponse(f"Malformed PROPFIND response from {url}: {e}") from e


def ensure_folder(url: str, username: str, password: str, timeout: float = DEFAULT_TIMEOUT_SECONDS):
    """
    Makes sure a collection exists at `url`, creating it with MKCOL if absent.
    Parent collections are not created.

    Raises:
        HTTPError: If the PROPFIND or MKCOL request fails.
        UnexpectedResponse: If `url` points to a file rather than a folder.
    """
    logging.info(f"Checking WebDAV folder '{url}'...")
    root = _propfind(url, username, password, timeout)
    if root is None:
        logging.info(f"WebDAV folder '{url}' does not exist. Creating it...")
        response = _request("MKCOL", url, username, password, timeout=timeout)
        _check(response, "MKCOL", url)
        logging.info(f"Created WebDAV folder '{url}'.")
        return

    if root.find(f".//{DAV_NS}resourcetype/{DAV_NS}collection") is not None:
        logging.info(f"WebDAV folder '{url}' exists.")
        return
    raise UnexpectedResponse("The specified folder URL is a file, not a folder.")


class WebDAVCloud(Cloud):
    """
    Stores files in a WebDAV collection, implementing the Cloud interface.
    Writes are guarded with If-Unmodified-Since at whole-second precision.
    """

    type = "token"
    modified_time_precision = Precision.SECOND
    message_names = MessageNames(
        sync="clouds_webdavSync",
        sync_description="clouds_webdavSyncDescription",
        sync_turned_on="clouds_webdavSyncTurnedOn",
    )
    required_params = (
        RequiredParam(key="url", label="clouds_webdavUrlLabel", type="text"),
        RequiredParam(key="username", label="clouds_webdavUsernameLabel", type="text"),
        RequiredParam(key="password", label="clouds_webdavPasswordLabel", type="password"),
    )

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.timeout = timeout

    def authorize(self, params: Mapping[str, str]) -> AuthorizationResult:
        # No OAuth exchange for WebDAV; just make sure the folder is usable.
        ensure_folder(params["url"], params["username"], params["password"], self.timeout)
        return AuthorizationResult(authorization_code="")

    def find_file(
        self, credentials: Mapping[str, str], filename: str
    ) -> Optional[FileHandle]:
        url = file_url(credentials["url"], filename)
        logging.info(f"Looking up WebDAV file '{url}'...")
        root = _propfind(url, credentials["username"], credentials["password"], self.timeout)
        if root is None:
            logging.info(f"WebDAV file '{url}' not found.")
            return None

        modified = root.find(f".//{DAV_NS}getlastmodified")
        if modified is None or not (modified.text or "").strip():
            raise UnexpectedResponse("Missing last modified")
        try:
            modified_time = Timestamp.parse_http_date(
                modified.text, self.modified_time_precision
            )
        except ValueError as e:
            raise UnexpectedResponse(f"Invalid last modified: {e}") from e
        return FileHandle(id=url, modified_time=modified_time)

    def read_file(self, credentials: Mapping[str, str], file_id: str) -> str:
        logging.info(f"Downloading WebDAV file '{file_id}'...")
        response = _request(
            "GET", file_id, credentials["username"], credentials["password"], timeout=self.timeout
        )
        _check(response, "GET", file_id)
        try:
            return response.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise UnexpectedResponse(f"WebDAV file '{file_id}' is not UTF-8 text: {e}") from e

    def create_file(
        self,
        credentials: Mapping[str, str],
        filename: str,
        content: str,
        modified_time: Timestamp,
    ):
        self._put(credentials, file_url(credentials["url"], filename), content, modified_time)

    def write_file(
        self,
        credentials: Mapping[str, str],
        file_id: str,
        content: str,
        modified_time: Timestamp,
    ):
        self._put(credentials, file_id, content, modified_time)

    def _put(self, credentials, url: str, content: str, modified_time: Timestamp):
        logging.info(f"Uploading WebDAV file '{url}' (unmodified since {modified_time.to_iso_second()})...")
        response = _request(
            "PUT",
            url,
            credentials["username"],
            credentials["password"],
            headers={
                "Content-Type": "text/plain",
                "If-Unmodified-Since": modified_time.to_iso_second(),
            },
            data=content.encode("utf-8"),
            timeout=self.timeout,
        )
        _check(response, "PUT", url)
