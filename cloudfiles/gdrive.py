# gdrive.py
import logging
import json
import io
from typing import Mapping, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from .exceptions import HTTPError, UnexpectedResponse
from .storage.base import Cloud
from .storage.dto import AuthorizationResult, FileHandle, MessageNames, RequiredParam
from .timestamps import Precision, Timestamp

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


def _build_service(credentials: Mapping[str, str]):
    token_info = json.loads(credentials["token_json"])

    # The credentials_json should contain the client_id and client_secret.
    credentials_data = json.loads(credentials["credentials_json"])
    credentials_data = credentials_data.get("installed", credentials_data)

    creds = Credentials.from_authorized_user_info(info=token_info)
    if "client_id" in credentials_data and "client_secret" in credentials_data:
        creds.client_id = credentials_data["client_id"]
        creds.client_secret = credentials_data["client_secret"]
    else:
        logging.warning(
            "client_id or client_secret not found in credentials_json. Using existing from token_json if available."
        )
    return build("drive", "v3", credentials=creds)


def _as_http_error(e: HttpError) -> HTTPError:
    body = e.content.decode("utf-8", errors="replace") if isinstance(e.content, bytes) else str(e.content)
    return HTTPError(e.resp.status, body)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _text_media(content: str) -> MediaIoBaseUpload:
    return MediaIoBaseUpload(io.BytesIO(content.encode("utf-8")), mimetype="text/plain")


class GoogleDriveCloud(Cloud):
    """
    Stores files in a Google Drive folder, implementing the Cloud interface.
    The OAuth token is obtained outside this package.
    """

    type = "authorization-code"
    modified_time_precision = Precision.MILLISECOND
    message_names = MessageNames(
        sync="clouds_googleDriveSync",
        sync_description="clouds_googleDriveSyncDescription",
        sync_turned_on="clouds_googleDriveSyncTurnedOn",
    )
    required_params = (
        RequiredParam(key="credentials_json", label="clouds_googleDriveCredentialsLabel", type="password"),
        RequiredParam(key="token_json", label="clouds_googleDriveTokenLabel", type="password"),
        RequiredParam(key="folder_id", label="clouds_googleDriveFolderIdLabel", type="text"),
    )

    def _timestamp(self, value: str) -> Timestamp:
        try:
            return Timestamp.parse_http_date(value, self.modified_time_precision)
        except ValueError as e:
            raise UnexpectedResponse(f"Invalid modifiedTime: {e}") from e

    def authorize(self, params: Mapping[str, str]) -> AuthorizationResult:
        """
        Verifies that `folder_id` exists and is actually a folder.

        Raises:
            HTTPError: If the ID does not exist or the API call fails.
            UnexpectedResponse: If the item is not a folder.
        """
        folder_id = params["folder_id"]
        try:
            file = (
                _build_service(params)
                .files()
                .get(fileId=folder_id, fields="id, mimeType")
                .execute()
            )
        except HttpError as e:
            logging.error(f"Failed to verify Google Drive folder ID '{folder_id}': {e}")
            raise _as_http_error(e) from e

        if file.get("mimeType") != FOLDER_MIME_TYPE:
            raise UnexpectedResponse(
                f"Google Drive ID '{folder_id}' exists but is not a folder."
            )
        logging.info(f"Google Drive folder with ID '{folder_id}' exists and is a folder.")
        return AuthorizationResult(authorization_code="")

    def find_file(
        self, credentials: Mapping[str, str], filename: str
    ) -> Optional[FileHandle]:
        folder_id = credentials["folder_id"]
        query = (
            f"name='{_escape(filename)}' and '{_escape(folder_id)}' in parents and trashed=false"
        )
        try:
            logging.info(f"Looking up '{filename}' in Google Drive folder ID '{folder_id}'...")
            response = (
                _build_service(credentials)
                .files()
                .list(q=query, fields="files(id, modifiedTime)")
                .execute()
            )
        except HttpError as e:
            logging.error(f"Error finding file '{filename}': {e}")
            raise _as_http_error(e) from e

        files = response.get("files", [])
        if not files:
            logging.info(f"File '{filename}' not found in Google Drive folder ID '{folder_id}'.")
            return None
        if "modifiedTime" not in files[0]:
            raise UnexpectedResponse("Missing last modified")
        return FileHandle(id=files[0]["id"], modified_time=self._timestamp(files[0]["modifiedTime"]))

    def read_file(self, credentials: Mapping[str, str], file_id: str) -> str:
        try:
            logging.info(f"Downloading file with ID '{file_id}'...")
            request = _build_service(credentials).files().get_media(fileId=file_id)
            buffer = io.BytesIO()
            downloader = MediaIoBaseDownload(buffer, request)
            done = False
            while not done:
                status, done = downloader.next_chunk()
        except HttpError as e:
            logging.error(f"Failed to download file with ID '{file_id}': {e}")
            raise _as_http_error(e) from e
        return buffer.getvalue().decode("utf-8")

    def create_file(
        self,
        credentials: Mapping[str, str],
        filename: str,
        content: str,
        modified_time: Timestamp,
    ):
        folder_id = credentials["folder_id"]
        try:
            logging.info(f"Creating '{filename}' in Google Drive folder ID '{folder_id}'...")
            _build_service(credentials).files().create(
                body={"name": filename, "parents": [folder_id]},
                media_body=_text_media(content),
                fields="id",
            ).execute()
        except HttpError as e:
            logging.error(f"Failed to create '{filename}' in folder ID '{folder_id}': {e}")
            raise _as_http_error(e) from e

    def write_file(
        self,
        credentials: Mapping[str, str],
        file_id: str,
        content: str,
        modified_time: Timestamp,
    ):
        service = _build_service(credentials)
        try:
            file = service.files().get(fileId=file_id, fields="modifiedTime").execute()
        except HttpError as e:
            logging.error(f"Failed to read metadata of file ID '{file_id}': {e}")
            raise _as_http_error(e) from e

        if "modifiedTime" not in file:
            raise UnexpectedResponse("Missing last modified")
        remote_time = self._timestamp(file["modifiedTime"])
        if remote_time.is_after(modified_time):
            logging.error(
                f"File ID '{file_id}' changed at {file['modifiedTime']}, after the expected time. Rejecting write."
            )
            raise HTTPError(412, f"Remote file was modified at {file['modifiedTime']}")

        try:
            logging.info(f"Updating file with ID '{file_id}'...")
            service.files().update(
                fileId=file_id, media_body=_text_media(content), fields="id"
            ).execute()
        except HttpError as e:
            logging.error(f"Failed to update file with ID '{file_id}': {e}")
            raise _as_http_error(e) from e
