# dbox.py
import dropbox
from dropbox.files import WriteMode, FileMetadata as DropboxFileMetadata
from dropbox.exceptions import ApiError, HttpError as DropboxHttpError
import logging
from typing import Mapping, Optional

from .exceptions import HTTPError, UnexpectedResponse
from .storage.base import Cloud
from .storage.dto import AuthorizationResult, FileHandle, MessageNames, RequiredParam
from .timestamps import Precision, Timestamp


def _client(credentials: Mapping[str, str]) -> dropbox.Dropbox:
    return dropbox.Dropbox(
        app_key=credentials["app_key"],
        app_secret=credentials["app_secret"],
        oauth2_refresh_token=credentials["refresh_token"],
    )


def _remote_path(folder: str, filename: str) -> str:
    return f"{folder}/{filename}".replace("//", "/")  # Handle root folder case


def _as_http_error(e: Exception) -> HTTPError:
    # Route errors are always reported by Dropbox with status 409.
    if isinstance(e, ApiError):
        return HTTPError(409, str(e.error))
    return HTTPError(e.status_code, str(e.body))


def _is_not_found(e: ApiError) -> bool:
    return e.error.is_path() and e.error.get_path().is_not_found()


class DropboxCloud(Cloud):
    """
    Stores files in a Dropbox folder, implementing the Cloud interface.
    The refresh token is obtained outside this package.
    """

    type = "authorization-code"
    modified_time_precision = Precision.SECOND
    message_names = MessageNames(
        sync="clouds_dropboxSync",
        sync_description="clouds_dropboxSyncDescription",
        sync_turned_on="clouds_dropboxSyncTurnedOn",
    )
    required_params = (
        RequiredParam(key="app_key", label="clouds_dropboxAppKeyLabel", type="text"),
        RequiredParam(key="app_secret", label="clouds_dropboxAppSecretLabel", type="password"),
        RequiredParam(key="refresh_token", label="clouds_dropboxRefreshTokenLabel", type="password"),
        RequiredParam(key="folder", label="clouds_dropboxFolderLabel", type="text", required=False),
    )

    def authorize(self, params: Mapping[str, str]) -> AuthorizationResult:
        """
        Verifies the credentials and makes sure the configured folder exists.
        Raises UnexpectedResponse if the folder path is a file.
        """
        dbx = _client(params)
        folder = params.get("folder", "")
        try:
            dbx.users_get_current_account()
            logging.info("Dropbox credentials verified.")
            # For Dropbox, an empty string signifies the root folder, which always exists.
            if folder == "":
                return AuthorizationResult(authorization_code="")

            try:
                metadata = dbx.files_get_metadata(folder)
            except ApiError as e:
                if not _is_not_found(e):
                    raise
                logging.info(f"Dropbox folder '{folder}' does not exist. Creating it...")
                dbx.files_create_folder_v2(folder)
                return AuthorizationResult(authorization_code="")
        except (ApiError, DropboxHttpError) as e:
            logging.error(f"Failed to prepare Dropbox folder '{folder}': {e}")
            raise _as_http_error(e) from e

        if isinstance(metadata, DropboxFileMetadata):
            raise UnexpectedResponse("The specified folder path is a file, not a folder.")
        logging.info(f"Dropbox folder '{folder}' exists.")
        return AuthorizationResult(authorization_code="")

    def find_file(
        self, credentials: Mapping[str, str], filename: str
    ) -> Optional[FileHandle]:
        path = _remote_path(credentials.get("folder", ""), filename)
        try:
            logging.info(f"Looking up Dropbox file '{path}'...")
            metadata = _client(credentials).files_get_metadata(path)
        except ApiError as e:
            if _is_not_found(e):
                logging.info(f"Dropbox file '{path}' not found.")
                return None
            logging.error(f"Failed to look up Dropbox file '{path}': {e}")
            raise _as_http_error(e) from e
        except DropboxHttpError as e:
            logging.error(f"Failed to look up Dropbox file '{path}': {e}")
            raise _as_http_error(e) from e

        if not isinstance(metadata, DropboxFileMetadata):
            raise UnexpectedResponse(f"Dropbox path '{path}' is a folder, not a file.")
        return FileHandle(
            id=metadata.id,
            modified_time=Timestamp(
                value=metadata.server_modified, precision=self.modified_time_precision
            ),
        )

    def read_file(self, credentials: Mapping[str, str], file_id: str) -> str:
        try:
            logging.info(f"Downloading Dropbox file '{file_id}'...")
            _, response = _client(credentials).files_download(file_id)
        except (ApiError, DropboxHttpError) as e:
            logging.error(f"Failed to download Dropbox file '{file_id}': {e}")
            raise _as_http_error(e) from e
        return response.content.decode("utf-8")

    def create_file(
        self,
        credentials: Mapping[str, str],
        filename: str,
        content: str,
        modified_time: Timestamp,
    ):
        path = _remote_path(credentials.get("folder", ""), filename)
        try:
            logging.info(f"Creating Dropbox file '{path}'...")
            # "add" without autorename fails if the file already exists
            _client(credentials).files_upload(
                content.encode("utf-8"), path, mode=WriteMode("add"), strict_conflict=True
            )
        except (ApiError, DropboxHttpError) as e:
            logging.error(f"Failed to create Dropbox file '{path}': {e}")
            raise _as_http_error(e) from e

    def write_file(
        self,
        credentials: Mapping[str, str],
        file_id: str,
        content: str,
        modified_time: Timestamp,
    ):
        dbx = _client(credentials)
        try:
            metadata = dbx.files_get_metadata(file_id)
            if not isinstance(metadata, DropboxFileMetadata):
                raise UnexpectedResponse(f"Dropbox path '{file_id}' is a folder, not a file.")
            remote_time = Timestamp(
                value=metadata.server_modified, precision=self.modified_time_precision
            )
            if remote_time.is_after(modified_time):
                logging.error(
                    f"Dropbox file '{file_id}' changed at {remote_time.to_iso_second()}, "
                    f"after {modified_time.to_iso_second()}. Rejecting write."
                )
                raise HTTPError(
                    412, f"Remote file was modified at {remote_time.to_iso_second()}"
                )

            logging.info(f"Uploading Dropbox file '{metadata.path_display}' (rev {metadata.rev})...")
            # Pinning the revision makes Dropbox reject a change made after our check.
            dbx.files_upload(
                content.encode("utf-8"),
                metadata.path_lower,
                mode=WriteMode.update(metadata.rev),
                strict_conflict=True,
            )
        except (ApiError, DropboxHttpError) as e:
            logging.error(f"Failed to write Dropbox file '{file_id}': {e}")
            raise _as_http_error(e) from e
