# storage/dto.py
from typing import Literal

from pydantic import BaseModel, ConfigDict

from ..timestamps import Timestamp


class FileHandle(BaseModel):
    """
    Locates a remote file without resolving its name again.

    `id` is backend-specific: the resource URL for WebDAV, the file id for
    Dropbox and Google Drive.
    """

    id: str
    modified_time: Timestamp


class RequiredParam(BaseModel):
    """One credential a provider needs from the user."""

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    type: Literal["text", "password"]
    required: bool = True


class MessageNames(BaseModel):
    model_config = ConfigDict(frozen=True)

    sync: str
    sync_description: str
    sync_turned_on: str


class AuthorizationResult(BaseModel):
    authorization_code: str = ""
