# clouds.py
from typing import Dict

from .dbox import DropboxCloud
from .gdrive import GoogleDriveCloud
from .storage.base import Cloud
from .webdav import WebDAVCloud

SUPPORTED_CLOUDS: Dict[str, Cloud] = {
    "googleDrive": GoogleDriveCloud(),
    "dropbox": DropboxCloud(),
    "webdav": WebDAVCloud(),
}


def get_cloud(key: str) -> Cloud:
    """Returns the backend registered under `key`."""
    try:
        return SUPPORTED_CLOUDS[key]
    except KeyError:
        raise ValueError(
            f"Unknown cloud provider '{key}'. Must be one of: {', '.join(SUPPORTED_CLOUDS)}."
        ) from None
