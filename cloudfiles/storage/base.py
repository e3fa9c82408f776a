# storage/base.py
from abc import ABC, abstractmethod
from typing import ClassVar, Literal, Mapping, Optional, Tuple

from ..timestamps import Precision, Timestamp
from .dto import AuthorizationResult, FileHandle, MessageNames, RequiredParam


class Cloud(ABC):
    """
    Abstract base class for a cloud storage backend.
    Defines the common interface that all specific backends
    (e.g., WebDAV, Dropbox, Google Drive) must implement.

    Backends are stateless: credentials are passed to every call and nothing
    about the remote side is cached between calls.
    """

    type: ClassVar[Literal["token", "authorization-code"]]
    required_params: ClassVar[Tuple[RequiredParam, ...]]
    modified_time_precision: ClassVar[Precision]
    message_names: ClassVar[MessageNames]

    @abstractmethod
    def authorize(self, params: Mapping[str, str]) -> AuthorizationResult:
        """
        Checks that the backend is ready to use with the given parameters.

        :param params: Values for the keys listed in `required_params`.
        :return: The authorization code (empty when no exchange took place).
        """
        pass

    @abstractmethod
    def find_file(
        self, credentials: Mapping[str, str], filename: str
    ) -> Optional[FileHandle]:
        """
        Resolves a file name to a handle. Never creates anything.

        :return: The handle, or None if the file does not exist.
        """
        pass

    @abstractmethod
    def read_file(self, credentials: Mapping[str, str], file_id: str) -> str:
        """Returns the full content of the file addressed by `file_id`."""
        pass

    @abstractmethod
    def create_file(
        self,
        credentials: Mapping[str, str],
        filename: str,
        content: str,
        modified_time: Timestamp,
    ):
        """
        Creates a new file. `modified_time` mirrors `write_file`; it carries
        no meaningful precondition for a file that does not exist yet.
        """
        pass

    @abstractmethod
    def write_file(
        self,
        credentials: Mapping[str, str],
        file_id: str,
        content: str,
        modified_time: Timestamp,
    ):
        """
        Overwrites an existing file, unless the remote copy was modified after
        `modified_time` (compared at `modified_time_precision`), in which case
        the write is rejected with an HTTPError.
        """
        pass
