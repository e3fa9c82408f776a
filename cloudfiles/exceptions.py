# exceptions.py


class CloudError(Exception):
    """Base class for every error raised by a cloud backend."""
    pass


class PermanentError(CloudError):
    """An error that will not be fixed by a retry (e.g., a malformed response)."""
    pass


class TransientError(CloudError):
    """A temporary error (e.g., a network failure) that might resolve on a retry."""
    pass


class HTTPError(CloudError):
    """A non-success response from the remote store."""

    def __init__(self, status: int, body: str):
        super().__init__(f"HTTP {status}: {body}")
        self.status = status
        self.body = body


class UnexpectedResponse(PermanentError):
    """The remote answered successfully but with a payload we cannot use."""
    pass
