"""Microsoft Graph exceptions for error handling."""


class GraphError(Exception):
    """Base exception for all Graph operations."""
    pass


class GraphAPIError(GraphError):
    """HTTP error from Microsoft Graph.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
        error_code: Graph error code (e.g. "Request_ResourceNotFound"), if present
    """

    def __init__(self, status_code: int, message: str, endpoint: str, error_code: str = ""):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        self.error_code = error_code
        super().__init__(f"[{status_code}] {endpoint}: {message}")

    @property
    def is_not_found(self) -> bool:
        """True when the target object is not (yet) visible in the directory."""
        return self.status_code == 404 or self.error_code == "Request_ResourceNotFound"


class GraphAuthenticationError(GraphError):
    """Access token for Graph could not be acquired."""
    pass
