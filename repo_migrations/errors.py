from typing import Any


class MigrationError(Exception):
    """A failure that maps onto a specific error code."""

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class ChangedFileReadError(Exception):
    def __init__(self, path: str, reason: Any) -> None:
        super().__init__(f"Failed to read {path}: {reason}")
        self.path = path


class GithubApiError(Exception):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"{message}: {status}")
        self.status = status


class NoMatchingVersionError(Exception):
    """npm could not resolve a just-released version (ETARGET)."""
