"""Custom exceptions for Redraft services."""


class EditRequestError(ValueError):
    """Raised when an edit/chat request is malformed or incomplete.

    Validation happens before any streaming starts. The caller must correct
    the request; it is never retried automatically.
    """


class VersionCorruptedError(Exception):
    """Raised when the manifest lists a version whose snapshot file is missing.

    Distinct from "not found": the id is known to have existed, so this
    indicates data loss rather than a bad lookup.

    Attributes:
        version_id: Manifest id of the damaged version
        path: Expected location of the snapshot file
    """

    def __init__(self, version_id: str, path: str, message: str = "Snapshot content is missing"):
        """Initialize VersionCorruptedError.

        Args:
            version_id: Manifest id of the damaged version
            path: Expected location of the snapshot file
            message: Human-readable error message
        """
        self.version_id = version_id
        self.path = path
        self.message = message
        super().__init__(f"{message}: version {version_id} ({path})")


class VersionNotFoundError(KeyError):
    """Raised by the HTTP versions client when the server reports 404."""

    def __init__(self, version_id: str):
        self.version_id = version_id
        super().__init__(version_id)

    def __str__(self) -> str:
        return f"Version not found: {self.version_id}"
