"""Custom exceptions for the chansync application.

This module defines all custom exception classes used throughout the
application, organized by functional area and providing structured
error information for better debugging and error handling.
"""


class ChansyncError(Exception):
    """Base class for application-specific errors."""


class ConfigLoadError(ChansyncError):
    """Raised when a configuration file fails to load.

    Attributes:
        config_file: Path to the configuration file that failed to load.
    """

    def __init__(
        self,
        message: str,
        config_file: str | None = None,
    ):
        super().__init__(message)
        self.config_file = config_file


class FileOperationError(ChansyncError):
    """Raised when a file system operation fails.

    Attributes:
        file_path: The file path associated with the error.
    """

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
    ):
        super().__init__(message)
        self.file_path = file_path


class SyncError(ChansyncError):
    """Base class for errors raised while synchronizing a channel.

    Attributes:
        channel_key: The channel identifier associated with the error.
        item_id: The catalog item identifier associated with the error.
        file_path: The file path associated with the error.
    """

    def __init__(
        self,
        message: str,
        channel_key: str | None = None,
        item_id: str | None = None,
        file_path: str | None = None,
    ):
        super().__init__(message)
        self.channel_key = channel_key
        self.item_id = item_id
        self.file_path = file_path


class StateStoreError(SyncError):
    """Raised when the queue, save, or blocked lists cannot be read or written."""


class KeyStoreError(SyncError):
    """Raised when the key store cannot be read or written."""


class DeletionError(SyncError):
    """Raised when a file cannot be deleted."""


class PlaylistError(SyncError):
    """Raised when a playlist manifest cannot be read or written."""


class MetadataFetchError(SyncError):
    """Raised when the catalog for a channel cannot be fetched.

    Attributes:
        url: The catalog URL associated with the error.
        logs: Raw output captured from the fetch, if any.
    """

    def __init__(
        self,
        message: str,
        channel_key: str | None = None,
        url: str | None = None,
        logs: str | None = None,
    ):
        super().__init__(message, channel_key=channel_key)
        self.url = url
        self.logs = logs


class TransformRuleError(SyncError):
    """Raised when a transform rule fails or cannot be resolved.

    Attributes:
        rule_name: The name of the offending rule.
    """

    def __init__(
        self,
        message: str,
        channel_key: str | None = None,
        rule_name: str | None = None,
    ):
        super().__init__(message, channel_key=channel_key)
        self.rule_name = rule_name


class DownloadExecutorError(SyncError):
    """Raised by a download executor when a fetch could not be completed.

    Attributes:
        logs: Raw output captured from the executor, if any.
    """

    def __init__(
        self,
        message: str,
        channel_key: str | None = None,
        item_id: str | None = None,
        logs: str | None = None,
    ):
        super().__init__(message, channel_key=channel_key, item_id=item_id)
        self.logs = logs


class YtdlpApiError(ChansyncError):
    """Raised when the yt-dlp executable cannot be run or its output parsed.

    Attributes:
        url: The URL yt-dlp was invoked with.
        logs: Captured yt-dlp output, if any.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        logs: str | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.logs = logs
