from .download_executor import YtdlpDownloadExecutor
from .metadata_provider import YtdlpMetadataProvider

__all__ = [
    "YtdlpDownloadExecutor",
    "YtdlpMetadataProvider",
]
