"""Catalog items and the per-run records derived from them."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from ..naming import clean_title, get_format


@dataclass(frozen=True, slots=True)
class CatalogItem:
    """One entry of a remote channel catalog, as returned by a metadata provider.

    Attributes:
        id: Stable identifier of the item.
        title: Title as published.
        url: Address the download executor fetches from.
        published: Publication timestamp, if known.
    """

    id: str
    title: str
    url: str
    published: datetime | None = None


@dataclass
class VideoRecord:
    """Ephemeral per-run view of a catalog item and its local file.

    Attributes:
        id: Stable identifier of the item.
        original_title: Title as published.
        title: Cleaned title used for the file name.
        output_dir: Directory the channel saves into.
        output_path: Where the item's file lives, or is expected to live.
        url: Address the download executor fetches from.
        published: Publication timestamp, if known.
    """

    id: str
    original_title: str
    title: str
    output_dir: Path
    output_path: Path
    url: str
    published: datetime | None = None

    @classmethod
    def from_catalog_item(
        cls, item: CatalogItem, output_dir: Path, file_format: str
    ) -> "VideoRecord":
        """Build a record from a catalog item using the channel naming convention.

        Args:
            item: The catalog item.
            output_dir: The channel output directory.
            file_format: File extension without the leading dot.

        Returns:
            A new VideoRecord whose output path is the expected path.
        """
        title = clean_title(item.title)
        return cls(
            id=item.id,
            original_title=item.title,
            title=title,
            output_dir=output_dir,
            output_path=output_dir / f"{title}.{file_format}",
            url=item.url,
            published=item.published,
        )

    @property
    def file_format(self) -> str:
        """Return the extension of the current output path."""
        return get_format(self.output_path.name)

    def update_title(self, title: str) -> None:
        """Rewrite the title, keeping the output directory and format."""
        self.title = clean_title(title)
        self.output_path = self.output_dir / f"{self.title}.{self.file_format}"

    def update_output(self, path: Path) -> None:
        """Point the record at a file that already exists somewhere else."""
        self.output_path = path
        self.title = path.stem
