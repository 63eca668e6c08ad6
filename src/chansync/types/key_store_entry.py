"""Key store record model."""

from pathlib import Path

from pydantic import BaseModel, Field


class KeyStoreEntry(BaseModel):
    """Last known local location of a saved item.

    The entry is a lookup aid only: the file system stays authoritative, and
    an entry whose path no longer exists is ignored.

    Attributes:
        channel_key: Channel namespace the entry belongs to.
        item_id: Stable identifier of the item.
        local_path: Absolute path of the file when it was last confirmed.
        last_title: Cleaned title of the item at that time.
    """

    channel_key: str = Field(min_length=1)
    item_id: str = Field(min_length=1)
    local_path: Path
    last_title: str = ""
