# memoria/schemas/media.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List

from memoria.services.media_types import MediaKind


class MediaItem(BaseModel):
    """One indexed file. Built only by MediaIndex; never mutated afterwards."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    relative_path: str = Field(alias="relativePath")
    name: str
    kind: MediaKind
    created_at_date: str = Field(alias="createdAtDate")           # YYYY-MM-DD (UTC) of mtime
    modified_at: int = Field(alias="modifiedAtEpochMillis")
    size_bytes: int = Field(alias="sizeBytes")
    media_url: str = Field(alias="mediaUrl")
    thumbnail_url: str = Field(alias="thumbnailUrl")


class MediaStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_update: int = Field(alias="lastUpdate")
    # name the web client polls
    last_media_update: int = Field(alias="lastMediaUpdate")


class CityMedia(BaseModel):
    city: str
    items: List[MediaItem]

