# memoria/api/routes/memories.py
# Endpoints backed by the media index:
# - GET /api/memories
# - GET /api/memories/{id}
# - GET /api/media-status
# - GET /api/selected-photos
# - GET /api/thumbnail/{id}
# - GET /media/{path}          (range-aware original files)
from typing import List, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import FileResponse

from memoria.api.deps import get_index, get_settings, get_thumbnails
from memoria.core.config import Settings
from memoria.core.errors import NotFoundError, ValidationError
from memoria.schemas.media import MediaItem, MediaStatus
from memoria.services import streaming
from memoria.services.index import MediaIndex
from memoria.services.media_types import MediaKind
from memoria.services.thumbnails import ThumbnailCache
from memoria.utils.identity import is_valid_id

api_router = APIRouter(tags=["memories"])   # mounted under /api in main
public_router = APIRouter()                 # mounted without prefix in main


@api_router.get("/memories", response_model=List[MediaItem])
def list_memories(index: MediaIndex = Depends(get_index)):
    return index.list()


@api_router.get("/memories/{item_id}", response_model=MediaItem)
def get_memory(item_id: str, index: MediaIndex = Depends(get_index)):
    item = index.get(item_id)
    if item is None:
        raise NotFoundError("memory not found")
    return item


@api_router.get("/media-status", response_model=MediaStatus)
def media_status(index: MediaIndex = Depends(get_index)):
    ts = index.get_update_timestamp()
    return MediaStatus(last_update=ts, last_media_update=ts)


@api_router.get("/selected-photos", response_model=List[MediaItem])
def selected_photos(
    index: MediaIndex = Depends(get_index),
    settings: Settings = Depends(get_settings),
):
    """Images inside the 'selected' folder, newest first (homepage carousel)."""
    if not settings.selected_subdir:
        return []
    return index.items_under(settings.selected_subdir, MediaKind.IMAGE)


@api_router.get("/thumbnail/{item_id}")
def get_thumbnail(item_id: str, thumbs: ThumbnailCache = Depends(get_thumbnails)):
    # ids are hex; anything else could never name a cache file
    if not is_valid_id(item_id):
        raise ValidationError("invalid thumbnail id")
    path = thumbs.path_for(item_id)
    if not path.is_file():
        raise NotFoundError("thumbnail not found")
    return FileResponse(path, media_type="image/jpeg")


@public_router.get("/media/{path:path}")
def get_media(
    path: str,
    range_header: Optional[str] = Header(None, alias="Range"),
    settings: Settings = Depends(get_settings),
):
    return streaming.serve(settings.media_root, path, range_header)
