# memoria/api/routes/travel.py
# Travel pins: a JSON record per city, each tied to an album folder under the
# media root. The album contents come from the media index.
# - GET/POST /api/travel-pins, PUT/DELETE /api/travel-pins/{id}
# - GET /api/travel-pins-all     → pins + photo URLs
# - GET /api/city-media/{city}   → indexed items in that city's folder
from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Response

from memoria.api.deps import get_index, get_settings, get_travel_pins
from memoria.core.config import Settings
from memoria.core.errors import ConflictError, ForbiddenPathError, MemoriaError, NotFoundError, ValidationError
from memoria.repositories.json_store import JsonRecordStore
from memoria.schemas.media import CityMedia
from memoria.schemas.records import TravelPinIn, TravelPinPatch
from memoria.services.index import MediaIndex
from memoria.services.media_types import MediaKind
from memoria.utils.http import rel_posix, safe_rel_under

logger = logging.getLogger(__name__)

api_router = APIRouter(tags=["travel"])


def _album_folder(pin: dict) -> str:
    return str(pin.get("folderName") or pin.get("cityEN") or "").strip().strip("/")


def _resolve_album_dir(media_root: Path, folder: str) -> Path:
    """Folder name → directory under the media root (403 if it escapes)."""
    if not folder or "\x00" in folder:
        raise ValidationError("folderName or cityEN is required")
    target = (media_root / folder).resolve()
    rel = safe_rel_under(media_root, target)
    if rel is None or not rel.parts:
        raise ForbiddenPathError("album folder must be inside the media root")
    if any(part.startswith(".") for part in rel.parts):
        raise ValidationError("album folder must not be hidden")
    return target


def _find_city(store: JsonRecordStore, city: str) -> dict | None:
    wanted = city.strip().lower()
    for pin in store.list():
        if str(pin.get("cityEN", "")).strip().lower() == wanted:
            return pin
    return None


@api_router.get("/travel-pins")
def list_pins(store: JsonRecordStore = Depends(get_travel_pins)) -> list:
    """Most recent arrival first."""
    pins = store.list()
    pins.sort(key=lambda p: str(p.get("arrivedAt") or ""), reverse=True)
    return pins


@api_router.post("/travel-pins", status_code=201)
def create_pin(
    body: TravelPinIn,
    store: JsonRecordStore = Depends(get_travel_pins),
    settings: Settings = Depends(get_settings),
) -> dict:
    city = body.cityEN.strip()
    if not city:
        raise ValidationError("cityEN is required")
    if _find_city(store, city) is not None:
        raise ConflictError(f"travel pin for '{city}' already exists")

    data = body.model_dump()
    data["cityEN"] = city
    folder_dir = _resolve_album_dir(settings.media_root, _album_folder(data))
    try:
        folder_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error("Cannot create album folder %s: %s", folder_dir, e)
        raise MemoriaError("cannot create album folder", status=500)
    data["folderName"] = rel_posix(folder_dir.relative_to(settings.media_root.resolve()))
    return store.create(data)


@api_router.put("/travel-pins/{pin_id}")
def update_pin(pin_id: str, body: TravelPinPatch, store: JsonRecordStore = Depends(get_travel_pins)) -> dict:
    return store.update(pin_id, body.model_dump(exclude_unset=True))


@api_router.delete("/travel-pins/{pin_id}", status_code=204)
def delete_pin(pin_id: str, store: JsonRecordStore = Depends(get_travel_pins)) -> Response:
    # the album folder and its media stay on disk
    store.delete(pin_id)
    return Response(status_code=204)


@api_router.get("/travel-pins-all")
def list_pins_with_photos(
    store: JsonRecordStore = Depends(get_travel_pins),
    index: MediaIndex = Depends(get_index),
) -> list:
    out = []
    for pin in list_pins(store):
        folder = _album_folder(pin)
        photos = [it.media_url for it in index.items_under(folder, MediaKind.IMAGE)] if folder else []
        out.append({**pin, "photos": photos})
    return out


@api_router.get("/city-media/{city}", response_model=CityMedia)
def city_media(
    city: str,
    store: JsonRecordStore = Depends(get_travel_pins),
    index: MediaIndex = Depends(get_index),
):
    pin = _find_city(store, city)
    if pin is None:
        raise NotFoundError(f"unknown city '{city}'")
    folder = _album_folder(pin)
    return CityMedia(city=pin.get("cityEN", city), items=index.items_under(folder) if folder else [])
