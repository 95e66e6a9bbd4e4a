# memoria/api/deps.py
# Services live on app.state (built in memoria.main.create_app).
from fastapi import Request

from memoria.core.config import Settings
from memoria.repositories.json_store import JsonRecordStore
from memoria.services.index import MediaIndex
from memoria.services.thumbnails import ThumbnailCache


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_index(request: Request) -> MediaIndex:
    return request.app.state.index


def get_thumbnails(request: Request) -> ThumbnailCache:
    return request.app.state.thumbnails


def get_stories(request: Request) -> JsonRecordStore:
    return request.app.state.stories


def get_travel_pins(request: Request) -> JsonRecordStore:
    return request.app.state.travel_pins
