# memoria/api/routes/stories.py
# CRUD over the stories JSON store. Keep routes thin.
from fastapi import APIRouter, Depends, Response

from memoria.api.deps import get_stories
from memoria.core.errors import NotFoundError
from memoria.repositories.json_store import JsonRecordStore
from memoria.schemas.records import StoryIn, StoryPatch

api_router = APIRouter(prefix="/stories", tags=["stories"])


@api_router.get("")
def list_stories(store: JsonRecordStore = Depends(get_stories)) -> list:
    """Newest story date first; undated stories last."""
    stories = store.list()
    stories.sort(key=lambda s: str(s.get("date") or ""), reverse=True)
    return stories


@api_router.get("/{story_id}")
def get_story(story_id: str, store: JsonRecordStore = Depends(get_stories)) -> dict:
    story = store.get(story_id)
    if story is None:
        raise NotFoundError("story not found")
    return story


@api_router.post("", status_code=201)
def create_story(body: StoryIn, store: JsonRecordStore = Depends(get_stories)) -> dict:
    return store.create(body.model_dump())


@api_router.put("/{story_id}")
def update_story(story_id: str, body: StoryPatch, store: JsonRecordStore = Depends(get_stories)) -> dict:
    return store.update(story_id, body.model_dump(exclude_unset=True))


@api_router.delete("/{story_id}", status_code=204)
def delete_story(story_id: str, store: JsonRecordStore = Depends(get_stories)) -> Response:
    store.delete(story_id)
    return Response(status_code=204)
