# memoria/schemas/records.py
# Request bodies for the record stores. Unknown fields are kept as-is.
from pydantic import BaseModel, ConfigDict
from typing import Optional


class StoryIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    date: Optional[str] = None      # YYYY-MM-DD
    title: str = ""
    content: str = ""
    author: str = ""
    tags: str = ""
    mood: Optional[str] = None      # css colour picked in the UI
    type: str = "note"


class StoryPatch(BaseModel):
    model_config = ConfigDict(extra="allow")

    date: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    tags: Optional[str] = None
    mood: Optional[str] = None
    type: Optional[str] = None


class TravelPinIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    cityEN: str
    cityCN: str = ""
    folderName: str = ""            # album folder under the media root; defaults to cityEN
    arrivedAt: Optional[str] = None


class TravelPinPatch(BaseModel):
    model_config = ConfigDict(extra="allow")

    cityEN: Optional[str] = None
    cityCN: Optional[str] = None
    folderName: Optional[str] = None
    arrivedAt: Optional[str] = None
