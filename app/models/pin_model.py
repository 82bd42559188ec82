from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class PinImage(BaseModel):
    url: str
    # optional, lets the client lay out a masonry grid before the image loads
    width: Optional[int] = None
    height: Optional[int] = None


class PinCreate(BaseModel):
    title: str
    description: Optional[str] = ""
    board: str
    boardId: Optional[str] = None
    images: List[PinImage] = []
    isPrivate: bool = False

    @field_validator("title", "board")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class BoardCreate(BaseModel):
    name: str
    description: Optional[str] = ""
    isPrivate: bool = False


class BoardUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    isPrivate: Optional[bool] = None


class BatchDeleteRequest(BaseModel):
    pinIds: List[str] = []


class SaveRequest(BaseModel):
    boardName: str
    createNewBoard: bool = False


class MirrorPayload(BaseModel):
    """What the client last saw of an external pin; enough to create a local copy."""
    title: Optional[str] = None
    description: Optional[str] = ""
    images: List[PinImage] = []
    board: Optional[str] = None


class CommentCreate(BaseModel):
    text: str = ""
    unsplashData: Optional[MirrorPayload] = Field(default=None)
