from datetime import datetime, timedelta
from typing import Callable, Optional

import httpx
import mongomock
from bson import ObjectId

from app.db import ensure_indexes
from app.services.unsplash import UnsplashGateway

BASE_TIME = datetime(2025, 1, 1, 12, 0, 0)


def make_db():
    db = mongomock.MongoClient().innerglow_test
    ensure_indexes(db)
    return db


def add_user(db, username: str) -> str:
    user_id = ObjectId()
    db["users"].insert_one(
        {
            "_id": user_id,
            "username": username,
            "fullName": username.title(),
            "profileImage": f"https://img.example/{username}.png",
            "email": f"{username}@example.com",
        }
    )
    return str(user_id)


_counter = {"n": 0}


def add_pin(db, user_id: str, **fields) -> dict:
    """Insert a pin straight into the store; each call is one minute newer than the last."""
    _counter["n"] += 1
    created = BASE_TIME + timedelta(minutes=_counter["n"])
    doc = {
        "userId": user_id,
        "originalAuthor": None,
        "title": "A pin",
        "description": "",
        "board": "Travel",
        "boardId": None,
        "images": [{"url": f"https://img.example/{_counter['n']}.jpg", "width": 400, "height": 600}],
        "isPrivate": False,
        "isSaved": False,
        "comments": [],
        "unsplashId": None,
        "createdAt": created,
        "updatedAt": created,
    }
    doc.update(fields)
    doc["_id"] = db["pins"].insert_one(doc).inserted_id
    return doc


def unsplash_photo(photo_id: str, description: Optional[str] = "Misty lake", alt: Optional[str] = "a lake") -> dict:
    return {
        "id": photo_id,
        "description": description,
        "alt_description": alt,
        "width": 4000,
        "height": 6000,
        "created_at": "2024-05-01T10:00:00Z",
        "urls": {"regular": f"https://images.unsplash.com/{photo_id}?w=1080", "small": "ignored"},
        "user": {
            "username": "jdoe",
            "name": "Jane Doe",
            "profile_image": {"medium": "https://images.unsplash.com/profile-jdoe"},
        },
    }


def unsplash_handler(photos: list, fail: bool = False) -> Callable:
    """A MockTransport handler serving /search/photos and /photos/<id> from `photos`."""
    by_id = {p["id"]: p for p in photos}

    def handler(request: httpx.Request) -> httpx.Response:
        if fail:
            return httpx.Response(500, json={"errors": ["boom"]})
        if request.url.path == "/search/photos":
            return httpx.Response(200, json={"total": len(photos), "results": photos})
        if request.url.path.startswith("/photos/"):
            photo = by_id.get(request.url.path.rsplit("/", 1)[-1])
            if photo is None:
                return httpx.Response(404, json={"errors": ["Couldn't find Photo"]})
            return httpx.Response(200, json=photo)
        return httpx.Response(404)

    return handler


def make_gateway(photos: Optional[list] = None, fail: bool = False, access_key: Optional[str] = "test-key", cache=None):
    return UnsplashGateway(
        access_key=access_key,
        base_url="https://api.unsplash.test",
        cache=cache,
        transport=httpx.MockTransport(unsplash_handler(photos or [], fail=fail)),
    )


class FakeCache:
    """The two redis calls the gateway makes, backed by a dict."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
