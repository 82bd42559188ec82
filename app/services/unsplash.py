import json
import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..config import settings
from ..errors import UnavailableError
from ..models.refs import external_pin_id
from ..redis_client import redis_client

logger = logging.getLogger(__name__)

FALLBACK_TITLE = "Inspiration"
EXTERNAL_BOARD = "Unsplash"

SEARCH_CACHE_KEY_PREFIX = "unsplash:search"
PHOTO_CACHE_KEY_PREFIX = "unsplash:photo"


def map_photo(photo: dict) -> dict:
    """Turn an Unsplash photo record into the pin shape the client renders."""
    external_id = photo["id"]
    urls = photo.get("urls") or {}
    user = photo.get("user") or {}
    avatar = (user.get("profile_image") or {}).get("medium")
    title = photo.get("description") or photo.get("alt_description") or FALLBACK_TITLE
    return {
        "_id": external_pin_id(external_id),
        "unsplashId": external_id,
        "isExternal": True,
        "title": title,
        "description": photo.get("alt_description") or "",
        "board": EXTERNAL_BOARD,
        "images": [
            {
                "url": urls.get("regular"),
                "width": photo.get("width"),
                "height": photo.get("height"),
            }
        ],
        "userId": {
            "_id": f"unsplash-user-{user.get('username', 'unknown')}",
            "username": user.get("username"),
            "fullName": user.get("name"),
            "profileImage": avatar,
        },
        "comments": [],
        "createdAt": photo.get("created_at"),
    }


class UnsplashGateway:
    """
    Live photo lookups against Unsplash.

    Provider and network failures never escape: search degrades to [] and
    get_photo to None. A missing access key is different, that raises
    UnavailableError before any request is made.
    """

    def __init__(
        self,
        access_key: Optional[str],
        base_url: str = "https://api.unsplash.com",
        timeout: float = 10.0,
        cache: Any = None,
        cache_ttl: int = 900,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_key = access_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cache = cache
        self.cache_ttl = cache_ttl
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.access_key)

    def _require_credentials(self) -> None:
        if not self.configured:
            raise UnavailableError("Photo search is not available")

    async def _get_json(self, path: str, params: Optional[dict] = None) -> Any:
        headers = {
            "Authorization": f"Client-ID {self.access_key}",
            "Accept-Version": "v1",
        }
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            resp = await client.get(path, params=params, headers=headers)
            resp.raise_for_status()
            return resp.json()

    async def _cache_get(self, key: str) -> Any:
        if self.cache is None:
            return None
        try:
            cached = await self.cache.get(key)
        except Exception as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        return json.loads(cached) if cached else None

    async def _cache_set(self, key: str, value: Any) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.setex(key, self.cache_ttl, json.dumps(value))
        except Exception as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    async def search(self, query: str, page: int = 1, per_page: int = 20) -> list[dict]:
        self._require_credentials()
        query = query.strip()
        if not query:
            return []

        cache_key = f"{SEARCH_CACHE_KEY_PREFIX}:{query.lower()}:{page}:{per_page}"
        cached = await self._cache_get(cache_key)
        if cached is not None:
            return cached

        try:
            data = await self._get_json(
                "/search/photos",
                params={"query": query, "page": page, "per_page": per_page},
            )
            pins = [map_photo(photo) for photo in data.get("results", [])]
        except (httpx.HTTPError, ValueError, KeyError, AttributeError) as e:
            logger.warning("Unsplash search failed for %r: %s", query, e)
            return []

        await self._cache_set(cache_key, pins)
        return pins

    async def get_photo(self, external_id: str) -> Optional[dict]:
        self._require_credentials()

        cache_key = f"{PHOTO_CACHE_KEY_PREFIX}:{external_id}"
        cached = await self._cache_get(cache_key)
        if cached is not None:
            return cached

        try:
            pin = map_photo(await self._get_json(f"/photos/{quote(external_id, safe='')}"))
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, KeyError, AttributeError) as e:
            logger.info("Unsplash lookup failed for %s: %s", external_id, e)
            return None
        # reserved paths like /photos/random answer with some other photo
        if pin["unsplashId"] != external_id:
            logger.info("Unsplash lookup for %s returned photo %s", external_id, pin["unsplashId"])
            return None

        await self._cache_set(cache_key, pin)
        return pin


def build_gateway() -> UnsplashGateway:
    return UnsplashGateway(
        access_key=settings.UNSPLASH_ACCESS_KEY,
        base_url=settings.UNSPLASH_API_URL,
        timeout=settings.UNSPLASH_TIMEOUT_SECONDS,
        cache=redis_client,
        cache_ttl=settings.EXTERNAL_CACHE_TTL,
    )
