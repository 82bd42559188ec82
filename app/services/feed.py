import logging
import random
import re
from typing import Optional

from pymongo.database import Database

from ..config import settings
from ..errors import UnavailableError
from ..models.refs import external_pin_id
from .pin_store import NEWEST_FIRST, populate_pins
from .unsplash import UnsplashGateway
from .visibility import VisibilityPolicy

logger = logging.getLogger(__name__)


def dedupe_pins(pins: list) -> list:
    """
    Keep the first pin per id. A local mirror also claims its provider id, so
    a stale provider result for an already mirrored photo is dropped.
    """
    seen = set()
    out = []
    for pin in pins:
        keys = {pin.get("_id")}
        if pin.get("unsplashId") and not pin.get("isSaved"):
            keys.add(external_pin_id(pin["unsplashId"]))
        if keys & seen:
            continue
        seen |= keys
        out.append(pin)
    return out


async def _external_or_empty(gateway: UnsplashGateway, query: str, page: int, per_page: int) -> list:
    try:
        return await gateway.search(query, page=page, per_page=per_page)
    except UnavailableError:
        logger.info("Photo provider not configured, serving local pins only")
        return []


async def compose_discovery_feed(
    db: Database,
    gateway: UnsplashGateway,
    rng: Optional[random.Random] = None,
    local_limit: Optional[int] = None,
    external_count: Optional[int] = None,
    query: Optional[str] = None,
) -> list:
    """Newest public pins plus a batch of provider photos, shuffled together."""
    local_docs = list(
        db["pins"]
        .find(VisibilityPolicy.public().to_filter())
        .sort(NEWEST_FIRST)
        .limit(local_limit or settings.FEED_LOCAL_LIMIT)
    )
    external = await _external_or_empty(
        gateway,
        query or settings.FEED_DEFAULT_QUERY,
        page=1,
        per_page=external_count or settings.FEED_EXTERNAL_COUNT,
    )

    feed = dedupe_pins(populate_pins(db, local_docs) + external)
    # cosmetic only, hides the seam between local and provider pins
    (rng or random).shuffle(feed)
    return feed


async def compose_search_results(
    db: Database,
    gateway: UnsplashGateway,
    query: Optional[str],
    page: int = 1,
    page_size: Optional[int] = None,
    local_limit: Optional[int] = None,
) -> list:
    """Local title/description matches first, then provider results. Empty query, empty result."""
    query = (query or "").strip()
    if not query:
        return []

    pattern = re.escape(query)
    local_filter = VisibilityPolicy.public().to_filter()
    local_filter["$or"] = [
        {"title": {"$regex": pattern, "$options": "i"}},
        {"description": {"$regex": pattern, "$options": "i"}},
    ]
    local_docs = list(
        db["pins"].find(local_filter).sort(NEWEST_FIRST).limit(local_limit or settings.LOCAL_SEARCH_LIMIT)
    )
    external = await _external_or_empty(gateway, query, page=page, per_page=page_size or settings.SEARCH_PAGE_SIZE)

    return dedupe_pins(populate_pins(db, local_docs) + external)
