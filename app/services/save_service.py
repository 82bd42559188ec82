import copy
import logging

from pymongo.database import Database

from ..errors import ValidationError
from ..models.refs import PinRef
from ..utils import utcnow
from .board_service import resolve_or_create_board
from .pin_store import load_pin
from .unsplash import UnsplashGateway

logger = logging.getLogger(__name__)


async def save_pin(
    db: Database,
    gateway: UnsplashGateway,
    source_ref: PinRef,
    user_id: str,
    board_name: str,
    create_new_board: bool,
) -> dict:
    """
    Clone a pin into the user's collection.

    With create_new_board the target board is found or created; without it an
    unknown name stays an implicit board (no boardId). Saving the same pin
    twice makes two clones, nothing deduplicates.
    """
    board_name = (board_name or "").strip()
    if not board_name:
        raise ValidationError("boardName is required")

    source = await load_pin(db, gateway, source_ref, requester_id=user_id)
    if source.get("isExternal"):
        original_author = None
    else:
        original_author = source.get("originalAuthor") or source.get("userId")

    board = resolve_or_create_board(db, user_id, board_name, create_if_missing=create_new_board)

    now = utcnow()
    doc = {
        "userId": user_id,
        "originalAuthor": original_author,
        "title": source.get("title"),
        "description": source.get("description") or "",
        "board": board["name"] if board else board_name,
        "boardId": board["_id"] if board else None,
        "images": copy.deepcopy(source.get("images") or []),
        "isPrivate": False,
        "isSaved": True,
        "comments": [],
        "unsplashId": source.get("unsplashId"),
        "createdAt": now,
        "updatedAt": now,
    }
    doc["_id"] = db["pins"].insert_one(doc).inserted_id
    logger.info("User %s saved %s to board %r as %s", user_id, source.get("_id"), doc["board"], doc["_id"])
    return doc
