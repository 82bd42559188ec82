import logging
import re
from typing import Iterable, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from ..errors import NotFoundError, ValidationError
from ..models.pin_model import PinCreate
from ..models.refs import ExternalPinRef, LocalPinRef, PinRef
from ..utils import serialize, to_object_id, utcnow
from .unsplash import UnsplashGateway
from .visibility import VisibilityPolicy

logger = logging.getLogger(__name__)

USER_FIELDS = {"username": 1, "profileImage": 1, "fullName": 1}
NEWEST_FIRST = [("createdAt", -1), ("_id", -1)]


# ---------- population ----------

def _load_users(db: Database, user_ids: Iterable) -> dict:
    oids = {oid for oid in (to_object_id(u) for u in user_ids if u) if oid is not None}
    if not oids:
        return {}
    found = db["users"].find({"_id": {"$in": list(oids)}}, USER_FIELDS)
    return {str(u["_id"]): serialize(u) for u in found}


def _render_comments(comments: list, users: dict) -> list:
    out = []
    for c in serialize(comments):
        c["user"] = users.get(c.get("user"), c.get("user"))
        out.append(c)
    return out


def populate_comments(db: Database, comments: list) -> list:
    users = _load_users(db, [str(c.get("user")) for c in comments])
    return _render_comments(comments, users)


def populate_pins(db: Database, docs: list) -> list:
    """Serialize pins, swapping user ids for {_id, username, profileImage, fullName}."""
    ids = set()
    for d in docs:
        ids.add(str(d.get("userId")))
        if d.get("originalAuthor"):
            ids.add(str(d["originalAuthor"]))
        ids.update(str(c.get("user")) for c in d.get("comments", []))
    users = _load_users(db, ids)

    out = []
    for d in docs:
        pin = serialize(d)
        pin["userId"] = users.get(pin.get("userId"), pin.get("userId"))
        if pin.get("originalAuthor"):
            pin["originalAuthor"] = users.get(pin["originalAuthor"], pin["originalAuthor"])
        pin["comments"] = _render_comments(d.get("comments", []), users)
        out.append(pin)
    return out


def populate_pin(db: Database, doc: dict) -> dict:
    return populate_pins(db, [doc])[0]


# ---------- reads ----------

def ensure_visible(doc: dict, requester_id: Optional[str]) -> dict:
    """Private pins exist only for their owner; everyone else gets NotFound."""
    if doc.get("isPrivate") and doc.get("userId") != requester_id:
        raise NotFoundError("Pin not found")
    return doc


def find_mirror(db: Database, external_id: str) -> Optional[dict]:
    return db["pins"].find_one({"unsplashId": external_id, "isSaved": {"$ne": True}})


def find_local_pin(db: Database, pin_id: ObjectId, requester_id: Optional[str] = None) -> dict:
    doc = db["pins"].find_one({"_id": pin_id})
    if doc is None:
        raise NotFoundError("Pin not found")
    return ensure_visible(doc, requester_id)


async def load_pin(
    db: Database, gateway: UnsplashGateway, ref: PinRef, requester_id: Optional[str] = None
) -> dict:
    """
    Raw pin for `ref`: the stored document, or for an external id its local
    mirror if one exists, else the live provider projection.
    """
    if isinstance(ref, LocalPinRef):
        return find_local_pin(db, ref.pin_id, requester_id)
    if isinstance(ref, ExternalPinRef):
        mirror = find_mirror(db, ref.external_id)
        if mirror is not None:
            return mirror
        transient = await gateway.get_photo(ref.external_id)
        if transient is None:
            raise NotFoundError("Pin not found")
        return transient
    raise TypeError(f"unknown pin reference {ref!r}")


async def find_by_id(
    db: Database, gateway: UnsplashGateway, ref: PinRef, requester_id: Optional[str] = None
) -> dict:
    pin = await load_pin(db, gateway, ref, requester_id)
    if pin.get("isExternal"):
        return pin
    return populate_pin(db, pin)


def query_pins(
    db: Database,
    policy: VisibilityPolicy,
    board: Optional[str] = None,
    board_id: Optional[str] = None,
    search: Optional[str] = None,
) -> list:
    query = policy.to_filter()
    if board:
        query["board"] = board
    if board_id:
        oid = to_object_id(board_id)
        if oid is None:
            return []
        query["boardId"] = oid
    if search and search.strip():
        pattern = re.escape(search.strip())
        query["$or"] = [
            {field: {"$regex": pattern, "$options": "i"}}
            for field in ("title", "description", "board")
        ]

    docs = list(db["pins"].find(query).sort(NEWEST_FIRST))
    return populate_pins(db, docs)


def public_board_names(db: Database) -> list:
    names = db["pins"].distinct("board", VisibilityPolicy.public().to_filter())
    return sorted(n for n in names if n)


# ---------- writes ----------

def create_pin(db: Database, user_id: str, data: PinCreate) -> dict:
    board_name = data.board
    board_id = None
    if data.boardId:
        board_id = to_object_id(data.boardId)
        board = db["boards"].find_one({"_id": board_id, "userId": user_id}) if board_id else None
        if board is None:
            raise NotFoundError("Board not found")
        board_name = board["name"]

    now = utcnow()
    doc = {
        "userId": user_id,
        "originalAuthor": None,
        "title": data.title,
        "description": (data.description or "").strip(),
        "board": board_name,
        "boardId": board_id,
        "images": [img.model_dump() for img in data.images],
        "isPrivate": data.isPrivate,
        "isSaved": False,  # only clones are saved pins
        "comments": [],
        "unsplashId": None,
        "createdAt": now,
        "updatedAt": now,
    }
    doc["_id"] = db["pins"].insert_one(doc).inserted_id
    logger.info("User %s created pin %s on board %r", user_id, doc["_id"], board_name)
    return populate_pin(db, doc)


def delete_pins(db: Database, pin_ids: list, owner_id: str) -> int:
    """Delete the caller's pins among `pin_ids`; ids owned by others are skipped."""
    if not pin_ids:
        raise ValidationError("No pins provided for deletion")
    oids = [oid for oid in (to_object_id(p) for p in pin_ids) if oid is not None]
    if not oids:
        return 0
    result = db["pins"].delete_many({"_id": {"$in": oids}, "userId": owner_id})
    logger.info("User %s deleted %d of %d requested pins", owner_id, result.deleted_count, len(pin_ids))
    return result.deleted_count


def clean_comment_text(text: Optional[str]) -> str:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Comment text is required")
    return text


def append_comment(db: Database, pin_id: ObjectId, author_id: str, text: str) -> list:
    comment = {
        "_id": ObjectId(),
        "user": author_id,
        "text": clean_comment_text(text),
        "createdAt": utcnow(),
    }
    doc = db["pins"].find_one_and_update(
        {"_id": pin_id},
        {"$push": {"comments": comment}, "$set": {"updatedAt": comment["createdAt"]}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFoundError("Pin not found")
    return populate_comments(db, doc.get("comments", []))
