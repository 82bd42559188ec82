"""
Boards come in two kinds:

- explicit: a document in `boards`, unique per (userId, name)
- implicit: a `board` string on a user's pins with no matching document,
  left over from before boards were stored. They are listed and readable as
  "implicit-<name>" and only become documents when the user edits them.
"""
import logging
from typing import Optional

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..db import create_or_reread
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models.pin_model import BoardCreate, BoardUpdate
from ..models.refs import BoardRef, ExplicitBoardRef, ImplicitBoardRef, implicit_board_id
from ..utils import serialize, utcnow
from .pin_store import NEWEST_FIRST, populate_pins

logger = logging.getLogger(__name__)


def _clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Board name is required")
    return name


def _new_board(user_id: str, name: str, is_private: bool = False, description: str = "") -> dict:
    now = utcnow()
    return {
        "userId": user_id,
        "name": name,
        "isPrivate": is_private,
        "description": description,
        "createdAt": now,
        "updatedAt": now,
    }


def _explicit_view(board: dict) -> dict:
    view = serialize(board)
    view["isImplicit"] = False
    view.setdefault("description", "")
    return view


def _implicit_view(user_id: str, name: str) -> dict:
    return {
        "_id": implicit_board_id(name),
        "userId": user_id,
        "name": name,
        "isPrivate": False,
        "description": "",
        "isImplicit": True,
    }


def find_board(db: Database, user_id: str, name: str) -> Optional[dict]:
    return db["boards"].find_one({"userId": user_id, "name": name})


def resolve_or_create_board(
    db: Database,
    user_id: str,
    name: str,
    create_if_missing: bool = True,
    default_private: bool = False,
) -> Optional[dict]:
    """
    The user's board called `name`. When it doesn't exist, create it if asked,
    otherwise return None and let the caller treat the name as an implicit board.
    """
    name = _clean_name(name)
    existing = find_board(db, user_id, name)
    if existing is not None or not create_if_missing:
        return existing
    board = create_or_reread(
        db["boards"],
        _new_board(user_id, name, is_private=default_private),
        {"userId": user_id, "name": name},
    )
    logger.info("Resolved board %r for user %s as %s", name, user_id, board["_id"])
    return board


def create_board(db: Database, user_id: str, data: BoardCreate) -> dict:
    name = _clean_name(data.name)
    board = _new_board(user_id, name, is_private=data.isPrivate, description=(data.description or "").strip())
    try:
        board["_id"] = db["boards"].insert_one(board).inserted_id
    except DuplicateKeyError:
        raise ConflictError(f"You already have a board named '{name}'")
    logger.info("User %s created board %r", user_id, name)
    return _explicit_view(board)


def _cover_image(db: Database, query: dict) -> Optional[str]:
    latest = db["pins"].find_one(query, sort=NEWEST_FIRST)
    if not latest or not latest.get("images"):
        return None
    return latest["images"][0].get("url")


def list_boards_for_user(db: Database, user_id: str) -> list:
    explicit = list(db["boards"].find({"userId": user_id}).sort(NEWEST_FIRST))
    known = {b["name"] for b in explicit}
    names = db["pins"].distinct("board", {"userId": user_id})
    implicit = sorted({n for n in names if n and n not in known})

    views = []
    for board in explicit:
        view = _explicit_view(board)
        view["coverImage"] = _cover_image(
            db, {"userId": user_id, "$or": [{"boardId": board["_id"]}, {"board": board["name"]}]}
        )
        views.append(view)
    for name in implicit:
        view = _implicit_view(user_id, name)
        view["coverImage"] = _cover_image(db, {"userId": user_id, "board": name})
        views.append(view)
    return views


def _owned_board(db: Database, user_id: str, ref: ExplicitBoardRef) -> dict:
    board = db["boards"].find_one({"_id": ref.board_id, "userId": user_id})
    if board is None:
        raise NotFoundError("Board not found")
    return board


def get_board_details(db: Database, user_id: str, ref: BoardRef) -> dict:
    if isinstance(ref, ImplicitBoardRef):
        docs = list(db["pins"].find({"board": ref.name, "userId": user_id}).sort(NEWEST_FIRST))
        if not docs:
            raise NotFoundError("Board not found")
        return {"board": _implicit_view(user_id, ref.name), "pins": populate_pins(db, docs)}

    board = _owned_board(db, user_id, ref)
    # pins linked by id, plus legacy pins that only carry the board name
    docs = list(
        db["pins"]
        .find({"$or": [{"boardId": board["_id"]}, {"board": board["name"], "userId": user_id}]})
        .sort(NEWEST_FIRST)
    )
    return {"board": _explicit_view(board), "pins": populate_pins(db, docs)}


def _ensure_name_free(db: Database, user_id: str, name: str) -> None:
    if find_board(db, user_id, name) is not None:
        raise ConflictError(f"You already have a board named '{name}'")


def update_board(db: Database, user_id: str, ref: BoardRef, changes: BoardUpdate) -> dict:
    new_name = _clean_name(changes.name) if changes.name is not None else None

    if isinstance(ref, ImplicitBoardRef):
        return _materialize_implicit(db, user_id, ref, new_name, changes)

    board = _owned_board(db, user_id, ref)
    updates = {}
    if new_name and new_name != board["name"]:
        _ensure_name_free(db, user_id, new_name)
        updates["name"] = new_name
    if changes.description is not None:
        updates["description"] = changes.description.strip()
    if changes.isPrivate is not None:
        updates["isPrivate"] = changes.isPrivate
    if not updates:
        return _explicit_view(board)

    updates["updatedAt"] = utcnow()
    try:
        updated = db["boards"].find_one_and_update(
            {"_id": board["_id"], "userId": user_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise ConflictError(f"You already have a board named '{new_name}'")
    if updated is None:
        raise NotFoundError("Board not found")

    if "name" in updates:
        # linked pins, plus the owner's legacy pins that only carry the old name
        moved = db["pins"].update_many(
            {
                "$or": [
                    {"boardId": board["_id"]},
                    {"userId": user_id, "board": board["name"], "boardId": None},
                ]
            },
            {"$set": {"board": new_name}},
        )
        logger.info(
            "Renamed board %s from %r to %r (%d pins)",
            board["_id"], board["name"], new_name, moved.modified_count,
        )
    return _explicit_view(updated)


def _materialize_implicit(
    db: Database, user_id: str, ref: ImplicitBoardRef, new_name: Optional[str], changes: BoardUpdate
) -> dict:
    """First edit of an implicit board: create its document and link its pins to it."""
    if db["pins"].count_documents({"userId": user_id, "board": ref.name}) == 0:
        raise NotFoundError("Board not found")

    name = new_name or ref.name
    _ensure_name_free(db, user_id, name)
    board = _new_board(
        user_id,
        name,
        is_private=bool(changes.isPrivate),
        description=(changes.description or "").strip(),
    )
    try:
        board["_id"] = db["boards"].insert_one(board).inserted_id
    except DuplicateKeyError:
        raise ConflictError(f"You already have a board named '{name}'")

    linked = db["pins"].update_many(
        {"userId": user_id, "board": ref.name, "boardId": None},
        {"$set": {"boardId": board["_id"], "board": name}},
    )
    logger.info(
        "Materialized implicit board %r for user %s as %s (%d pins linked)",
        ref.name, user_id, board["_id"], linked.modified_count,
    )
    return _explicit_view(board)


def delete_board(db: Database, user_id: str, ref: BoardRef) -> int:
    """
    Delete an explicit board and the pins linked to it by boardId.

    Pins that only name the board (no boardId) are left in place and show up
    afterwards as an implicit board of the same name.
    """
    if isinstance(ref, ImplicitBoardRef):
        raise ValidationError("Implicit boards cannot be deleted")

    board = db["boards"].find_one_and_delete({"_id": ref.board_id, "userId": user_id})
    if board is None:
        raise NotFoundError("Board not found")
    result = db["pins"].delete_many({"boardId": ref.board_id})
    logger.info("User %s deleted board %r and %d pins", user_id, board["name"], result.deleted_count)
    return result.deleted_count
