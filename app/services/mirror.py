"""
Writes against external pins.

A provider pin has no document until someone writes to it, so a write runs
in two steps: `resolve_target` says what the id currently points at, and only
on NeedsMirror does the caller `materialize` a local copy from the data the
client sent along.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..errors import MissingMirrorDataError, NotFoundError
from ..models.pin_model import MirrorPayload
from ..models.refs import ExternalPinRef, LocalPinRef, PinRef
from ..utils import utcnow
from .pin_store import append_comment, clean_comment_text, ensure_visible, find_mirror
from .unsplash import EXTERNAL_BOARD

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Persisted:
    pin: dict


@dataclass(frozen=True)
class NeedsMirror:
    external_id: str


@dataclass(frozen=True)
class Missing:
    ref: PinRef


ResolvedTarget = Union[Persisted, NeedsMirror, Missing]


def resolve_target(db: Database, ref: PinRef) -> ResolvedTarget:
    if isinstance(ref, LocalPinRef):
        doc = db["pins"].find_one({"_id": ref.pin_id})
        return Persisted(doc) if doc is not None else Missing(ref)
    if isinstance(ref, ExternalPinRef):
        mirror = find_mirror(db, ref.external_id)
        return Persisted(mirror) if mirror is not None else NeedsMirror(ref.external_id)
    raise TypeError(f"unknown pin reference {ref!r}")


def materialize(
    db: Database, target: NeedsMirror, payload: Optional[MirrorPayload], user_id: str
) -> dict:
    """
    Store a local copy of an external pin, owned by the user who first wrote to it.

    The upsert keys on unsplashId and the unique_mirror index rejects a second
    concurrent insert; the loser re-reads and returns the winner's mirror.
    """
    if payload is None or not (payload.title or "").strip() or not payload.images:
        raise MissingMirrorDataError("This pin needs unsplashData (title and images) to be stored")

    now = utcnow()
    fields = {
        "userId": user_id,
        "originalAuthor": None,
        "title": payload.title.strip(),
        "description": (payload.description or "").strip(),
        "board": (payload.board or "").strip() or EXTERNAL_BOARD,
        "boardId": None,
        "images": [img.model_dump() for img in payload.images],
        "isPrivate": False,
        "comments": [],
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        doc = db["pins"].find_one_and_update(
            {"unsplashId": target.external_id, "isSaved": False},
            {"$setOnInsert": fields},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        doc = find_mirror(db, target.external_id)
        if doc is None:
            raise
        logger.info("Lost mirror race for %s, using %s", target.external_id, doc["_id"])
        return doc
    logger.info("Mirrored external pin %s as %s", target.external_id, doc["_id"])
    return doc


def add_comment(
    db: Database,
    ref: PinRef,
    author_id: str,
    text: Optional[str],
    payload: Optional[MirrorPayload] = None,
) -> list:
    text = clean_comment_text(text)

    target = resolve_target(db, ref)
    if isinstance(target, Missing):
        raise NotFoundError("Pin not found")
    if isinstance(target, NeedsMirror):
        pin = materialize(db, target, payload, author_id)
    else:
        pin = ensure_visible(target.pin, author_id)

    return append_comment(db, pin["_id"], author_id, text)
