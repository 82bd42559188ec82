import logging

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from .config import settings

logger = logging.getLogger(__name__)

# MongoClient connects lazily, nothing is dialed until the first query
client = MongoClient(settings.MONGO_URI)

db = client[settings.MONGO_DB_NAME]
pins = db["pins"]
boards = db["boards"]
users = db["users"]


def get_db() -> Database:
    return db


def ensure_indexes(database: Database) -> None:
    """Create the indexes the pin service relies on. Safe to run on every startup."""
    database["boards"].create_index(
        [("userId", ASCENDING), ("name", ASCENDING)], unique=True, name="user_board_name"
    )
    database["pins"].create_index([("board", ASCENDING)])
    database["pins"].create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])
    database["pins"].create_index([("boardId", ASCENDING)])
    # one mirror per provider photo; saved clones share the id and are left out
    database["pins"].create_index(
        [("unsplashId", ASCENDING)],
        unique=True,
        name="unique_mirror",
        partialFilterExpression={"isSaved": False, "unsplashId": {"$type": "string"}},
    )
    logger.info("Mongo indexes ensured on %s", database.name)


def create_or_reread(collection: Collection, document: dict, key: dict) -> dict:
    """
    Insert `document`; if a unique index rejects it, return the record that won.

    `key` must select the same record the unique index guards, e.g.
    {"userId": ..., "name": ...} for boards.
    """
    try:
        result = collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document
    except DuplicateKeyError:
        existing = collection.find_one(key)
        if existing is None:
            # the winner was deleted between our insert and the re-read
            raise
        logger.info("Lost create race on %s %s, using existing record", collection.name, key)
        return existing
