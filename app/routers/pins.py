from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pymongo.database import Database

from ..db import get_db
from ..models.pin_model import (
    BatchDeleteRequest,
    BoardCreate,
    BoardUpdate,
    CommentCreate,
    PinCreate,
    SaveRequest,
)
from ..models.refs import parse_board_ref, parse_pin_ref
from ..services import board_service, feed, mirror, pin_store, save_service
from ..services.auth_service import get_current_user, get_current_user_optional
from ..services.unsplash import UnsplashGateway, build_gateway
from ..services.visibility import VisibilityPolicy

router = APIRouter(prefix="/pins", tags=["Pins"])


def get_unsplash_gateway() -> UnsplashGateway:
    return build_gateway()


# ---------- Pins ----------

@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_pin(
    data: PinCreate,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return pin_store.create_pin(db, user["user_id"], data)


@router.get("", response_model=list[dict])
async def list_pins(
    board: Optional[str] = Query(default=None),
    boardId: Optional[str] = Query(default=None),
    userId: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """
    Pins newest first. Without userId this is the public feed (no private
    pins, no saved clones); with it, that user's own and saved pins.
    """
    policy = VisibilityPolicy.for_request(userId, user["user_id"])
    return pin_store.query_pins(db, policy, board=board, board_id=boardId, search=search)


@router.post("/delete-batch")
async def delete_pins(
    data: BatchDeleteRequest,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    deleted = pin_store.delete_pins(db, data.pinIds, user["user_id"])
    return {"message": f"{deleted} pins deleted successfully", "deletedCount": deleted}


@router.post("/save/{pin_id}", status_code=status.HTTP_201_CREATED)
async def save_pin(
    pin_id: str,
    data: SaveRequest,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
    gateway: UnsplashGateway = Depends(get_unsplash_gateway),
):
    saved = await save_service.save_pin(
        db, gateway, parse_pin_ref(pin_id), user["user_id"], data.boardName, data.createNewBoard
    )
    return {"message": "Pin saved successfully", "pinId": str(saved["_id"])}


# ---------- Feeds ----------

@router.get("/for-you", response_model=list[dict])
async def for_you(
    db: Database = Depends(get_db),
    gateway: UnsplashGateway = Depends(get_unsplash_gateway),
):
    return await feed.compose_discovery_feed(db, gateway)


@router.get("/search", response_model=list[dict])
async def search(
    q: str = Query(default=""),
    page: int = Query(1, ge=1),
    db: Database = Depends(get_db),
    gateway: UnsplashGateway = Depends(get_unsplash_gateway),
):
    return await feed.compose_search_results(db, gateway, q, page=page)


# ---------- Boards ----------

@router.get("/boards")
async def public_boards(db: Database = Depends(get_db)):
    """Distinct board names that have public pins, for the home tabs."""
    return pin_store.public_board_names(db)


@router.post("/boards", status_code=status.HTTP_201_CREATED)
async def create_board(
    data: BoardCreate,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return board_service.create_board(db, user["user_id"], data)


@router.get("/user-boards", response_model=list[dict])
async def user_boards(
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return board_service.list_boards_for_user(db, user["user_id"])


@router.get("/boards/{board_id}")
async def board_details(
    board_id: str,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return board_service.get_board_details(db, user["user_id"], parse_board_ref(board_id))


@router.put("/boards/{board_id}")
async def update_board(
    board_id: str,
    data: BoardUpdate,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return board_service.update_board(db, user["user_id"], parse_board_ref(board_id), data)


@router.delete("/boards/{board_id}")
async def delete_board(
    board_id: str,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    deleted = board_service.delete_board(db, user["user_id"], parse_board_ref(board_id))
    return {"message": "Board deleted successfully", "deletedPins": deleted}


# ---------- Single pin ----------

@router.post("/{pin_id}/comment", response_model=list[dict])
async def comment(
    pin_id: str,
    data: CommentCreate,
    user=Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Append a comment and return the pin's full comment list."""
    return mirror.add_comment(db, parse_pin_ref(pin_id), user["user_id"], data.text, data.unsplashData)


@router.get("/{pin_id}", response_model=dict)
async def get_pin(
    pin_id: str,
    user=Depends(get_current_user_optional),
    db: Database = Depends(get_db),
    gateway: UnsplashGateway = Depends(get_unsplash_gateway),
):
    requester = user["user_id"] if user else None
    return await pin_store.find_by_id(db, gateway, parse_pin_ref(pin_id), requester)
