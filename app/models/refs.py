"""
Typed references for the two places ids come in more than one shape.

Pins: a local ObjectId, or "unsplash-<photo id>" for provider content.
Boards: a Board document ObjectId, or "implicit-<name>" for boards that only
exist as a `board` string on legacy pins.

Route handlers parse the raw path id once with `parse_pin_ref` /
`parse_board_ref`; everything below them dispatches on the dataclass type.
"""
import re
from dataclasses import dataclass
from typing import Union

from bson import ObjectId

from ..errors import NotFoundError
from ..utils import to_object_id

EXTERNAL_PREFIX = "unsplash-"
IMPLICIT_PREFIX = "implicit-"

# provider photo ids are short url-safe slugs
EXTERNAL_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


@dataclass(frozen=True)
class LocalPinRef:
    pin_id: ObjectId


@dataclass(frozen=True)
class ExternalPinRef:
    external_id: str

    @property
    def namespaced_id(self) -> str:
        return external_pin_id(self.external_id)


PinRef = Union[LocalPinRef, ExternalPinRef]


@dataclass(frozen=True)
class ExplicitBoardRef:
    board_id: ObjectId


@dataclass(frozen=True)
class ImplicitBoardRef:
    name: str

    @property
    def board_id(self) -> str:
        return implicit_board_id(self.name)


BoardRef = Union[ExplicitBoardRef, ImplicitBoardRef]


def external_pin_id(external_id: str) -> str:
    return f"{EXTERNAL_PREFIX}{external_id}"


def implicit_board_id(name: str) -> str:
    return f"{IMPLICIT_PREFIX}{name}"


def parse_pin_ref(raw: str) -> PinRef:
    if raw.startswith(EXTERNAL_PREFIX):
        external_id = raw[len(EXTERNAL_PREFIX):]
        if EXTERNAL_ID_PATTERN.fullmatch(external_id):
            return ExternalPinRef(external_id)
        raise NotFoundError("Pin not found")
    oid = to_object_id(raw)
    if oid is None:
        raise NotFoundError("Pin not found")
    return LocalPinRef(oid)


def parse_board_ref(raw: str) -> BoardRef:
    if raw.startswith(IMPLICIT_PREFIX):
        name = raw[len(IMPLICIT_PREFIX):]
        if name:
            return ImplicitBoardRef(name)
        raise NotFoundError("Board not found")
    oid = to_object_id(raw)
    if oid is None:
        raise NotFoundError("Board not found")
    return ExplicitBoardRef(oid)
