from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class VisibilityPolicy:
    """
    Which pins a read may surface. Built once per request and handed down to
    every query so public views never show private pins or saved clones.
    """
    include_private: bool = False
    include_saved: bool = False
    owner_scope: Optional[str] = None

    @classmethod
    def public(cls) -> "VisibilityPolicy":
        return cls()

    @classmethod
    def for_request(cls, owner_id: Optional[str], requester_id: Optional[str]) -> "VisibilityPolicy":
        if not owner_id:
            return cls.public()
        # saved clones show on anyone's profile view of the owner,
        # private pins only when the owner is the one asking
        return cls(
            include_private=owner_id == requester_id,
            include_saved=True,
            owner_scope=owner_id,
        )

    def to_filter(self) -> dict:
        query: dict = {}
        if self.owner_scope is not None:
            query["userId"] = self.owner_scope
        if not self.include_private:
            query["isPrivate"] = {"$ne": True}
        if not self.include_saved:
            query["isSaved"] = {"$ne": True}
        return query
