import unittest

from bson import ObjectId

from app.errors import NotFoundError, ValidationError
from app.models.pin_model import PinCreate
from app.models.refs import ExternalPinRef, LocalPinRef
from app.services import board_service, pin_store
from app.services.visibility import VisibilityPolicy
from tests.support import add_pin, add_user, make_db, make_gateway, unsplash_photo


class TestQueries(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_db()
        self.maya = add_user(self.db, "maya")
        self.omar = add_user(self.db, "omar")
        self.public = add_pin(self.db, self.maya, title="Sunrise hike")
        self.private = add_pin(self.db, self.maya, title="Diary page", isPrivate=True)
        self.saved = add_pin(self.db, self.maya, title="Saved lake", isSaved=True, originalAuthor=self.omar)
        self.others = add_pin(self.db, self.omar, title="Calm sea", board="Ocean")

    def ids(self, pins):
        return {p["_id"] for p in pins}

    def test_public_query_never_surfaces_private_or_saved(self) -> None:
        pins = pin_store.query_pins(self.db, VisibilityPolicy.public())
        self.assertEqual(self.ids(pins), {str(self.public["_id"]), str(self.others["_id"])})

    def test_owner_query_returns_everything_the_owner_has(self) -> None:
        pins = pin_store.query_pins(self.db, VisibilityPolicy.for_request(self.maya, self.maya))
        self.assertEqual(
            self.ids(pins),
            {str(self.public["_id"]), str(self.private["_id"]), str(self.saved["_id"])},
        )
        # newest first
        self.assertEqual(pins[0]["_id"], str(self.saved["_id"]))

    def test_owner_query_by_someone_else_hides_private(self) -> None:
        pins = pin_store.query_pins(self.db, VisibilityPolicy.for_request(self.maya, self.omar))
        self.assertEqual(self.ids(pins), {str(self.public["_id"]), str(self.saved["_id"])})

    def test_search_is_case_insensitive_over_title_description_board(self) -> None:
        policy = VisibilityPolicy.public()
        self.assertEqual(self.ids(pin_store.query_pins(self.db, policy, search="SUNRISE")), {str(self.public["_id"])})
        self.assertEqual(self.ids(pin_store.query_pins(self.db, policy, search="ocea")), {str(self.others["_id"])})
        # regex metacharacters are matched literally
        self.assertEqual(pin_store.query_pins(self.db, policy, search=".*"), [])

    def test_board_filters(self) -> None:
        board = board_service.resolve_or_create_board(self.db, self.omar, "Ocean")
        linked = add_pin(self.db, self.omar, board="Ocean", boardId=board["_id"])
        policy = VisibilityPolicy.public()

        self.assertEqual(
            self.ids(pin_store.query_pins(self.db, policy, board="Ocean")),
            {str(self.others["_id"]), str(linked["_id"])},
        )
        self.assertEqual(
            self.ids(pin_store.query_pins(self.db, policy, board_id=str(board["_id"]))),
            {str(linked["_id"])},
        )
        self.assertEqual(pin_store.query_pins(self.db, policy, board_id="nonsense"), [])

    def test_owner_and_original_author_are_populated(self) -> None:
        pins = pin_store.query_pins(self.db, VisibilityPolicy.for_request(self.maya, self.maya))
        saved = next(p for p in pins if p["_id"] == str(self.saved["_id"]))
        self.assertEqual(saved["userId"]["username"], "maya")
        self.assertEqual(saved["originalAuthor"]["username"], "omar")

    def test_public_board_names(self) -> None:
        add_pin(self.db, self.maya, board="Secret", isPrivate=True)
        self.assertEqual(pin_store.public_board_names(self.db), ["Ocean", "Travel"])


class TestWrites(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_db()
        self.maya = add_user(self.db, "maya")
        self.omar = add_user(self.db, "omar")

    def test_create_pin(self) -> None:
        pin = pin_store.create_pin(
            self.db,
            self.maya,
            PinCreate(title=" Lake ", board="Travel", images=[{"url": "https://img.example/l.jpg", "width": 3, "height": 4}]),
        )
        self.assertEqual(pin["title"], "Lake")
        self.assertFalse(pin["isSaved"])
        self.assertFalse(pin["isPrivate"])
        self.assertIsNone(pin["boardId"])
        self.assertEqual(pin["userId"]["username"], "maya")
        self.assertIn("createdAt", pin)

    def test_create_pin_with_board_id(self) -> None:
        board = board_service.resolve_or_create_board(self.db, self.maya, "Travel")
        pin = pin_store.create_pin(
            self.db, self.maya, PinCreate(title="Lake", board="Travel", boardId=str(board["_id"]))
        )
        self.assertEqual(pin["boardId"], str(board["_id"]))

        with self.assertRaises(NotFoundError):
            pin_store.create_pin(self.db, self.omar, PinCreate(title="x", board="Travel", boardId=str(board["_id"])))

    def test_required_fields(self) -> None:
        with self.assertRaises(ValueError):
            PinCreate(title="  ", board="Travel")
        with self.assertRaises(ValueError):
            PinCreate(title="Lake", board="")

    def test_batch_delete_skips_other_owners(self) -> None:
        a = add_pin(self.db, self.maya)
        b = add_pin(self.db, self.omar)
        c = add_pin(self.db, self.maya)

        count = pin_store.delete_pins(self.db, [str(a["_id"]), str(b["_id"]), str(c["_id"])], self.maya)

        self.assertEqual(count, 2)
        self.assertEqual([p["_id"] for p in self.db["pins"].find()], [b["_id"]])

    def test_batch_delete_requires_ids(self) -> None:
        with self.assertRaises(ValidationError):
            pin_store.delete_pins(self.db, [], self.maya)
        self.assertEqual(pin_store.delete_pins(self.db, ["garbage"], self.maya), 0)

    def test_append_comment(self) -> None:
        pin = add_pin(self.db, self.maya)
        pin_store.append_comment(self.db, pin["_id"], self.omar, "Lovely")
        comments = pin_store.append_comment(self.db, pin["_id"], self.maya, "  Thanks!  ")

        self.assertEqual([c["text"] for c in comments], ["Lovely", "Thanks!"])
        self.assertEqual(comments[0]["user"]["username"], "omar")

    def test_append_comment_rejects_empty_text(self) -> None:
        pin = add_pin(self.db, self.maya)
        with self.assertRaises(ValidationError):
            pin_store.append_comment(self.db, pin["_id"], self.maya, "   ")
        with self.assertRaises(NotFoundError):
            pin_store.append_comment(self.db, ObjectId(), self.maya, "hi")


class TestFindById(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.db = make_db()
        self.maya = add_user(self.db, "maya")
        self.gateway = make_gateway([unsplash_photo("lake1")])

    async def test_local_pin(self) -> None:
        pin = add_pin(self.db, self.maya, title="Mine")
        found = await pin_store.find_by_id(self.db, self.gateway, LocalPinRef(pin["_id"]))
        self.assertEqual(found["title"], "Mine")

        with self.assertRaises(NotFoundError):
            await pin_store.find_by_id(self.db, self.gateway, LocalPinRef(ObjectId()))

    async def test_private_pin_only_for_owner(self) -> None:
        pin = add_pin(self.db, self.maya, isPrivate=True)
        ref = LocalPinRef(pin["_id"])
        with self.assertRaises(NotFoundError):
            await pin_store.find_by_id(self.db, self.gateway, ref)
        found = await pin_store.find_by_id(self.db, self.gateway, ref, requester_id=self.maya)
        self.assertEqual(found["_id"], str(pin["_id"]))

    async def test_external_falls_back_to_provider(self) -> None:
        found = await pin_store.find_by_id(self.db, self.gateway, ExternalPinRef("lake1"))
        self.assertEqual(found["_id"], "unsplash-lake1")
        self.assertTrue(found["isExternal"])

        with self.assertRaises(NotFoundError):
            await pin_store.find_by_id(self.db, self.gateway, ExternalPinRef("nope"))

    async def test_external_prefers_local_mirror(self) -> None:
        mirror = add_pin(self.db, self.maya, title="Mirrored", unsplashId="lake1")
        found = await pin_store.find_by_id(self.db, self.gateway, ExternalPinRef("lake1"))
        self.assertEqual(found["_id"], str(mirror["_id"]))


if __name__ == "__main__":
    unittest.main()
