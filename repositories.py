"""
Ownership-scoped data access.

Every read and write on a per-user collection filters by the owning user's
id in the same query that performs it, so another user's rows behave
exactly like missing rows.
"""
import logging
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, now, to_object_id
from errors import NotFound, ValidationError
from schemas import (
    Activity,
    ActivityPatch,
    Habit,
    HabitPatch,
    JournalEntry,
    JournalEntryPatch,
    NotificationPreference,
    User,
)

logger = logging.getLogger(__name__)


def validate(model: Type[BaseModel], data: Dict[str, Any]) -> BaseModel:
    """Validate `data` against `model`, raising the API's ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        err = exc.errors()[0]
        field = ".".join(str(part) for part in err["loc"]) or None
        raise ValidationError(err["msg"], field=field) from exc


def serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = {k: v for k, v in doc.items() if k != "_id"}
    out["id"] = str(doc["_id"])
    return out


class OwnedRepository:
    collection: str
    schema: Type[BaseModel]
    patch_schema: Type[BaseModel]
    not_found = "Not found"
    sort = [("_id", ASCENDING)]

    def __init__(self, db: Database):
        self.db = db

    @property
    def coll(self):
        return self.db[self.collection]

    def _owned(self, item_id: str, user_id: str) -> Dict[str, Any]:
        oid = to_object_id(item_id)
        if oid is None:
            raise NotFound(self.not_found)
        return {"_id": oid, "user_id": user_id}

    def list(self, user_id: str, date: Optional[str] = None) -> List[Dict[str, Any]]:
        filt: Dict[str, Any] = {"user_id": user_id}
        if date:
            filt["date"] = date
        return [serialize(doc) for doc in get_documents(self.db, self.collection, filt, sort=self.sort)]

    def get(self, item_id: str, user_id: str) -> Dict[str, Any]:
        doc = self.coll.find_one(self._owned(item_id, user_id))
        if doc is None:
            raise NotFound(self.not_found)
        return serialize(doc)

    def _new_document(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return validate(self.schema, {**fields, "user_id": user_id}).model_dump()

    def create(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        doc = create_document(self.db, self.collection, self._new_document(user_id, fields))
        return serialize(doc)

    def update(self, item_id: str, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        filt = self._owned(item_id, user_id)
        changes = validate(self.patch_schema, fields).changes()
        if changes:
            doc = self.coll.find_one_and_update(filt, {"$set": changes}, return_document=ReturnDocument.AFTER)
        else:
            doc = self.coll.find_one(filt)
        if doc is None:
            raise NotFound(self.not_found)
        return serialize(doc)

    def delete(self, item_id: str, user_id: str) -> None:
        res = self.coll.delete_one(self._owned(item_id, user_id))
        if res.deleted_count == 0:
            raise NotFound(self.not_found)


class ActivityRepository(OwnedRepository):
    collection = "activity"
    schema = Activity
    patch_schema = ActivityPatch
    not_found = "Activity not found"
    sort = [("date", ASCENDING), ("start_time", ASCENDING), ("_id", ASCENDING)]

    def exists_on(self, user_id: str, date: str) -> bool:
        return self.coll.find_one({"user_id": user_id, "date": date}, {"_id": 1}) is not None

    def create_many(self, user_id: str, items: List[Dict[str, Any]]) -> List[str]:
        docs = [self._new_document(user_id, item) for item in items]
        if not docs:
            return []
        res = self.coll.insert_many(docs)
        return [str(oid) for oid in res.inserted_ids]


class JournalRepository(OwnedRepository):
    collection = "journalentry"
    schema = JournalEntry
    patch_schema = JournalEntryPatch
    not_found = "Journal entry not found"
    sort = [("created_at", ASCENDING), ("_id", ASCENDING)]

    def _new_document(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        # created_at is server-assigned
        fields = {k: v for k, v in fields.items() if k not in ("created_at", "createdAt")}
        doc = super()._new_document(user_id, fields)
        doc["created_at"] = now()
        return doc


class HabitRepository(OwnedRepository):
    collection = "habit"
    schema = Habit
    patch_schema = HabitPatch
    not_found = "Habit not found"

    def _new_document(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        fields = {k: v for k, v in fields.items() if k != "streak"}
        return super()._new_document(user_id, fields)

    def list(self, user_id: str, date: Optional[str] = None) -> List[Dict[str, Any]]:
        """Habits with their logs embedded; `date` narrows the embedded logs."""
        habits = [serialize(doc) for doc in get_documents(self.db, self.collection, {"user_id": user_id}, sort=self.sort)]
        if not habits:
            return []
        filt: Dict[str, Any] = {"habit_id": {"$in": [h["id"] for h in habits]}}
        if date:
            filt["completed_date"] = date
        logs_by_habit: Dict[str, List[Dict[str, Any]]] = {h["id"]: [] for h in habits}
        for log in get_documents(self.db, "habitlog", filt, sort=[("completed_date", ASCENDING), ("_id", ASCENDING)]):
            logs_by_habit[log["habit_id"]].append(serialize(log))
        for habit in habits:
            habit["logs"] = logs_by_habit[habit["id"]]
        return habits

    def list_logs(self, habit_id: str) -> List[Dict[str, Any]]:
        return [
            serialize(log)
            for log in get_documents(self.db, "habitlog", {"habit_id": habit_id},
                                     sort=[("completed_date", ASCENDING), ("_id", ASCENDING)])
        ]

    def delete(self, item_id: str, user_id: str) -> None:
        filt = self._owned(item_id, user_id)
        if self.coll.find_one(filt, {"_id": 1}) is None:
            raise NotFound(self.not_found)
        removed = self.db["habitlog"].delete_many({"habit_id": str(filt["_id"])}).deleted_count
        self.coll.delete_one(filt)
        logger.debug("Deleted habit %s with %d logs", item_id, removed)


class UserRepository:
    collection = "user"

    def __init__(self, db: Database):
        self.db = db

    def upsert(self, subject: str, email: Optional[str] = None, display_name: Optional[str] = None,
               avatar_url: Optional[str] = None) -> Dict[str, Any]:
        """Insert the profile or refresh the fields the identity provider supplied."""
        profile = {"email": email, "display_name": display_name, "avatar_url": avatar_url}
        validate(User, {"id": subject, **profile})
        supplied = {k: v for k, v in profile.items() if v is not None}
        on_insert = {k: None for k in profile if k not in supplied}
        on_insert["notifications"] = NotificationPreference().model_dump()
        on_insert["created_at"] = now()
        update: Dict[str, Any] = {"$setOnInsert": on_insert}
        if supplied:
            update["$set"] = supplied
        doc = self.db[self.collection].find_one_and_update(
            {"_id": subject},
            update,
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        logger.debug("Upserted user %s", subject)
        return serialize(doc)

    def update_notifications(self, user_id: str, preference: Dict[str, Any]) -> Dict[str, Any]:
        pref = validate(NotificationPreference, preference).model_dump()
        doc = self.db[self.collection].find_one_and_update(
            {"_id": user_id},
            {"$set": {"notifications": pref}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFound("User not found")
        return serialize(doc)
