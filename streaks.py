"""
Habit completion logging.

The streak is bumped by one on every logged completion, whatever the date
and whether or not that date was already logged. It counts completions
rather than consecutive days.
"""
import logging
from typing import Any, Dict

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import create_document, now, to_object_id
from errors import NotFound
from repositories import serialize, validate
from schemas import HabitLog

logger = logging.getLogger(__name__)


def log_habit(db: Database, habit_id: str, user_id: str, completion_date: str) -> Dict[str, Any]:
    # TODO: switch to a consecutive-day streak (reset to 1 on a gap) once product confirms the intended meaning
    log = validate(HabitLog, {"habit_id": habit_id, "completed_date": completion_date}).model_dump()
    oid = to_object_id(habit_id)
    if oid is None:
        raise NotFound("Habit not found")

    # Ownership check and counter bump in one query
    habit = db["habit"].find_one_and_update(
        {"_id": oid, "user_id": user_id},
        {"$inc": {"streak": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if habit is None:
        raise NotFound("Habit not found")

    log["created_at"] = now()
    try:
        doc = create_document(db, "habitlog", log)
    except PyMongoError:
        db["habit"].update_one({"_id": oid, "user_id": user_id}, {"$inc": {"streak": -1}})
        raise
    logger.debug("Logged habit %s on %s, streak now %s", habit_id, completion_date, habit["streak"])
    return serialize(doc)
