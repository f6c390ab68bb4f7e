"""
Template seeding of a user's calendar.

On each authenticated request the days in the seeding horizon are checked;
a day that has no activity at all gets one row per template entry.
"""
import json
import logging
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import TypeAdapter
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import now
from repositories import ActivityRepository
from schemas import ScheduleSeed, Schema, Text, TimeStr

logger = logging.getLogger(__name__)


class TemplateEntry(Schema):
    title: Text
    start_time: TimeStr
    end_time: TimeStr


DEFAULT_TEMPLATE: List[TemplateEntry] = [
    TemplateEntry(title="Sleep", start_time="02:00", end_time="08:00"),
    TemplateEntry(title="School prep", start_time="08:01", end_time="09:30"),
    TemplateEntry(title="Sleep/Journal/Alone time", start_time="09:31", end_time="12:00"),
    TemplateEntry(title="Family duties", start_time="12:01", end_time="17:00"),
    TemplateEntry(title="Gaming time", start_time="17:01", end_time="19:00"),
    TemplateEntry(title="Homework time", start_time="19:01", end_time="20:00"),
    TemplateEntry(title="Cleanup time", start_time="20:01", end_time="21:00"),
    TemplateEntry(title="Show time", start_time="21:01", end_time="23:00"),
    TemplateEntry(title="Gaming time", start_time="23:01", end_time="02:00"),
]


def load_template(path: Optional[Union[str, Path]] = None) -> List[TemplateEntry]:
    """Read a template from a JSON list of {title, startTime, endTime}."""
    if path is None:
        return list(DEFAULT_TEMPLATE)
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return TypeAdapter(List[TemplateEntry]).validate_python(raw)


class ScheduleSeeder:
    seed_collection = "scheduleseed"

    def __init__(self, db: Database, template: Optional[List[TemplateEntry]] = None,
                 weekdays_only: bool = False):
        self.db = db
        self.activities = ActivityRepository(db)
        self.template = list(DEFAULT_TEMPLATE if template is None else template)
        self.weekdays_only = weekdays_only

    def ensure_scheduled(self, user_id: str, reference_date: date, horizon_days: int = 1) -> List[str]:
        """
        Seed every day in [reference_date, reference_date + horizon_days).

        Days are independent: a store failure on one day is logged and the
        remaining days are still processed. Returns the days that were seeded.
        """
        seeded = []
        for offset in range(horizon_days):
            day = reference_date + timedelta(days=offset)
            if self.weekdays_only and day.weekday() >= 5:
                continue
            try:
                if self._seed_day(user_id, day.isoformat()):
                    seeded.append(day.isoformat())
            except PyMongoError:
                logger.exception("Seeding %s for user %s failed", day.isoformat(), user_id)
        return seeded

    def _seed_day(self, user_id: str, day: str) -> bool:
        # Any activity, template or user-made, means the day is taken
        if self.activities.exists_on(user_id, day):
            return False
        try:
            claim = ScheduleSeed(user_id=user_id, date=day).model_dump()
            claim["created_at"] = now()
            self.db[self.seed_collection].insert_one(claim)
        except DuplicateKeyError:
            # A concurrent request claimed this day first
            return False
        items: List[Dict] = [
            {**entry.model_dump(), "date": day, "completed": False}
            for entry in self.template
        ]
        try:
            ids = self.activities.create_many(user_id, items)
        except PyMongoError:
            # Release the claim so a later request can seed the day
            self.db[self.seed_collection].delete_one({"user_id": user_id, "date": day})
            raise
        logger.info("Seeded %d template activities on %s for user %s", len(ids), day, user_id)
        return True
