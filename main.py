import logging
from contextlib import asynccontextmanager
from datetime import date as Date, datetime
from typing import Optional, List

from fastapi import FastAPI, Depends, Header, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, EmailStr, Field
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import JWTIdentityProvider, resolve_user
from config import Settings
from content import MOODS, quote_of_the_day
from database import connect, ensure_indexes
from errors import PlannerError, ValidationError
from logger import setup_logging
from repositories import ActivityRepository, HabitRepository, JournalRepository, UserRepository
from scheduling import ScheduleSeeder, load_template
from schemas import (
    DATE_PATTERN,
    ActivityPatch,
    DateStr,
    HabitPatch,
    JournalEntryPatch,
    NotificationPreference,
    Schema,
    Text,
    TimeStr,
)
from streaks import log_habit

logger = logging.getLogger(__name__)


# Utilities
class UserOut(Schema):
    id: str
    email: Optional[EmailStr] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    notifications: NotificationPreference
    created_at: Optional[datetime] = None

class ActivityIn(Schema):
    title: Text
    description: Optional[str] = None
    start_time: TimeStr
    end_time: TimeStr
    date: DateStr
    completed: bool = False

class ActivityOut(Schema):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    start_time: str
    end_time: str
    completed: bool
    date: str

class HabitIn(Schema):
    title: Text
    description: Optional[str] = None

class HabitLogIn(Schema):
    completion_date: DateStr = Field(..., validation_alias=AliasChoices("completionDate", "completion_date", "date"))

class HabitLogOut(Schema):
    id: str
    habit_id: str
    completed_date: str
    created_at: Optional[datetime] = None

class HabitOut(Schema):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    streak: int

class HabitWithLogsOut(HabitOut):
    logs: List[HabitLogOut] = []

class JournalEntryIn(Schema):
    content: Text
    mood: Optional[str] = None
    date: DateStr

class JournalEntryOut(Schema):
    id: str
    user_id: str
    content: str
    mood: Optional[str] = None
    date: str
    created_at: Optional[datetime] = None

class QuoteOut(Schema):
    text: str
    author: str

class MoodOut(Schema):
    label: str
    emoji: str


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_current_user(request: Request, authorization: Optional[str] = Header(None)) -> dict:
    state = request.app.state
    return resolve_user(
        authorization,
        state.identity_provider,
        UserRepository(state.db),
        seeder=state.seeder,
        horizon_days=state.settings.schedule_horizon_days,
    )


def get_activities(db: Database = Depends(get_db)) -> ActivityRepository:
    return ActivityRepository(db)


def get_habits(db: Database = Depends(get_db)) -> HabitRepository:
    return HabitRepository(db)


def get_journal(db: Database = Depends(get_db)) -> JournalRepository:
    return JournalRepository(db)


def _no_content() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Error handlers
async def planner_error_handler(request: Request, exc: PlannerError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

async def request_validation_handler(request: Request, exc: RequestValidationError):
    err = exc.errors()[0]
    loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header")]
    body = {"message": err.get("msg", "Invalid input")}
    if loc:
        body["field"] = ".".join(loc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)

async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)

async def internal_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    owns_client = app.state.db is None
    if owns_client:
        app.state.db = connect(settings.database_url, settings.database_name)
    try:
        ensure_indexes(app.state.db)
    except PyMongoError as e:
        logger.error("Could not create indexes: %s", e)
    app.state.seeder = ScheduleSeeder(
        app.state.db,
        template=load_template(settings.schedule_template_file),
        weekdays_only=settings.seed_weekdays_only,
    )
    logger.info("Daily planner API ready (version %s)", settings.app_version)
    yield
    if owns_client:
        app.state.db.client.close()
    logger.info("Daily planner API stopped")


def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None,
               identity_provider: Optional[JWTIdentityProvider] = None) -> FastAPI:
    settings = settings or Settings()
    setup_logging(settings.log_level, settings.log_file)

    # App setup
    app = FastAPI(title="Daily Planner API", version=settings.app_version, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.seeder = None
    app.state.identity_provider = identity_provider or JWTIdentityProvider(
        settings.identity_key,
        algorithms=settings.identity_algorithms,
        audience=settings.identity_audience,
        issuer=settings.identity_issuer,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PlannerError, planner_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(PyMongoError, internal_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    @app.get("/")
    def read_root():
        return {"message": "Daily planner backend running"}

    @app.get("/api/version")
    def version():
        return {"version": settings.app_version}

    # Profile
    @app.get("/api/me", response_model=UserOut)
    def me(user=Depends(get_current_user)):
        return user

    @app.put("/api/me/notifications", response_model=UserOut)
    def update_notifications(body: NotificationPreference, user=Depends(get_current_user),
                             db: Database = Depends(get_db)):
        return UserRepository(db).update_notifications(user["id"], body.model_dump())

    # Activities CRUD
    @app.get("/api/activities", response_model=List[ActivityOut])
    def list_activities(day: Optional[str] = Query(None, alias="date", pattern=DATE_PATTERN),
                        user=Depends(get_current_user),
                        activities: ActivityRepository = Depends(get_activities)):
        return activities.list(user["id"], day)

    @app.post("/api/activities", response_model=ActivityOut, status_code=status.HTTP_201_CREATED)
    def create_activity(body: ActivityIn, user=Depends(get_current_user),
                        activities: ActivityRepository = Depends(get_activities)):
        return activities.create(user["id"], body.model_dump())

    @app.api_route("/api/activities/{activity_id}", methods=["PUT", "PATCH"], response_model=ActivityOut)
    def update_activity(activity_id: str, body: ActivityPatch, user=Depends(get_current_user),
                        activities: ActivityRepository = Depends(get_activities)):
        return activities.update(activity_id, user["id"], body.changes())

    @app.delete("/api/activities/{activity_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
    def delete_activity(activity_id: str, user=Depends(get_current_user),
                        activities: ActivityRepository = Depends(get_activities)):
        activities.delete(activity_id, user["id"])
        return _no_content()

    # Habits CRUD
    @app.get("/api/habits", response_model=List[HabitWithLogsOut])
    def list_habits(day: Optional[str] = Query(None, alias="date", pattern=DATE_PATTERN),
                    user=Depends(get_current_user),
                    habits: HabitRepository = Depends(get_habits)):
        return habits.list(user["id"], day)

    @app.post("/api/habits", response_model=HabitOut, status_code=status.HTTP_201_CREATED)
    def create_habit(body: HabitIn, user=Depends(get_current_user),
                     habits: HabitRepository = Depends(get_habits)):
        return habits.create(user["id"], body.model_dump())

    @app.api_route("/api/habits/{habit_id}", methods=["PUT", "PATCH"], response_model=HabitOut)
    def update_habit(habit_id: str, body: HabitPatch, user=Depends(get_current_user),
                     habits: HabitRepository = Depends(get_habits)):
        return habits.update(habit_id, user["id"], body.changes())

    @app.delete("/api/habits/{habit_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
    def delete_habit(habit_id: str, user=Depends(get_current_user),
                     habits: HabitRepository = Depends(get_habits)):
        # Also removes the habit's logs
        habits.delete(habit_id, user["id"])
        return _no_content()

    # Habit logs
    @app.post("/api/habits/{habit_id}/log", response_model=HabitLogOut)
    def create_habit_log(habit_id: str, body: HabitLogIn, user=Depends(get_current_user),
                         db: Database = Depends(get_db)):
        return log_habit(db, habit_id, user["id"], body.completion_date)

    @app.get("/api/habits/{habit_id}/logs", response_model=List[HabitLogOut])
    def list_habit_logs(habit_id: str, user=Depends(get_current_user),
                        habits: HabitRepository = Depends(get_habits)):
        habit = habits.get(habit_id, user["id"])
        return habits.list_logs(habit["id"])

    # Journal
    @app.get("/api/journal", response_model=List[JournalEntryOut])
    def list_journal(day: Optional[str] = Query(None, alias="date", pattern=DATE_PATTERN),
                     user=Depends(get_current_user),
                     journal: JournalRepository = Depends(get_journal)):
        return journal.list(user["id"], day)

    @app.post("/api/journal", response_model=JournalEntryOut, status_code=status.HTTP_201_CREATED)
    def create_journal_entry(body: JournalEntryIn, user=Depends(get_current_user),
                             journal: JournalRepository = Depends(get_journal)):
        return journal.create(user["id"], body.model_dump())

    @app.api_route("/api/journal/{entry_id}", methods=["PUT", "PATCH"], response_model=JournalEntryOut)
    def update_journal_entry(entry_id: str, body: JournalEntryPatch, user=Depends(get_current_user),
                             journal: JournalRepository = Depends(get_journal)):
        return journal.update(entry_id, user["id"], body.changes())

    @app.delete("/api/journal/{entry_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
    def delete_journal_entry(entry_id: str, user=Depends(get_current_user),
                             journal: JournalRepository = Depends(get_journal)):
        journal.delete(entry_id, user["id"])
        return _no_content()

    # Motivational content
    @app.get("/api/quote", response_model=QuoteOut)
    def quote(day: Optional[str] = Query(None, alias="date", pattern=DATE_PATTERN)):
        try:
            when = Date.fromisoformat(day) if day else None
        except ValueError:
            raise ValidationError("Invalid date", field="date")
        return quote_of_the_day(when)

    @app.get("/api/moods", response_model=List[MoodOut])
    def moods():
        return MOODS

    # Health/test
    @app.get("/test")
    def test_database(request: Request):
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_name": settings.database_name,
            "connection_status": "Not Connected",
            "collections": [],
        }
        db = request.app.state.db
        if db is None:
            response["database"] = "⚠️  Available but not initialized"
            return response
        response["database"] = "✅ Available"
        try:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
        except PyMongoError as e:
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        return response

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)
