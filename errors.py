"""
Error taxonomy for the planner API.

Each error carries the HTTP status it maps to; the app turns them into a
`{"message": ...}` body (plus `"field"` for validation errors).
"""
from typing import Optional


class PlannerError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(PlannerError):
    status_code = 400
    default_message = "Invalid input"


class Unauthorized(PlannerError):
    status_code = 401
    default_message = "Unauthorized"


class NotFound(PlannerError):
    status_code = 404
    default_message = "Not found"
