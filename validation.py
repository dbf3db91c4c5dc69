# validation.py
"""Input checks for expense payloads.

Everything here is pure: payloads are read, never modified, and no database
access happens. Violations are always collected for every field so a form can
show all of them at once.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from database import RECORD_ID_PATTERN
from schemas import ExpenseIn, FieldError

_LOCATION_PREFIXES = ("body", "query", "path", "header", "cookie")

_record_id_re = re.compile(RECORD_ID_PATTERN)


@dataclass(frozen=True)
class ValidationResult:
    expense: Optional[ExpenseIn] = None
    errors: list[FieldError] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return not self.errors


def field_errors(errors) -> list[FieldError]:
    """Flatten pydantic / FastAPI error dicts into ``FieldError`` entries."""
    result = []
    for error in errors:
        loc = list(error.get("loc", ()))
        if error.get("type") == "json_invalid":
            # loc holds a character offset, not a field
            loc = ["body"]
        if len(loc) > 1 and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        name = ".".join(str(part) for part in loc) or "body"
        result.append(FieldError(field=name, message=error.get("msg", "Invalid value")))
    return result


def validate_expense(payload: Mapping[str, Any]) -> ValidationResult:
    """Check an expense payload outside a request.

    HTTP handlers get the same rules from FastAPI validating ``ExpenseIn``;
    this is the entry point for callers holding a plain dict, such as a form.
    """
    try:
        expense = ExpenseIn.model_validate(dict(payload))
    except ValidationError as exc:
        return ValidationResult(errors=field_errors(exc.errors()))
    return ValidationResult(expense=expense)


def is_record_id(value) -> bool:
    return isinstance(value, str) and _record_id_re.fullmatch(value) is not None
