"""
Boundary validation.

Every endpoint declares a pydantic model for its body or query string. The
helpers here parse the incoming request into that model and turn pydantic's
errors into a ValidationError with field-level details, so handlers only ever
see well-formed input.
"""

from typing import Annotated, Any, Dict, List, Optional, Type, TypeVar

import pydantic
from flask import request
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter

from gigbuddy.errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

PAGE_LIMIT_MAX = 50
PAGE_LIMIT_DEFAULT = 12


class RequestModel(BaseModel):
    """Base for request bodies: strips strings and drops unknown fields."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class PageQuery(BaseModel):
    """Common pagination query parameters."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    page: int = Field(1, ge=1)
    limit: int = Field(PAGE_LIMIT_DEFAULT, ge=1, le=PAGE_LIMIT_MAX)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def format_errors(exc: pydantic.ValidationError) -> List[Dict[str, Any]]:
    details = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "body"
        message = err.get("msg", "Invalid value")
        # Custom validators raise ValueError; pydantic prefixes their text
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.append({"field": field, "message": message})
    return details


def validate(model: Type[ModelT], data: Any, message: str = "Validation failed") -> ModelT:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(message, details=format_errors(exc)) from exc


def parse_body(model: Type[ModelT]) -> ModelT:
    """
    Validate the JSON body of the current request.

    Raises:
        ValidationError: If the body is missing, not an object, or fails the model.
    """
    data: Optional[Any] = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError(details=[{"field": "body", "message": "Request body must be a JSON object"}])
    return validate(model, data)


def parse_query(model: Type[ModelT]) -> ModelT:
    """Validate the query string of the current request."""
    return validate(model, request.args.to_dict(), message="Invalid query parameters")


_http_url = TypeAdapter(HttpUrl)


def check_url(value: Optional[str]) -> Optional[str]:
    """Accept an http(s) URL, keeping the caller's spelling. Empty means unset."""
    if value is None or value == "":
        return None
    if len(value) > 500:
        raise ValueError("URL must not exceed 500 characters")
    try:
        _http_url.validate_python(value)
    except pydantic.ValidationError:
        raise ValueError("Please provide a valid URL")
    return value


UrlStr = Annotated[Optional[str], AfterValidator(check_url)]
