# =============================================================================
# core/validation.py  —  Schema-Driven Data Validation
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Validates arbitrary JSON data against a compact schema the agent writes
#   itself, e.g.
#
#     {"type": "object", "properties": {
#         "email": {"type": "string", "email": true},
#         "age":   {"type": "number", "int": true, "min": 0, "optional": true}}}
#
#   The definition is compiled into a pydantic type and validated in strict
#   mode, so "42" is not a number and 1 is not a boolean.
#
# SCHEMA KEYS:
#   type         string | number | boolean | object | array | enum
#   optional     object key may be absent (null is still rejected)
#   description  carried into the generated field
#   string:      minLength, maxLength, email, url
#   number:      min, max, int (whole-valued floats such as 3.0 pass as 3)
#   object:      properties (omitted → any mapping)
#   array:       items      (omitted → any list)
#   enum:        values     (omitted → any string)
# =============================================================================

import re
from typing import Annotated, Any, Literal, Optional

from pydantic import (
    AfterValidator,
    BeforeValidator,
    ConfigDict,
    Field,
    PydanticUserError,
    StrictBool,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    create_model,
)
from pydantic.errors import PydanticSchemaGenerationError

from core.models import ValidationResult

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://[^\s/?#]+[^\s]*$")


def _check_email(value: str) -> str:
    if not _EMAIL_RE.match(value):
        raise ValueError("Invalid email address")
    return value


def _check_url(value: str) -> str:
    if not _URL_RE.match(value):
        raise ValueError("Invalid URL")
    return value


def _whole_float_to_int(value: Any) -> Any:
    # 3.0 is an integer; 3.5 and "3" are left for the strict int check to reject
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def build_type(definition: dict) -> Any:
    """Compile a schema definition into a pydantic-compatible annotation."""
    if not isinstance(definition, dict):
        raise TypeError(f"Schema definition must be an object, got {type(definition).__name__}")

    kind = definition.get("type")

    if kind == "string":
        annotation: Any = Annotated[str, StringConstraints(
            strict=True,
            min_length=definition.get("minLength"),
            max_length=definition.get("maxLength"),
        )]
        if definition.get("email") is True:
            annotation = Annotated[annotation, AfterValidator(_check_email)]
        if definition.get("url") is True:
            annotation = Annotated[annotation, AfterValidator(_check_url)]

    elif kind == "number":
        bounds = Field(strict=True, ge=definition.get("min"), le=definition.get("max"))
        if definition.get("int") is True:
            annotation = Annotated[int, bounds, BeforeValidator(_whole_float_to_int)]
        else:
            annotation = Annotated[float, bounds]

    elif kind == "boolean":
        annotation = StrictBool

    elif kind == "object":
        properties = definition.get("properties")
        if not properties:
            annotation = dict[str, Any]
        else:
            annotation = _build_object_model(properties)

    elif kind == "array":
        items = definition.get("items")
        annotation = list[build_type(items)] if items else list[Any]

    elif kind == "enum":
        values = definition.get("values")
        annotation = Literal[tuple(values)] if values else Annotated[str, StringConstraints(strict=True)]

    else:
        annotation = Any

    return annotation


def _build_object_model(properties: dict):
    if not isinstance(properties, dict):
        raise TypeError("'properties' must be an object")

    # Optional keys only get a default, so an explicit null must still match
    # the declared type.  Generated attribute names avoid clashes with
    # BaseModel members; the schema keys live on as aliases.
    fields = {}
    for position, (key, prop) in enumerate(properties.items()):
        annotation = build_type(prop)
        description = prop.get("description")
        if prop.get("optional") is True:
            fields[f"field_{position}"] = (annotation, Field(default=None, alias=key, description=description))
        else:
            fields[f"field_{position}"] = (annotation, Field(alias=key, description=description))

    return create_model(
        "ValidatedObject",
        __config__=ConfigDict(extra="ignore", populate_by_name=False),
        **fields,
    )


def _format_error(error: dict) -> str:
    path = ".".join(str(part) for part in error.get("loc", ()))
    return f"{path}: {error['msg']}" if path else error["msg"]


def validate_data(data: Any, schema: dict, max_errors: Optional[int] = None) -> ValidationResult:
    """Validate `data` against `schema`.

    Returns a ValidationResult; never raises for bad data or a bad schema.
    With `max_errors`, at most that many messages are kept and a trailing
    "...and K more errors" line is appended.
    """
    try:
        adapter = TypeAdapter(build_type(schema))
    except (TypeError, ValueError, PydanticUserError, PydanticSchemaGenerationError) as exc:
        return ValidationResult(valid=False, errors=[f"Invalid schema: {exc}"])

    try:
        value = adapter.validate_python(data)
    except ValidationError as exc:
        issues = exc.errors()
        errors = [_format_error(issue) for issue in issues]
        if max_errors is not None and len(errors) > max_errors:
            errors = errors[:max_errors]
            errors.append(f"...and {len(issues) - max_errors} more errors")
        return ValidationResult(valid=False, errors=errors)

    cleaned = adapter.dump_python(value, mode="json", by_alias=True, exclude_unset=True)
    return ValidationResult(valid=True, cleaned_data=cleaned)
