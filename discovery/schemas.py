"""
Discovery Request Payloads
Pydantic models validating request create/update input
"""

from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from .category_detection import normalize_category
from .errors import DiscoveryValidationError
from .models import RequestStatus, RequestType

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def parse_request_type(value: Any) -> RequestType:
    """Accept RFP / Interrogatory in any case. Usable inside validators (it is a ValueError)."""
    if isinstance(value, RequestType):
        return value
    wanted = str(value or "").strip().upper()
    for request_type in RequestType:
        if request_type.value.upper() == wanted:
            return request_type
    raise DiscoveryValidationError(f"Invalid request type: {value}")


class DiscoveryRequestCreate(BaseModel):
    """Payload to create a discovery request"""
    case_id: str
    type: RequestType
    number: int
    text: str
    category_hint: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _check_type(cls, value):
        return parse_request_type(value)

    @field_validator("number")
    @classmethod
    def _check_number(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Request number must be a positive integer")
        return value

    @field_validator("text")
    @classmethod
    def _check_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Request text is required")
        return value

    @field_validator("category_hint")
    @classmethod
    def _check_category(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        category = normalize_category(value)
        if category is None:
            raise ValueError(f"Invalid category: {value}")
        return category.value


class DiscoveryRequestUpdate(BaseModel):
    """Partial update of a discovery request. Unset fields are left alone."""
    text: Optional[str] = None
    category_hint: Optional[str] = None
    status: Optional[RequestStatus] = None
    completion_percentage: Optional[int] = Field(default=None)
    notes: Optional[str] = None

    @field_validator("text")
    @classmethod
    def _check_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Request text is required")
        return value

    @field_validator("category_hint")
    @classmethod
    def _check_category(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        category = normalize_category(value)
        if category is None:
            raise ValueError(f"Invalid category: {value}")
        return category.value

    @field_validator("status", mode="before")
    @classmethod
    def _check_status(cls, value):
        if value is None or isinstance(value, RequestStatus):
            return value
        try:
            return RequestStatus(str(value))
        except ValueError:
            raise ValueError(f"Invalid status: {value}")

    @field_validator("completion_percentage")
    @classmethod
    def _check_completion(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not 0 <= value <= 100:
            raise ValueError("Completion percentage must be between 0 and 100")
        return value

    def to_values(self) -> Dict[str, Any]:
        """Column values for the fields the caller actually set."""
        values = self.model_dump(exclude_unset=True)
        # Required columns cannot be cleared, only category_hint and notes can
        for key in ("text", "status", "completion_percentage"):
            if key in values and values[key] is None:
                del values[key]
        if values.get("status") is not None:
            values["status"] = values["status"].value
        return values


def _first_error_message(error: ValidationError) -> str:
    first = error.errors()[0]
    ctx_error = (first.get("ctx") or {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def parse_payload(
    model: Type[PayloadT],
    data: Union[PayloadT, Dict[str, Any]],
) -> PayloadT:
    """
    Validate a payload, raising DiscoveryValidationError with the first
    problem's message instead of pydantic's ValidationError.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise DiscoveryValidationError(_first_error_message(e)) from e
