# invoicebook/models/common.py

from typing import Any, Type, TypeVar
from uuid import uuid4

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from invoicebook.core.errors import ValidationError

M = TypeVar("M", bound=BaseModel)


def new_id() -> str:
    return str(uuid4())


def validate_payload(model: Type[M], data: Any) -> M:
    """
    Validate a form payload into `model`, raising the application's
    ValidationError instead of pydantic's.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(str(exc)) from exc


def blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value
