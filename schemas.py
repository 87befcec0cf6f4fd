"""
Request schemas.

Every inbound body is validated once at the route boundary before any store
access. JSON bodies use the camelCase keys the admin UI sends; spreadsheet
rows use the snake_case column headers of the roster template.
"""
import datetime as dt
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, StringConstraints, field_validator
from pydantic.alias_generators import to_camel
from pydantic import ValidationError as PydanticValidationError

RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
TraineeStatus = Literal['pending', 'passed', 'failed']

FIELD_LABELS = {
    'name': 'Name',
    'surname': 'Surname',
    'email': 'Email',
    'phone_number': 'Phone number',
    'phoneNumber': 'Phone number',
    'date': 'Date',
    'training_id': 'Training ID',
    'trainingId': 'Training ID',
}


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        extra='forbid',
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TrainingCreate(_ApiModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    description: Optional[str] = None
    date: dt.date
    duration: Optional[Annotated[str, StringConstraints(max_length=100)]] = None


class TrainingUpdate(_ApiModel):
    name: Optional[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]] = None
    description: Optional[str] = None
    date: Optional[dt.date] = None
    duration: Optional[Annotated[str, StringConstraints(max_length=100)]] = None

    @field_validator('name', 'date')
    @classmethod
    def _not_null(cls, value):
        # name and date may be omitted from a partial update but never cleared
        if value is None:
            raise ValueError('may not be null')
        return value


class TraineeCreate(_ApiModel):
    name: RequiredText
    surname: RequiredText
    email: EmailStr
    phone_number: RequiredText
    company_name: Optional[str] = None
    training_id: RequiredText
    status: TraineeStatus = 'pending'


class TraineeUpdate(_ApiModel):
    name: Optional[RequiredText] = None
    surname: Optional[RequiredText] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[RequiredText] = None
    company_name: Optional[str] = None
    training_id: Optional[RequiredText] = None
    training_date: Optional[dt.date] = None
    status: Optional[TraineeStatus] = None

    @field_validator('name', 'surname', 'email', 'phone_number', 'training_id', 'training_date', 'status')
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError('may not be null')
        return value


class RosterRow(BaseModel):
    """One spreadsheet row after every cell was coerced to a string."""
    model_config = ConfigDict(extra='ignore')

    name: RequiredText
    surname: RequiredText
    email: EmailStr
    phone_number: RequiredText
    company_name: Optional[str] = None

    @field_validator('company_name')
    @classmethod
    def _blank_company_is_none(cls, value):
        if value is None:
            return None
        value = value.strip()
        return value or None


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra='ignore')

    username: str = ''
    password: str = ''


def _describe(error) -> str:
    loc = error.get('loc') or ()
    field = str(loc[0]) if loc else 'body'
    label = FIELD_LABELS.get(field, field)
    kind = error.get('type', '')
    if kind in ('missing', 'string_too_short'):
        message = f'{label} is required'
    elif field == 'email' and kind == 'value_error':
        message = 'Invalid email format'
    elif kind == 'extra_forbidden':
        message = 'Unknown field'
    else:
        message = error.get('msg', 'Invalid value')
        if message.lower().startswith('value error, '):
            message = message[len('value error, '):]
    return f'{field}: {message}'


def format_validation_errors(exc: PydanticValidationError) -> list:
    """Flatten a pydantic error into 'field: message' strings."""
    return [_describe(error) for error in exc.errors()]
