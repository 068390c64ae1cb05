"""Pydantic documents exchanged at the REST boundary.

``TaskRecord`` is what clients read back; it is lenient so that slightly off
data (unknown quadrant, legacy string-encoded categories) still renders.
``TaskCreate`` and ``TaskPatch`` are what clients write; they are strict.
"""
import json
import logging
import datetime as dt
from typing import Annotated, List, Literal, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    constr,
    model_validator,
)
from pydantic.alias_generators import to_camel

from dates import to_naive_utc
from models import MUTABLE_FIELDS

logger = logging.getLogger(__name__)

TIME_PATTERN = r'^([01][0-9]|2[0-3]):[0-5][0-9]$'

Status = Literal['pending', 'done', 'abandoned']
Quadrant = Literal['IU', 'IN', 'NU', 'NN']


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def decode_categories(value):
    """Accept a native list or a JSON-encoded list; anything else reads as None."""
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            value = json.loads(value)
        except ValueError:
            logger.debug(f"Ignoring malformed categories value: {value!r}")
            return None
    if isinstance(value, (list, tuple)):
        return [item for item in value if isinstance(item, str)]
    if value is not None:
        logger.debug(f"Ignoring non-list categories value: {value!r}")
    return None


Day = Annotated[Optional[dt.date], BeforeValidator(_blank_to_none)]
Timestamp = Annotated[Optional[dt.datetime], BeforeValidator(_blank_to_none), AfterValidator(to_naive_utc)]
ClockTime = Annotated[Optional[constr(pattern=TIME_PATTERN)], BeforeValidator(_blank_to_none)]
Categories = Annotated[Optional[List[str]], BeforeValidator(decode_categories)]


def validation_messages(exc: ValidationError) -> List[str]:
    messages = []
    for error in exc.errors():
        location = '.'.join(str(part) for part in error['loc'])
        messages.append(f"{location}: {error['msg']}" if location else error['msg'])
    return messages


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def _check_range(self):
        start, end = getattr(self, 'range_start', None), getattr(self, 'range_end', None)
        if start is not None and end is not None and start > end:
            raise ValueError('rangeStart must not be after rangeEnd')


class TaskRecord(_Document):
    id: int
    title: str = ''
    description: Optional[str] = None
    date: Day = None
    range_start: Day = None
    range_end: Day = None
    all_day: bool = False
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    status: str = 'pending'
    quadrant: str = 'IN'
    categories: Categories = None
    due_at: Timestamp = None
    completed_at: Timestamp = None
    parent_id: Optional[int] = None
    order: Optional[int] = None
    created_at: Timestamp = None
    updated_at: Timestamp = None
    # Filled in by task_tree.build_task_tree only.
    subtasks: List['TaskRecord'] = Field(default_factory=list)

    @property
    def is_ranged(self) -> bool:
        return self.range_start is not None and self.range_end is not None

    @property
    def scheduled_day(self) -> Optional[dt.date]:
        """The single-day date, or None for ranged tasks (a range wins over ``date``)."""
        return None if self.is_ranged else self.date

    def covers(self, day: dt.date) -> bool:
        if self.is_ranged:
            return self.range_start <= day <= self.range_end
        return self.date == day

    def to_payload(self) -> dict:
        """Full wire document of the writable fields, as sent with PUT."""
        return self.model_dump(by_alias=True, mode='json', include=set(MUTABLE_FIELDS))


class TaskCreate(_Document):
    """Body of POST and PUT. Omitted optional fields take their default."""

    title: str
    description: Optional[str] = None
    date: Day = None
    range_start: Day = None
    range_end: Day = None
    all_day: bool = False
    start_time: ClockTime = None
    end_time: ClockTime = None
    status: Status = 'pending'
    quadrant: Quadrant = 'IN'
    categories: Optional[List[str]] = None
    due_at: Timestamp = None
    completed_at: Timestamp = None
    parent_id: Optional[int] = None
    order: Optional[int] = None

    @model_validator(mode='after')
    def _validate(self):
        self._check_range()
        return self

    def column_values(self) -> dict:
        return self.model_dump()

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode='json')


class TaskPatch(_Document):
    """Body of PATCH: any subset of the writable fields, nothing else."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='forbid')

    title: Optional[str] = None
    description: Optional[str] = None
    date: Day = None
    range_start: Day = None
    range_end: Day = None
    all_day: Optional[bool] = None
    start_time: ClockTime = None
    end_time: ClockTime = None
    status: Optional[Status] = None
    quadrant: Optional[Quadrant] = None
    categories: Optional[List[str]] = None
    due_at: Timestamp = None
    completed_at: Timestamp = None
    parent_id: Optional[int] = None
    order: Optional[int] = None

    @model_validator(mode='after')
    def _validate(self):
        for name in ('title', 'all_day', 'status', 'quadrant'):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f'{MUTABLE_FIELDS[name]} cannot be null')
        self._check_range()
        return self

    def column_values(self) -> dict:
        return self.model_dump(exclude_unset=True)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode='json', exclude_unset=True)
