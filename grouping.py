"""Display grouping for task lists.

Top-level tasks are split into overdue / today / future / done buckets and
ordered by completion, quadrant, manual order and then newest first. The
calendar helpers reuse the same ordering for per-day lists.
"""
import calendar
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from models import UNCATEGORIZED
from schemas import TaskRecord
from task_tree import FlatRow, build_task_tree, flatten_task_tree, order_key, resolve_parent

QUADRANT_WEIGHTS = {'IU': 0, 'IN': 1, 'NU': 2}
BUCKETS = ('overdue', 'today', 'future', 'done')

_EPOCH = datetime(1970, 1, 1)


def quadrant_weight(quadrant: Optional[str]) -> int:
    return QUADRANT_WEIGHTS.get(quadrant, 3)


def sort_key(task: TaskRecord):
    if task.created_at is not None:
        created = (task.created_at - _EPOCH).total_seconds()
    else:
        created = -math.inf
    return (
        1 if task.status == 'done' else 0,
        quadrant_weight(task.quadrant),
        order_key(task),
        -created,
    )


def sort_tasks(tasks: Iterable[TaskRecord]) -> List[TaskRecord]:
    return sorted(tasks, key=sort_key)


def top_level(tasks: Iterable[TaskRecord]) -> List[TaskRecord]:
    """Tasks without a parent in ``tasks`` (orphans count as top-level)."""
    records = list(tasks)
    index = {task.id: task for task in records}
    return [task for task in records if resolve_parent(task, index) is None]


def bucket_of(task: TaskRecord, today: date) -> Optional[str]:
    """Display bucket for a task, or None when it is neither pending nor done."""
    if task.status == 'done':
        return 'done'
    if task.status != 'pending':
        return None
    day = task.scheduled_day
    if day is None or day > today:
        return 'future'
    if day < today:
        return 'overdue'
    return 'today'


@dataclass
class TaskBuckets:
    overdue: List[TaskRecord] = field(default_factory=list)
    today: List[TaskRecord] = field(default_factory=list)
    future: List[TaskRecord] = field(default_factory=list)
    done: List[TaskRecord] = field(default_factory=list)
    # Top-level tasks that are neither pending nor done; not displayed.
    abandoned: List[TaskRecord] = field(default_factory=list)


@dataclass
class GroupedView:
    overdue: List[FlatRow]
    today: List[FlatRow]
    future: List[FlatRow]
    done: List[FlatRow]


def group_tasks(tasks: Iterable[TaskRecord], today: date) -> TaskBuckets:
    buckets = TaskBuckets()
    for task in top_level(tasks):
        name = bucket_of(task, today)
        getattr(buckets, name or 'abandoned').append(task)
    for name in BUCKETS:
        setattr(buckets, name, sort_tasks(getattr(buckets, name)))
    return buckets


def filter_by_category(tasks: Iterable[TaskRecord], category: str) -> List[TaskRecord]:
    """Tasks shown under one category tab. Abandoned tasks are never shown."""
    result = []
    for task in tasks:
        if task.status == 'abandoned':
            continue
        if category == UNCATEGORIZED:
            if not task.categories:
                result.append(task)
        elif task.categories and category in task.categories:
            result.append(task)
    return result


def group_view(
    tasks: Iterable[TaskRecord],
    today: date,
    expanded_ids: Set[int] = frozenset(),
    category: Optional[str] = None,
) -> GroupedView:
    """Buckets of flattened rows, each top-level task followed by its visible subtasks."""
    records = list(tasks)
    if category is not None:
        records = filter_by_category(records, category)
    buckets = group_tasks(records, today)
    index = {task.id: task for task in records}

    def subtree(parent_id):
        for task in records:
            if resolve_parent(task, index) == parent_id:
                yield task
                yield from subtree(task.id)

    rows = {}
    for name in BUCKETS:
        ordered = []
        for top in getattr(buckets, name):
            ordered.append(top)
            ordered.extend(subtree(top.id))
        rows[name] = flatten_task_tree(build_task_tree(ordered), expanded_ids)
    return GroupedView(**rows)


def tasks_on_day(tasks: Iterable[TaskRecord], day: date) -> List[TaskRecord]:
    return sort_tasks(task for task in tasks if task.covers(day))


def month_calendar(tasks: Iterable[TaskRecord], year: int, month: int) -> Dict[date, List[TaskRecord]]:
    records = list(tasks)
    last = calendar.monthrange(year, month)[1]
    return {
        date(year, month, day): tasks_on_day(records, date(year, month, day))
        for day in range(1, last + 1)
    }


def week_bounds(today: date) -> Tuple[date, date]:
    """First and last day of the Sunday-based week containing ``today``."""
    start = today - timedelta(days=(today.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def week_calendar(tasks: Iterable[TaskRecord], today: date) -> Dict[date, List[TaskRecord]]:
    records = list(tasks)
    start, _ = week_bounds(today)
    days = [start + timedelta(days=offset) for offset in range(7)]
    return {day: tasks_on_day(records, day) for day in days}


def month_fetch_window(year: int, month: int) -> Tuple[date, date]:
    """Date range a month calendar loads: the month padded by a week on each side."""
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    return first - timedelta(days=7), last + timedelta(days=7)
