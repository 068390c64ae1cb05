"""Reporting aggregates over a task list.

All functions are pure: ``now`` is a naive UTC timestamp compared against
``dueAt``/``completedAt``, ``today`` is the local calendar day.
"""
from collections import OrderedDict
from datetime import date, datetime
from typing import Iterable, List, Optional

from dates import days_back, local_day, today as local_today, utcnow
from models import QUADRANTS, UNCATEGORIZED
from schemas import TaskRecord

TREND_DAYS = 30
_DAY_SECONDS = 24 * 60 * 60


def _percent(part, whole):
    # Half-up rounding, so 2/3 -> 67 and 1/8 -> 13
    return int(part * 100 / whole + 0.5) if whole else 0


def _is_overdue(task: TaskRecord, now: datetime) -> bool:
    return task.status != 'done' and task.due_at is not None and task.due_at < now


def summary(tasks: Iterable[TaskRecord], now: datetime) -> dict:
    records = list(tasks)
    total = len(records)
    done = sum(1 for t in records if t.status == 'done')
    return {
        'total': total,
        'done': done,
        'pending': total - done,
        'overdue': sum(1 for t in records if _is_overdue(t, now)),
        'completionRate': _percent(done, total),
    }


def time_trends(tasks: Iterable[TaskRecord], today: date, days: int = TREND_DAYS) -> List[dict]:
    """Per day: tasks due that day and how many of them were finished on time.

    A task is bucketed by the local day of ``dueAt``, falling back to its
    ``date``. With a ``dueAt`` it is on time when completed no later than it;
    without one, being done is enough.
    """
    window = days_back(today, days)
    due = OrderedDict((day, 0) for day in window)
    on_time = dict.fromkeys(window, 0)

    for task in tasks:
        if task.due_at is not None:
            bucket = local_day(task.due_at)
        else:
            bucket = task.date
        if bucket not in due:
            continue
        due[bucket] += 1

        if task.due_at is not None:
            if task.status == 'done' and task.completed_at is not None and task.completed_at <= task.due_at:
                on_time[bucket] += 1
        elif task.status == 'done':
            on_time[bucket] += 1

    return [
        {
            'date': day.isoformat(),
            'due': count,
            'onTime': on_time[day],
            'completionRate': _percent(on_time[day], count),
        }
        for day, count in due.items()
    ]


def quadrant_stats(tasks: Iterable[TaskRecord], now: datetime) -> dict:
    stats = {q: {'total': 0, 'done': 0, 'procrastinated': 0, 'withDue': 0} for q in QUADRANTS}
    for task in tasks:
        quadrant = task.quadrant or 'IN'
        entry = stats[quadrant if quadrant in stats else 'NN']
        entry['total'] += 1
        if task.status == 'done':
            entry['done'] += 1
        if task.due_at is not None:
            entry['withDue'] += 1
            finished_late = task.completed_at is not None and task.completed_at > task.due_at
            if _is_overdue(task, now) or finished_late:
                entry['procrastinated'] += 1
    return stats


def category_stats(tasks: Iterable[TaskRecord], now: datetime) -> List[dict]:
    stats = {}

    def mark(name, task):
        entry = stats.setdefault(name, {'total': 0, 'pending': 0, 'done': 0, 'abandoned': 0, 'overdue': 0})
        entry['total'] += 1
        if task.status == 'done':
            entry['done'] += 1
        elif task.status == 'abandoned':
            entry['abandoned'] += 1
        elif task.status == 'pending':
            entry['pending'] += 1
            if task.due_at is not None and task.due_at < now:
                entry['overdue'] += 1

    for task in tasks:
        categories = task.categories or []
        if not categories:
            mark(UNCATEGORIZED, task)
        for name in categories:
            mark(name, task)

    rows = []
    for name, entry in stats.items():
        total = entry['total']
        rows.append({
            'name': name,
            **entry,
            'doneRate': _percent(entry['done'], total),
            'pendingRate': _percent(entry['pending'], total),
            'abandonedRate': _percent(entry['abandoned'], total),
            'overdueRate': _percent(entry['overdue'], total),
        })
    rows.sort(key=lambda row: row['total'], reverse=True)
    return rows


def urgency_stats(tasks: Iterable[TaskRecord], now: datetime) -> dict:
    upcoming = {'24h': 0, '3d': 0, '7d': 0, 'future': 0}
    overdue = {'24h': 0, '3d': 0, '7d': 0, 'long': 0}

    for task in tasks:
        if task.due_at is None or task.status == 'done':
            continue
        if task.due_at < now:
            days = (now - task.due_at).total_seconds() / _DAY_SECONDS
            target, tail = overdue, 'long'
        else:
            days = (task.due_at - now).total_seconds() / _DAY_SECONDS
            target, tail = upcoming, 'future'

        if days <= 1:
            target['24h'] += 1
        elif days <= 3:
            target['3d'] += 1
        elif days <= 7:
            target['7d'] += 1
        else:
            target[tail] += 1

    return {'upcoming': upcoming, 'overdue': overdue}


def report(tasks: Iterable[TaskRecord], now: Optional[datetime] = None, today: Optional[date] = None) -> dict:
    records = list(tasks)
    now = now or utcnow()
    today = today or local_today()
    return {
        'summary': summary(records, now),
        'timeTrends': time_trends(records, today),
        'quadrants': quadrant_stats(records, now),
        'categories': category_stats(records, now),
        'urgency': urgency_stats(records, now),
    }
