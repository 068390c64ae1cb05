"""Client-side state: the task board and the task detail panel.

Both are plain objects handed to whatever renders them. Readers use the
attributes and view methods, writers call the command methods, and renderers
``subscribe`` to hear about changes. Toggle, quadrant and reorder commands
update local state first and undo it when the server call fails.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from client import ApiError
from dates import end_of_day_utc, today as local_today, utcnow
from grouping import GroupedView, group_view, month_calendar, sort_tasks, tasks_on_day, week_calendar
from models import QUADRANTS, UNCATEGORIZED
from schemas import TaskCreate, TaskPatch, TaskRecord
from task_tree import children_of, order_key

logger = logging.getLogger(__name__)

MAX_PARALLEL_REQUESTS = 8


def patch_many(api, patches: List[Tuple[int, dict]]) -> List[ApiError]:
    """Send one PATCH per task concurrently and wait for all of them."""
    if not patches:
        return []
    workers = min(MAX_PARALLEL_REQUESTS, len(patches))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(api.patch_task, task_id, fields) for task_id, fields in patches]
    errors = []
    for future in futures:
        error = future.exception()
        if error is None:
            continue
        if not isinstance(error, ApiError):
            raise error
        errors.append(error)
    return errors


def move_item(items: List[TaskRecord], active_id: int, over_id: int) -> List[TaskRecord]:
    """Move ``active_id`` into the position held by ``over_id``."""
    ids = [t.id for t in items]
    moved = list(items)
    task = moved.pop(ids.index(active_id))
    moved.insert(ids.index(over_id), task)
    return moved


def changed_orders(items: Iterable[TaskRecord]) -> Dict[int, int]:
    """Positions of the tasks whose stored ``order`` differs from their index."""
    return {t.id: index for index, t in enumerate(items) if t.order != index}


class _Observable:
    def __init__(self):
        self._listeners: List[Callable] = []

    def subscribe(self, listener: Callable) -> Callable[[], None]:
        """Call ``listener(self)`` after every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)


class PanelState(_Observable):
    """The detail panel: which task is open and what to tell the owner on edits."""

    def __init__(self, api):
        super().__init__()
        self.api = api
        self.opened = False
        self.task: Optional[TaskRecord] = None
        self.all_tasks: Optional[List[TaskRecord]] = None
        self.refresh_key = 0
        self._on_patched = None
        self._on_deleted = None

    def open_task(self, task: TaskRecord, on_patched=None, on_deleted=None, all_tasks=None):
        self.opened = True
        self.task = task
        self.all_tasks = list(all_tasks) if all_tasks is not None else None
        self._on_patched = on_patched
        self._on_deleted = on_deleted
        self._notify()

    def close(self):
        self.opened = False
        self.task = None
        self.all_tasks = None
        self._on_patched = None
        self._on_deleted = None
        self._notify()

    def patch_task(self, patch=None, **fields) -> Optional[TaskRecord]:
        """PATCH the open task; returns None when nothing is open or the call fails."""
        if self.task is None:
            return None
        try:
            updated = self.api.patch_task(self.task.id, patch, **fields)
        except ApiError as e:
            logger.error(f"Failed to update task {self.task.id}: {e}")
            return None
        self.task = updated
        self._store(updated)
        return updated

    def set_day(self, day: Optional[date]) -> Optional[TaskRecord]:
        """Switch the open task to a single-day schedule, due at the end of that day."""
        due_at = end_of_day_utc(day) if day else None
        return self.patch_task(date=day, range_start=None, range_end=None, due_at=due_at)

    def set_range(self, start: date, end: Optional[date] = None) -> Optional[TaskRecord]:
        """Switch the open task to a date range, due at the end of its last day."""
        end = end or start
        return self.patch_task(date=None, range_start=start, range_end=end, due_at=end_of_day_utc(end))

    def delete_task(self) -> bool:
        if self.task is None:
            return False
        task_id = self.task.id
        try:
            self.api.delete_task(task_id)
        except ApiError as e:
            logger.error(f"Failed to delete task {task_id}: {e}")
            return False
        if self._on_deleted:
            self._on_deleted(task_id)
        self.close()
        return True

    # ---- subtasks of the open task ----

    @property
    def subtasks(self) -> List[TaskRecord]:
        """Children of the open task by ``order``, then oldest first."""
        if self.task is None or not self.all_tasks:
            return []
        children = [t for t in self.all_tasks if t.parent_id == self.task.id and t.id != self.task.id]
        return sorted(children, key=lambda t: (order_key(t), t.created_at or datetime.max))

    def reload(self) -> bool:
        """Re-read every task so ``subtasks`` reflects the server."""
        try:
            self.all_tasks = self.api.get_all_tasks()
        except ApiError as e:
            logger.error(f"Failed to fetch subtasks: {e}")
            return False
        self._notify()
        return True

    def _store(self, task: TaskRecord, notify=True):
        if self.all_tasks is not None:
            self.all_tasks = [task if t.id == task.id else t for t in self.all_tasks]
        if self._on_patched:
            self._on_patched(task)
        if notify:
            self._notify()

    def _patch_subtask(self, subtask_id: int, action: str, **fields) -> bool:
        try:
            updated = self.api.patch_task(subtask_id, **fields)
        except ApiError as e:
            logger.error(f"Failed to {action} subtask {subtask_id}: {e}")
            return False
        self._store(updated)
        return True

    def toggle_subtask(self, subtask_id: int) -> bool:
        subtask = next((t for t in self.subtasks if t.id == subtask_id), None)
        if subtask is None:
            return False
        if subtask.status == 'done':
            return self._patch_subtask(subtask_id, 'toggle', status='pending', completed_at=None)
        return self._patch_subtask(subtask_id, 'toggle', status='done', completed_at=utcnow())

    def rename_subtask(self, subtask_id: int, title: str) -> bool:
        return self._patch_subtask(subtask_id, 'rename', title=title)

    def delete_subtask(self, subtask_id: int) -> bool:
        try:
            self.api.delete_task(subtask_id)
        except ApiError as e:
            logger.error(f"Failed to delete subtask {subtask_id}: {e}")
            return False
        if self.all_tasks is not None:
            self.all_tasks = [t for t in self.all_tasks if t.id != subtask_id]
        if self._on_deleted:
            self._on_deleted(subtask_id)
        self._notify()
        return True

    def reorder_subtasks(self, active_id: int, over_id: int) -> bool:
        """Drag one subtask onto another; re-reads the list when a PATCH fails."""
        subtasks = self.subtasks
        ids = [t.id for t in subtasks]
        if active_id == over_id or active_id not in ids or over_id not in ids:
            return False

        updates = changed_orders(move_item(subtasks, active_id, over_id))
        if not updates:
            return True

        moved = {t.id: t.model_copy(update={'order': updates[t.id]}) for t in subtasks if t.id in updates}
        self.all_tasks = [moved.get(t.id, t) for t in self.all_tasks]
        self._notify()

        errors = patch_many(self.api, [(task_id, {'order': order}) for task_id, order in updates.items()])
        if errors:
            logger.error(f"Failed to update subtask order: {errors[0]}")
            self.reload()
            return False

        for task in moved.values():
            self._store(task, notify=False)
        return True

    def trigger_refresh(self):
        self.refresh_key += 1
        self._notify()


class TaskBoard(_Observable):
    """The in-memory task list every view is derived from."""

    def __init__(self, api, panel: Optional[PanelState] = None):
        super().__init__()
        self.api = api
        self.panel = panel or PanelState(api)
        self.tasks: List[TaskRecord] = []
        self.expanded_ids: Set[int] = set()
        self.selected_task_id: Optional[int] = None

    # ---- local state ----

    def find(self, task_id: int) -> Optional[TaskRecord]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def _replace(self, task: TaskRecord):
        self.tasks = [task if t.id == task.id else t for t in self.tasks]
        self._notify()

    def _remove(self, task_id: int):
        self.tasks = [t for t in self.tasks if t.id != task_id]
        self._notify()

    def _update_local(self, task_id: int, notify=True, **changes):
        self.tasks = [t.model_copy(update=changes) if t.id == task_id else t for t in self.tasks]
        if notify:
            self._notify()

    # ---- commands ----

    def refresh(self) -> bool:
        try:
            tasks = self.api.get_all_tasks()
        except ApiError as e:
            logger.error(f"Failed to fetch tasks: {e}")
            return False
        self.tasks = tasks
        self._notify()
        return True

    def toggle(self, task_id: int) -> bool:
        task = self.find(task_id)
        if task is None:
            return False

        new_status = 'pending' if task.status == 'done' else 'done'
        completed_at = utcnow() if new_status == 'done' else None

        self._update_local(task_id, status=new_status, completed_at=completed_at)
        try:
            self.api.patch_task(task_id, status=new_status, completed_at=completed_at)
        except ApiError as e:
            logger.error(f"Failed to toggle task {task_id}: {e}")
            self._update_local(task_id, status=task.status, completed_at=task.completed_at)
            return False
        return True

    def set_quadrant(self, task_id: int, quadrant: str) -> bool:
        task = self.find(task_id)
        if task is None:
            return False
        patch = TaskPatch(quadrant=quadrant)

        self._update_local(task_id, quadrant=quadrant)
        try:
            self.api.patch_task(task_id, patch)
        except ApiError as e:
            logger.error(f"Failed to update quadrant of task {task_id}: {e}")
            self._update_local(task_id, quadrant=task.quadrant)
            return False
        return True

    def reorder(self, active_id: int, over_id: int, group: Iterable[TaskRecord]) -> bool:
        """Move ``active_id`` to the position of ``over_id``.

        ``group`` is the displayed list of top-level tasks the drag happened
        in. When either id is not part of it, the drag is between subtasks
        and only allowed among children of the same parent.
        """
        if active_id == over_id:
            return False

        target = list(group)
        ids = [t.id for t in target]
        sibling_drag = active_id not in ids or over_id not in ids
        if sibling_drag:
            dragged, over = self.find(active_id), self.find(over_id)
            if dragged is None or over is None or dragged.parent_id is None:
                return False
            if dragged.parent_id != over.parent_id:
                return False
            target = children_of(self.tasks, dragged.parent_id)

        target = move_item(target, active_id, over_id)
        updates = changed_orders(target)
        if not updates:
            return True

        previous = {t.id: t.order for t in target}
        for task_id, order in updates.items():
            self._update_local(task_id, notify=False, order=order)
        self._notify()

        errors = patch_many(self.api, [(task_id, {'order': order}) for task_id, order in updates.items()])
        if errors:
            logger.error(f"Failed to update task order: {errors[0]}")
            if not self.refresh():
                # Server state unknown; fall back to what was shown before the drag
                for task_id in updates:
                    self._update_local(task_id, notify=False, order=previous[task_id])
                self._notify()
            return False

        if sibling_drag:
            self.panel.trigger_refresh()
        return True

    def toggle_expand(self, task_id: int):
        if task_id in self.expanded_ids:
            self.expanded_ids.discard(task_id)
        else:
            self.expanded_ids.add(task_id)
        self._notify()

    def open_task(self, task_id: int):
        task = self.find(task_id)
        if task is None:
            return
        self.selected_task_id = task_id
        self.panel.open_task(task, on_patched=self._replace, on_deleted=self._remove, all_tasks=self.tasks)

    def _add(self, document: TaskCreate) -> Optional[TaskRecord]:
        try:
            task = self.api.create_task(document)
        except ApiError as e:
            logger.error(f"Failed to create task: {e}")
            return None
        self.tasks = self.tasks + [task]
        return task

    def add_subtask(self, parent_id: int, today: Optional[date] = None) -> Optional[TaskRecord]:
        """Create an untitled subtask at the end of the parent's children and open it."""
        today = today or local_today()
        parent = self.find(parent_id)
        quadrant = parent.quadrant if parent is not None and parent.quadrant in QUADRANTS else 'IN'
        categories = list(parent.categories or []) if parent is not None else []

        subtask = self._add(TaskCreate(
            title='',
            parent_id=parent_id,
            order=len(children_of(self.tasks, parent_id)),
            status='pending',
            quadrant=quadrant,
            date=today,
            due_at=end_of_day_utc(today),
            categories=categories,
        ))
        if subtask is None:
            return None

        self.expanded_ids.add(parent_id)
        self._notify()
        self.open_task(subtask.id)
        return subtask

    def quick_add(self, title: str, day: Optional[date] = None, category: Optional[str] = None) -> Optional[TaskRecord]:
        categories = [] if category in (None, UNCATEGORIZED) else [category]
        task = self._add(TaskCreate(
            title=title,
            date=day,
            due_at=end_of_day_utc(day) if day else None,
            categories=categories,
        ))
        if task is None:
            return None
        self._notify()
        self.open_task(task.id)
        return task

    def postpone(self, tasks: Iterable[TaskRecord], today: Optional[date] = None) -> bool:
        """Move overdue tasks to today."""
        today = today or local_today()
        due_at = end_of_day_utc(today)
        errors = patch_many(self.api, [(t.id, {'date': today, 'due_at': due_at}) for t in tasks])
        if errors:
            logger.error(f"Failed to postpone tasks: {errors[0]}")
        self.refresh()
        return not errors

    def _set_status(self, task_id: int, **fields) -> bool:
        try:
            updated = self.api.patch_task(task_id, **fields)
        except ApiError as e:
            logger.error(f"Failed to update task {task_id}: {e}")
            return False
        self._replace(updated)
        return True

    def abandon(self, task_id: int) -> bool:
        return self._set_status(task_id, status='abandoned')

    def restore(self, task_id: int) -> bool:
        """Bring an abandoned task back as pending."""
        return self._set_status(task_id, status='pending', completed_at=None)

    def delete(self, task_id: int) -> bool:
        try:
            self.api.delete_task(task_id)
        except ApiError as e:
            logger.error(f"Failed to delete task {task_id}: {e}")
            return False
        if self.panel.task is not None and self.panel.task.id == task_id:
            self.panel.close()
        self.refresh()
        return True

    # ---- views ----

    def grouped(self, today: Optional[date] = None, category: Optional[str] = None) -> GroupedView:
        return group_view(self.tasks, today or local_today(), self.expanded_ids, category)

    def abandoned(self) -> List[TaskRecord]:
        return sort_tasks(t for t in self.tasks if t.status == 'abandoned')

    def day(self, day: date) -> List[TaskRecord]:
        return tasks_on_day(self.tasks, day)

    def week(self, today: Optional[date] = None) -> Dict[date, List[TaskRecord]]:
        return week_calendar(self.tasks, today or local_today())

    def month(self, year: int, month: int) -> Dict[date, List[TaskRecord]]:
        return month_calendar(self.tasks, year, month)
