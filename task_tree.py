"""Subtask trees: nesting a flat task list, progress counts, and flattening for display."""
import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, NamedTuple, Optional, Set

from schemas import TaskRecord

logger = logging.getLogger(__name__)


class Progress(NamedTuple):
    completed: int
    total: int


@dataclass
class FlatRow:
    task: TaskRecord
    level: int
    has_children: bool
    expanded: bool
    completed_count: int
    total_count: int


def order_key(task: TaskRecord):
    """Sort key for manual ordering; tasks without ``order`` go last."""
    return task.order if task.order is not None else math.inf


def resolve_parent(task: TaskRecord, index: Dict[int, TaskRecord]) -> Optional[int]:
    """Id of the record ``task`` nests under, or None if it is top-level.

    A parent missing from ``index`` makes the task top-level, and so does a
    parent chain that leads back to the task itself.
    """
    parent_id = task.parent_id
    if parent_id is None or parent_id not in index:
        return None
    seen = set()
    current = parent_id
    while current is not None and current in index and current not in seen:
        if current == task.id:
            return None
        seen.add(current)
        current = index[current].parent_id
    return parent_id


def children_of(tasks: Iterable[TaskRecord], parent_id: int) -> List[TaskRecord]:
    """Direct children of ``parent_id`` in a flat list, in manual order."""
    return sorted((t for t in tasks if t.parent_id == parent_id), key=order_key)


def _sort_children(node: TaskRecord) -> None:
    node.subtasks.sort(key=order_key)
    for child in node.subtasks:
        _sort_children(child)


def build_task_tree(tasks: Iterable[TaskRecord]) -> List[TaskRecord]:
    """Nest a flat task list into a forest.

    Returns copies of the top-level records, in input order, each with its
    direct children in ``subtasks`` sorted by ``order``. The input records are
    left untouched.
    """
    records = list(tasks)
    nodes = {task.id: task.model_copy(update={'subtasks': []}) for task in records}
    roots = []

    for task in records:
        node = nodes[task.id]
        parent_id = resolve_parent(task, nodes)
        if parent_id is None:
            if task.parent_id is not None:
                logger.debug(f"Task {task.id} has unresolved parent {task.parent_id}; showing it top-level")
            roots.append(node)
        else:
            nodes[parent_id].subtasks.append(node)

    for root in roots:
        _sort_children(root)
    return roots


def task_progress(task: TaskRecord) -> Progress:
    if not task.subtasks:
        return Progress(0, 0)
    completed = sum(1 for child in task.subtasks if child.status == 'done')
    return Progress(completed, len(task.subtasks))


def flatten_task_tree(tasks: Iterable[TaskRecord], expanded_ids: Set[int], level: int = 0) -> List[FlatRow]:
    rows = []
    for task in tasks:
        has_children = bool(task.subtasks)
        expanded = task.id in expanded_ids
        progress = task_progress(task)

        rows.append(FlatRow(
            task=task,
            level=level,
            has_children=has_children,
            expanded=expanded,
            completed_count=progress.completed,
            total_count=progress.total,
        ))

        # Collapsed nodes hide their whole subtree
        if expanded and has_children:
            rows.extend(flatten_task_tree(task.subtasks, expanded_ids, level + 1))
    return rows
