"""Test doubles shared by the test modules."""
import itertools
import json
import threading
from datetime import datetime, timedelta
from urllib.parse import urlsplit

import requests

from client import ApiError, NotFoundError
from schemas import TaskCreate, TaskPatch, TaskRecord

BASE_TIME = datetime(2024, 1, 1, 8, 0, 0)


def record(id, **fields):
    """TaskRecord with a deterministic createdAt (later ids are newer)."""
    fields.setdefault('created_at', BASE_TIME + timedelta(minutes=id))
    return TaskRecord(id=id, **fields)


class FakeResponse:
    def __init__(self, response):
        self.status_code = response.status_code
        self.text = response.get_data(as_text=True)
        self.ok = self.status_code < 400

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """requests.Session stand-in that routes calls into a Flask test client."""

    def __init__(self, flask_client):
        self.flask_client = flask_client
        self.calls = []

    def request(self, method, url, params=None, json=None, timeout=None):
        path = urlsplit(url).path
        self.calls.append((method, path, params, json))
        response = self.flask_client.open(path, method=method, query_string=params, json=json)
        return FakeResponse(response)


class CannedResponse:
    def __init__(self, body, status_code=200):
        self.status_code = status_code
        self.text = json.dumps(body)
        self.ok = status_code < 400

    def json(self):
        return json.loads(self.text)


class CannedSession:
    """Answers every request with the same JSON body."""

    def __init__(self, body, status_code=200):
        self.body = body
        self.status_code = status_code

    def request(self, method, url, **kwargs):
        return CannedResponse(self.body, self.status_code)


class BrokenSession:
    def request(self, method, url, **kwargs):
        raise requests.ConnectionError("connection refused")


class FakeTasksApi:
    """
    In-memory TasksApi used for board tests.

    ``failing_ids`` makes PATCH fail for those tasks; ``fail_all`` makes every
    call fail. Every call is recorded in ``calls``.
    """

    def __init__(self, tasks=()):
        self.tasks = {t.id: t for t in tasks}
        self.calls = []
        self.failing_ids = set()
        self.fail_all = False
        self._ids = itertools.count(max(self.tasks, default=0) + 1)
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)
        if self.fail_all:
            raise ApiError("server unavailable", 500)

    def get_all_tasks(self):
        self._record('get_all_tasks')
        return list(self.tasks.values())

    def create_task(self, document):
        if not isinstance(document, TaskCreate):
            document = TaskCreate.model_validate(document)
        self._record('create_task', document)
        task = record(next(self._ids), **document.column_values())
        self.tasks[task.id] = task
        return task

    def patch_task(self, task_id, patch=None, **fields):
        if patch is None:
            patch = fields
        if not isinstance(patch, TaskPatch):
            patch = TaskPatch.model_validate(patch)
        self._record('patch_task', task_id, patch.column_values())
        if task_id in self.failing_ids:
            raise ApiError(f"PATCH {task_id} failed", 500)
        if task_id not in self.tasks:
            raise NotFoundError(f"task {task_id} not found", 404)
        updated = self.tasks[task_id].model_copy(update=patch.column_values())
        self.tasks[task_id] = updated
        return updated

    def delete_task(self, task_id):
        self._record('delete_task', task_id)
        if task_id not in self.tasks:
            raise NotFoundError(f"task {task_id} not found", 404)
        del self.tasks[task_id]

    def patches(self):
        return [call for call in self.calls if call[0] == 'patch_task']
