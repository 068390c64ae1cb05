import logging
from typing import List, Optional

import requests
from pydantic import ValidationError

from config import Config
from schemas import TaskCreate, TaskPatch, TaskRecord

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Transport failure or non-2xx answer from the task API."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ApiError):
    pass


class TasksApi:
    def __init__(self, base_url: Optional[str] = None, session=None, timeout: Optional[float] = None):
        self.base_url = (base_url or Config.API_BASE_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else Config.API_TIMEOUT

    # ---------- plumbing ----------
    def _request(self, method: str, path: str, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError(f"{method} {path} failed: {e}") from e
        if r.status_code == 404:
            raise NotFoundError(f"{method} {path}: not found", r.status_code)
        if not r.ok:
            raise ApiError(f"{method} {path} failed: {r.status_code} {r.text}", r.status_code)
        return r

    @staticmethod
    def _json(r):
        try:
            return r.json()
        except ValueError as e:
            raise ApiError(f"Malformed response body: {e}", r.status_code) from e

    def _field(self, r, key):
        body = self._json(r)
        try:
            return body[key]
        except (KeyError, TypeError) as e:
            raise ApiError(f"Response body has no {key!r}", r.status_code) from e

    def _task(self, r) -> TaskRecord:
        try:
            return TaskRecord.model_validate(self._field(r, "task"))
        except ValidationError as e:
            raise ApiError(f"Malformed task in response: {e}", r.status_code) from e

    def _tasks(self, r) -> List[TaskRecord]:
        try:
            return [TaskRecord.model_validate(item) for item in self._field(r, "tasks")]
        except (ValidationError, TypeError) as e:
            raise ApiError(f"Malformed task list in response: {e}", r.status_code) from e

    # ---------- queries ----------
    def get_tasks(self, from_=None, to=None, status: Optional[str] = None) -> List[TaskRecord]:
        params = {}
        if from_ is not None:
            params["from"] = str(from_)
        if to is not None:
            params["to"] = str(to)
        if status:
            params["status"] = status
        return self._tasks(self._request("GET", "/tasks", params=params))

    def get_all_tasks(self) -> List[TaskRecord]:
        return self._tasks(self._request("GET", "/tasks/all"))

    def get_task(self, task_id: int) -> TaskRecord:
        return self._task(self._request("GET", f"/tasks/{task_id}"))

    def analytics(self) -> dict:
        return self._field(self._request("GET", "/analytics"), "analytics")

    def health(self) -> dict:
        return self._json(self._request("GET", "/health"))

    # ---------- commands ----------
    def create_task(self, document) -> TaskRecord:
        if not isinstance(document, TaskCreate):
            document = TaskCreate.model_validate(document)
        return self._task(self._request("POST", "/tasks", json=document.to_json()))

    def update_task(self, task_id: int, document) -> TaskRecord:
        if not isinstance(document, TaskCreate):
            document = TaskCreate.model_validate(document)
        return self._task(self._request("PUT", f"/tasks/{task_id}", json=document.to_json()))

    def patch_task(self, task_id: int, patch=None, **fields) -> TaskRecord:
        """PATCH a subset of fields, given as a TaskPatch, a dict, or keyword arguments."""
        if patch is None:
            patch = fields
        if not isinstance(patch, TaskPatch):
            patch = TaskPatch.model_validate(patch)
        return self._task(self._request("PATCH", f"/tasks/{task_id}", json=patch.to_json()))

    def complete_task(self, task_id: int) -> TaskRecord:
        return self._task(self._request("POST", f"/tasks/{task_id}/complete"))

    def delete_task(self, task_id: int) -> None:
        self._request("DELETE", f"/tasks/{task_id}")
        logger.debug(f"Deleted task {task_id}")
