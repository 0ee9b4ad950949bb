"""HTTP client for the server-side time-entry API.

Every call returns a parsed TimerSnapshot (or None) and reports failures as
TimerError subclasses, so the reconciler never sees an httpx exception.
"""

import httpx

from tt.common.logger import log
from tt.core.errors import (AlreadyRunning, AuthorityRejected, AuthorityUnavailable, MalformedSnapshot,
                            NetworkFailure)
from tt.core.snapshot import TimerSnapshot

# The backend answers a second start with a 400 and this message instead of a 409.
_ALREADY_RUNNING_MARKER = "already a running timer"


class TimerAuthority:

    def __init__(self, base_url, employee_id=None, api_token=None, timeout=10.0, transport=None):
        self.employee_id = employee_id
        headers = {"Accept": "application/json", "User-Agent": "TaskTimer/1.0"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
            log.debug(f"Timer authority client using API token {api_token[:4]}... (length={len(api_token)})")
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    #region === Endpoints ===

    async def start(self, subject):
        payload = subject.to_start_payload(self.employee_id)
        return await self._request("POST", "/time-entries/start", json=payload)

    async def start_for_task(self, task_id):
        return await self._request("POST", f"/time-entries/start-for-task/{task_id}",
                                   json={"employeeId": self.employee_id})

    async def pause(self, timer_id):
        return await self._request("POST", f"/time-entries/pause/{timer_id}")

    async def resume(self, timer_id):
        return await self._request("POST", f"/time-entries/resume/{timer_id}")

    async def stop(self, timer_id, mark_task_complete=False):
        params = {"markTaskComplete": "true" if mark_task_complete else "false"}
        return await self._request("POST", f"/time-entries/stop/{timer_id}", params=params)

    async def running(self):
        params = {}
        if self.employee_id is not None:
            params["employeeId"] = self.employee_id
        return await self._request("GET", "/time-entries/running", params=params)

    #endregion === Endpoints ===

    async def _request(self, method, path, **kwargs):
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise NetworkFailure(f"{method} {path} failed: {e}") from e

        log.debug(f"{method} {path} -> HTTP {response.status_code}")
        body = self._decode(response)
        if response.is_success:
            if not isinstance(body, dict):
                raise MalformedSnapshot(f"{method} {path} returned a non-object body")
            return TimerSnapshot.from_payload(body.get("data"))

        message = body.get("message") if isinstance(body, dict) else None
        if response.status_code == 409:
            raise AlreadyRunning(message)
        if response.status_code == 400 and message and _ALREADY_RUNNING_MARKER in message.lower():
            raise AlreadyRunning(message)
        if response.status_code >= 500:
            raise AuthorityUnavailable(response.status_code, message)
        raise AuthorityRejected(response.status_code, message)

    # Error pages from proxies are not JSON; only a successful response is required to be.
    @staticmethod
    def _decode(response):
        try:
            return response.json()
        except ValueError as e:
            if response.is_success:
                raise MalformedSnapshot(f"Response from {response.request.url} is not valid JSON") from e
            return None
