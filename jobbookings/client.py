"""HTTP client for a running bookings API."""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from .logger import get_logger
from .retry import RetryError, RetryableStatus, exponential_backoff, should_retry_http_status

DEFAULT_TIMEOUT = 15


class BookingClientError(Exception):
    """The API rejected a request or stayed unavailable after retries."""

    def __init__(self, code: str, message: str, status: Optional[int] = None):
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.status = status


def _parse_body(resp: requests.Response) -> dict:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _client_error(cause: BaseException) -> BookingClientError:
    if isinstance(cause, RetryableStatus):
        error = cause.body.get("error") or {}
        return BookingClientError(
            error.get("code", "StoreUnavailable"),
            error.get("message", str(cause)),
            cause.status_code,
        )
    return BookingClientError("StoreUnavailable", str(cause))


class BookingClient:
    """
    Thin wrapper over the bookings endpoints.

    Requests that are safe to repeat (listing, id-addressed updates and
    deletes, adds with a caller-supplied id) are retried with exponential
    backoff on timeouts, dropped connections and retryable statuses
    (408/429/5xx). Index-addressed updates and deletes, and adds that let the
    server pick the id, are only retried when the connection was never made:
    once the server has seen the request a repeat could hit the next item in
    the group or book the job twice.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        base_delay: float = 0.5,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._send = exponential_backoff(
            max_retries=max_retries,
            base_delay=base_delay,
            exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError, RetryableStatus),
            on_retry=self._log_retry,
        )(self._send_once)
        self._send_unsent_only = exponential_backoff(
            max_retries=max_retries,
            base_delay=base_delay,
            exceptions=(requests.exceptions.ConnectTimeout,),
            on_retry=self._log_retry,
        )(self._send_once)

    @staticmethod
    def _log_retry(attempt: int, error: Exception, delay: float) -> None:
        get_logger().warning("Retrying bookings request", attempt=attempt, error=str(error), delay=delay)

    def _send_once(self, method: str, path: str, body: Optional[dict] = None) -> dict:
        resp = self.session.request(method, f"{self.base_url}{path}", json=body, timeout=self.timeout)
        data = _parse_body(resp)
        if should_retry_http_status(resp.status_code):
            raise RetryableStatus(resp.status_code, data)
        if resp.status_code >= 400:
            error = data.get("error") or {}
            raise BookingClientError(
                error.get("code", f"HTTP{resp.status_code}"),
                error.get("message", resp.reason or "request failed"),
                resp.status_code,
            )
        return data

    def request(self, method: str, path: str, body: Optional[dict] = None, repeatable: bool = True) -> dict:
        """
        Send one request and return the decoded body.

        Args:
            repeatable: False for requests whose effect depends on when they
                run; those are not re-sent once the server may have seen them

        Raises:
            BookingClientError: On a rejected request, or when the API stays
                unavailable. code is "Unknown" when a non-repeatable request
                timed out or lost its connection after it was sent.
        """
        send = self._send if repeatable else self._send_unsent_only
        try:
            return send(method, path, body)
        except RetryError as e:
            raise _client_error(e.__cause__ or e) from e
        except RetryableStatus as e:
            raise _client_error(e) from e
        except requests.exceptions.RequestException as e:
            get_logger().warning("Bookings request outcome unknown, not retried", method=method, path=path, error=str(e))
            raise BookingClientError("Unknown", f"Request may have been applied: {e}") from e

    def list(self) -> Dict[str, List[Dict[str, Any]]]:
        return self.request("GET", "/api/bookings").get("bookings", {})

    def add(self, date_key: str, job: Dict[str, Any], booking_id: Optional[str] = None) -> str:
        """Book a job; without booking_id a failed send is not repeated."""
        body = {"type": "add", "date_key": date_key, "job": job}
        if booking_id:
            body["id"] = booking_id
        return self.request("POST", "/api/bookings", body, repeatable=bool(booking_id))["id"]

    def update_by_index(self, date_key: str, index: int, job: Dict[str, Any]) -> None:
        path = f"/api/bookings/by-date/{quote(date_key, safe='')}/{index}"
        self.request("PUT", path, {"job": job}, repeatable=False)

    def update_by_id(self, booking_id: str, job: Dict[str, Any], date_key: Optional[str] = None) -> None:
        self.request("PUT", f"/api/bookings/by-id/{quote(booking_id, safe='')}", {"job": job, "date_key": date_key})

    def delete_by_index(self, date_key: str, index: int) -> None:
        self.request("DELETE", f"/api/bookings/by-date/{quote(date_key, safe='')}/{index}", repeatable=False)

    def delete_by_id(self, booking_id: str) -> None:
        self.request("DELETE", f"/api/bookings/by-id/{quote(booking_id, safe='')}")
