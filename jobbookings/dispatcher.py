"""
Request dispatcher for booking operations.

Routes a method tag and payload to the BookingManager and turns the outcome
into a (status, result) pair. Nothing raised below this point escapes: client
errors come back as structured results, store and unexpected failures are
logged and reported with a short generic message.
"""

import json
from typing import Any, Callable, Dict, Optional, Tuple

from .errors import BookingError, InvalidPayload, MethodNotSupported, StoreUnavailable
from .logger import get_logger
from .manager import BookingManager
from .schema import validate_payload

Result = Dict[str, Any]

JSON_HEADERS = {"Content-Type": "application/json"}

# body "type" values accepted by the event adapter and POST /api/bookings
POST_TYPES = ("add", "update", "delete")


def _list(manager: BookingManager, payload: dict) -> Result:
    return {"bookings": manager.list_bookings()}


def _add(manager: BookingManager, payload: dict) -> Result:
    booking_id = manager.add(payload["date_key"], payload["job"], payload.get("id"))
    return {"id": booking_id}


def _update_by_index(manager: BookingManager, payload: dict) -> Result:
    manager.update_by_index(payload["date_key"], payload["index"], payload["job"])
    return {}


def _update_by_id(manager: BookingManager, payload: dict) -> Result:
    manager.update_by_id(payload["id"], payload["job"], payload.get("date_key"))
    return {}


def _delete_by_index(manager: BookingManager, payload: dict) -> Result:
    manager.delete_by_index(payload["date_key"], payload["index"])
    return {}


def _delete_by_id(manager: BookingManager, payload: dict) -> Result:
    manager.delete_by_id(payload["id"])
    return {}


HANDLERS: Dict[str, Callable[[BookingManager, dict], Result]] = {
    "list": _list,
    "add": _add,
    "update_by_index": _update_by_index,
    "update_by_id": _update_by_id,
    "delete_by_index": _delete_by_index,
    "delete_by_id": _delete_by_id,
}


def error_result(error: BookingError) -> Tuple[int, Result]:
    return error.status, {"success": False, "error": error.to_dict()}


def dispatch(method: str, payload: Optional[dict] = None, manager: Optional[BookingManager] = None) -> Tuple[int, Result]:
    """
    Run one booking operation.

    Args:
        method: One of list, add, update_by_index, update_by_id, delete_by_index, delete_by_id
        payload: Operation arguments
        manager: Manager to use (default: a new BookingManager on the shared database)

    Returns:
        Tuple of (transport status, result dict with a 'success' flag)
    """
    logger = get_logger()
    manager = manager or BookingManager()
    logger.record_operation_attempt(method)
    logger.debug("Dispatching booking operation", method=method)

    try:
        if method not in HANDLERS:
            raise MethodNotSupported(f"Method not supported: {method}")
        errors = validate_payload(method, payload)
        if errors:
            raise InvalidPayload("; ".join(errors))
        result = HANDLERS[method](manager, payload or {})
    except StoreUnavailable as e:
        logger.record_operation_failure(method, e.code)
        logger.error("Booking store unavailable", method=method, error=str(e.__cause__ or e))
        return error_result(e)
    except BookingError as e:
        logger.record_operation_failure(method, e.code)
        logger.warning("Booking operation rejected", method=method, code=e.code, error=e.message)
        return error_result(e)
    except Exception as e:
        logger.record_operation_failure(method, "Unexpected")
        logger.error("Unexpected booking error", method=method, error=f"{type(e).__name__}: {e}")
        return error_result(BookingError("Internal server error"))

    logger.record_operation_success(method)
    return 200, {"success": True, **result}


def translate_post(body: Any) -> Tuple[str, dict]:
    """
    Map a typed POST body ({"type": "add" | "update" | "delete", ...}) to a method tag.

    update and delete address by position when an integer 'index' is present, by id otherwise.

    Raises:
        MethodNotSupported: Unknown or missing type
    """
    if not isinstance(body, dict):
        raise InvalidPayload("Body must be a JSON object")
    kind = body.get("type")
    if kind not in POST_TYPES:
        raise MethodNotSupported(f"Unsupported booking request type: {kind}")
    payload = {k: v for k, v in body.items() if k != "type"}
    if kind == "add":
        return "add", payload
    by_index = payload.get("index") is not None
    if kind == "update":
        return ("update_by_index" if by_index else "update_by_id"), payload
    return ("delete_by_index" if by_index else "delete_by_id"), payload


def dispatch_post(body: Any, manager: Optional[BookingManager] = None) -> Tuple[int, Result]:
    try:
        method, payload = translate_post(body)
    except BookingError as e:
        get_logger().warning("Booking request rejected", code=e.code, error=e.message)
        return error_result(e)
    return dispatch(method, payload, manager)


def handle_event(event: dict, manager: Optional[BookingManager] = None) -> dict:
    """
    Serverless-style entry point.

    Args:
        event: {"httpMethod": "GET" | "POST", "body": JSON string or None}

    Returns:
        {"statusCode": int, "headers": dict, "body": JSON string}
    """
    http_method = (event.get("httpMethod") or "").upper()
    raw_body = event.get("body")

    if http_method == "GET":
        status, result = dispatch("list", {}, manager)
    elif http_method == "POST":
        try:
            body = json.loads(raw_body) if raw_body else {}
        except (TypeError, ValueError):
            status, result = error_result(InvalidPayload("Body is not valid JSON"))
        else:
            status, result = dispatch_post(body, manager)
    else:
        status, result = error_result(MethodNotSupported(f"Method not allowed: {http_method or 'none'}"))

    return {
        "statusCode": status,
        "headers": dict(JSON_HEADERS),
        "body": json.dumps(result, default=str),
    }
