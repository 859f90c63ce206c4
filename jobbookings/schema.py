from typing import Any, Dict, List

METHODS = (
    "list",
    "add",
    "update_by_index",
    "update_by_id",
    "delete_by_index",
    "delete_by_id",
)

# method -> (required fields, optional fields)
METHOD_FIELDS = {
    "list": ([], []),
    "add": (["date_key", "job"], ["id"]),
    "update_by_index": (["date_key", "index", "job"], []),
    "update_by_id": (["id", "job"], ["date_key"]),
    "delete_by_index": (["date_key", "index"], []),
    "delete_by_id": (["id"], []),
}


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_int(v: Any) -> bool:
    # bool is an int subclass but never a valid index
    return isinstance(v, int) and not isinstance(v, bool)


def _check_field(name: str, value: Any) -> List[str]:
    if name in ("date_key", "id"):
        if not _is_non_empty_str(value):
            return [f"Field '{name}' must be a non-empty string"]
    elif name == "index":
        if not _is_int(value):
            return ["Field 'index' must be an integer"]
    elif name == "job":
        if not isinstance(value, dict):
            return ["Field 'job' must be a JSON object"]
    return []


def validate_payload(method: str, payload: Any) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    Unknown methods are not validated here.
    """
    if method not in METHOD_FIELDS:
        return []
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return ["Payload must be a JSON object"]

    errors: List[str] = []
    required, optional = METHOD_FIELDS[method]

    for f in required:
        if f not in payload or payload[f] is None:
            errors.append(f"Missing required field: {f}")
        else:
            errors.extend(_check_field(f, payload[f]))

    for f in optional:
        if payload.get(f) is not None:
            errors.extend(_check_field(f, payload[f]))

    return errors


def split_job_id(job: Dict[str, Any]) -> tuple:
    """Separate an embedded 'id' from a job document. Returns (id or None, job without id)."""
    if "id" not in job:
        return None, job
    body = {k: v for k, v in job.items() if k != "id"}
    job_id = job["id"]
    return (job_id if _is_non_empty_str(job_id) else None), body
