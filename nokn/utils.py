import hashlib
import hmac
import uuid

from .config import PLACEHOLDER_PREFIX
from .errors import ValidationError


def new_uuid() -> str:
    return str(uuid.uuid4())


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    return sha256_hex(password)


def password_matches(stored_hash: str, password: str) -> bool:
    return hmac.compare_digest(stored_hash, sha256_hex(password))


def check_task_id(task_id: str) -> str:
    """Reject placeholder and malformed task ids before they reach the store."""
    if task_id.startswith(PLACEHOLDER_PREFIX):
        raise ValidationError(
            "Task is still being saved; retry once it has a server id",
            {"taskId": task_id},
        )
    try:
        uuid.UUID(task_id)
    except ValueError:
        raise ValidationError("Invalid task id", {"taskId": task_id}) from None
    return task_id
