# Rev 0.2.0
"""Errors raised by the task core. All derive from TrackerError."""
from __future__ import annotations


class TrackerError(Exception):
    """Base class for task core errors."""


class NotFound(TrackerError):
    def __init__(self, kind: str, obj_id):
        super().__init__(f"{kind} {obj_id} not found")
        self.kind = kind
        self.obj_id = obj_id


class ValidationError(TrackerError):
    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class InvalidStatus(TrackerError):
    def __init__(self, value):
        super().__init__(f"invalid status: {value!r}")
        self.value = value


class PermissionDenied(TrackerError):
    def __init__(self, action: str, role):
        super().__init__(f"role {role!r} may not {action}")
        self.action = action
        self.role = role
