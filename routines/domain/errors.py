from __future__ import annotations


class RoutineError(Exception):
    """Base class for errors raised by the routine engine."""


class InputError(RoutineError):
    pass


class ValidationError(RoutineError):
    pass


class CollaboratorReadError(RoutineError):
    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"failed to read {source}: {message}")
        self.source = source


class TaskNotFound(RoutineError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"task instance {task_id} not found")
        self.task_id = task_id


class InvalidTransition(RoutineError):
    pass


class PermissionDenied(RoutineError):
    pass
