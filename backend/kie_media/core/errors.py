"""Exception hierarchy shared by the catalog, the schema compiler and the client."""

from typing import Any, Dict, List, Optional


class KieError(Exception):
    """Base class for every error raised by kie_media."""


class CatalogError(KieError):
    """A catalog file is malformed or declares a model id twice."""


class UnknownModelError(KieError, KeyError):
    def __init__(self, model_id: str) -> None:
        super().__init__(f"Unknown model: {model_id}")
        self.model_id = model_id

    def __str__(self) -> str:
        return self.args[0]


class ValidationError(KieError):
    """Input rejected by a model's compiled validator.

    ``field`` and ``rule`` describe the first failing field; ``issues`` holds
    one ``{"field", "rule", "message"}`` dict per failure.
    """

    def __init__(self, model_id: str, issues: List[Dict[str, Any]]) -> None:
        first = issues[0] if issues else {"field": None, "rule": "invalid", "message": ""}
        self.model_id = model_id
        self.issues = issues
        self.field: Optional[str] = first["field"]
        self.rule: str = first["rule"]
        self.message: str = first["message"]
        super().__init__(
            f"{model_id}: invalid input for '{self.field}' ({self.rule}): {self.message}"
        )


class SubmissionError(KieError):
    def __init__(self, code: Any, message: str) -> None:
        super().__init__(f"KIE {code}: {message}")
        self.code = code
        self.message = message


class ApiError(KieError):
    """Status request failed: service error code, bad payload or exhausted retries."""

    def __init__(self, message: str, code: Any = None) -> None:
        super().__init__(message if code is None else f"KIE {code}: {message}")
        self.code = code
        self.message = message


class TaskFailedError(KieError):
    def __init__(self, task_id: str, message: str, code: Any) -> None:
        super().__init__(f"Task failed: {message} ({code})")
        self.task_id = task_id
        self.message = message
        self.code = code


RemoteTaskFailure = TaskFailedError


class TaskTimeoutError(KieError, TimeoutError):
    def __init__(self, task_id: str, waited_ms: int) -> None:
        super().__init__(f"Task timeout: {task_id} not finished after {waited_ms} ms")
        self.task_id = task_id
        self.waited_ms = waited_ms
