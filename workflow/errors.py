from __future__ import annotations


class WorkflowError(Exception):
    """Base for rejected actions. `message` is shown to the actor as-is."""

    default_message = "Action rejected"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class SelectionRequired(WorkflowError):
    default_message = "Select one"


class InvalidFileType(WorkflowError):
    default_message = "Please drop a PDF file"


class FileTooLarge(WorkflowError):
    default_message = "File is too large"

    def __init__(self, size_bytes: int, max_bytes: int) -> None:
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes
        max_mb = max_bytes / (1024 * 1024)
        max_label = f"{max_mb:g}"
        super().__init__(
            f"File size must be under {max_label}MB. "
            f"Current file size: {size_bytes / (1024 * 1024):.2f}MB"
        )


class RoleNotPermitted(WorkflowError):
    default_message = "Your role cannot perform this action"


class InvalidTransition(WorkflowError):
    default_message = "This action is not available for the selected document"


class ReadOnlyView(WorkflowError):
    default_message = "Documents in this tab are read-only"
