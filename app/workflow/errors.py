from __future__ import annotations

from app.workflow.steps import Step


class WorkflowError(RuntimeError):
    def __init__(self, message: str, *, code: str = "workflow_error"):
        super().__init__(message)
        self.message = message
        self.code = code


class InvalidStepTransition(WorkflowError):
    def __init__(self, operation: str, step: Step):
        super().__init__(
            f"'{operation}' is not available while the workflow is on the '{step.value}' step.",
            code="invalid_step",
        )
        self.operation = operation
        self.step = step


class WorkflowBusy(WorkflowError):
    def __init__(self, operation: str):
        super().__init__(
            f"'{operation}' cannot run while another operation is in progress.",
            code="workflow_busy",
        )
        self.operation = operation


class WorkflowConfigurationError(WorkflowError):
    def __init__(self, message: str):
        super().__init__(message, code="configuration_error")
