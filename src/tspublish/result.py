"""Result type for tspublish entry points."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, PrivateAttr

from .errors import PipelineError, StepExecutionError


class PipelineResult(BaseModel):
    """
    Terminal outcome of a pipeline invocation.

    Use Ok(value) or Err(error) to construct results. A failed result carries
    the captured output of the command that failed, unmodified.
    """

    status: Literal["success", "failure"] = "success"
    error: str | None = None
    error_type: str | None = None
    step: str | None = None
    stdout: str = ""
    stderr: str = ""
    _value: Any = PrivateAttr(default=None)

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        """True if the pipeline succeeded."""
        return self.status == "success"

    @property
    def failed(self) -> bool:
        """True if the pipeline failed."""
        return self.status == "failure"

    def value(self) -> Any:
        """
        Get the value returned by the entry point.

        Raises RuntimeError if the result is a failure.
        """
        if self.failed:
            raise RuntimeError(f"Attempted to get value from a failed result: {self.error}")
        return self._value

    def value_or(self, default: Any) -> Any:
        """Get the value, or return a default if the result is a failure or has no value."""
        if self.ok and self._value is not None:
            return self._value
        return default


def Ok(value: Any = None) -> PipelineResult:
    """Create a successful result with the given value."""
    result = PipelineResult(status="success")
    object.__setattr__(result, "_value", value)
    return result


def Err(error: PipelineError) -> PipelineResult:
    """Create a failed result from the error that aborted the pipeline."""
    stdout = stderr = ""
    if isinstance(error, StepExecutionError):
        stdout, stderr = error.stdout, error.stderr
    return PipelineResult(
        status="failure",
        error=str(error),
        error_type=type(error).__name__,
        step=error.step,
        stdout=stdout,
        stderr=stderr,
    )
