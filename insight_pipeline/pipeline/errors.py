"""Pipeline-specific exceptions."""


class PipelineError(Exception):
    """Base exception for pipeline failures."""

    def __init__(self, message: str, *, code: str = "PIPELINE_ERROR") -> None:
        super().__init__(message)
        self.code = code


class SinkWriteError(PipelineError):
    """An output stream could not be written. Fatal to the run."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="SINK_WRITE_ERROR")


class InputRecordError(PipelineError):
    """An input line is not a valid record."""

    def __init__(self, message: str, *, line_number: int | None = None) -> None:
        super().__init__(message, code="INPUT_RECORD_ERROR")
        self.line_number = line_number
