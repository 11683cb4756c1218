"""Merge failures raised by the engine."""

from __future__ import annotations

EMPTY_INPUT_MESSAGE = "One or more input tables have no data"
TEMPLATE_MISMATCH_MESSAGE = "DET file does not match Master file"


class MergeError(ValueError):
    """Base class for the two rejections the merge engine can produce."""

    default_message = ""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class EmptyInputError(MergeError):
    """DET or Master carries no data (zero bytes, or a blank first sheet)."""

    default_message = EMPTY_INPUT_MESSAGE


class TemplateMismatchError(MergeError):
    """DET and Master differ in column count or template identifier."""

    default_message = TEMPLATE_MISMATCH_MESSAGE
