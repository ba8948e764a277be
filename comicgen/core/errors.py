from typing import Optional


class ComicGenerationError(Exception):
    """Base class for failures raised by the comic generation pipeline."""


class MalformedResponseError(ComicGenerationError):
    """The provider answered, but the envelope lacks the expected text or image field."""

    def __init__(self, message: str, payload: Optional[object] = None):
        super().__init__(message)
        self.payload = payload


class JSONSalvageError(ComicGenerationError):
    """No parsing strategy could recover a JSON value from model output."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class IncompleteOutlineError(ComicGenerationError):
    def __init__(self, expected: int, actual: int):
        super().__init__(f"Outline has {actual} panels, expected {expected}.")
        self.expected = expected
        self.actual = actual


class EmptyImageResponseError(ComicGenerationError):
    """The diffusion model returned no images."""
