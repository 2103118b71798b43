"""Pipeline error taxonomy.

Service failures from the completion layer are LLMError subclasses
(see interview2article.llm.errors); these cover everything else.
"""


class PipelineError(Exception):
    """Base class for pipeline errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInputError(PipelineError):
    """Raised when an argument is bad or a prerequisite artifact is missing."""


class NotFoundError(PipelineError):
    """Raised when a question or content source id is unknown."""

    def __init__(self, kind: str, item_id: str):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind} with ID '{item_id}' not found")


class StageBusyError(PipelineError):
    """Raised when a stage is started while a run of it is in flight."""

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Stage '{stage}' is already running")
