"""Error taxonomy for debate orchestration."""


class DebateError(Exception):
    """Base class for debate orchestration failures."""


class InsufficientContext(DebateError):
    """The document has neither full text nor an abstract to debate."""

    def __init__(self, document_id: str):
        super().__init__(
            f"Document {document_id} has no abstract or full text to debate"
        )
        self.document_id = document_id


class CapabilityError(DebateError):
    """A generative capability call failed or returned unusable output."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class CapabilityTimeout(CapabilityError):
    """A capability call exceeded its timeout."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(operation, f"timed out after {timeout:.1f}s")
        self.timeout = timeout


class PartialDebaterFailure(DebateError):
    """Fewer debaters than the quorum produced an initial argument."""

    def __init__(self, failed: list[str], succeeded: list[str], quorum: int):
        super().__init__(
            f"Quorum not met: {len(succeeded)} of {len(failed) + len(succeeded)} "
            f"debaters produced arguments (need {quorum}); failed: {', '.join(failed)}"
        )
        self.failed = failed
        self.succeeded = succeeded
        self.quorum = quorum


class JudgeFailure(DebateError):
    """The judge could not produce a valid verdict."""


class ConsolidationOmission(DebateError):
    """A question was dropped from a multi-question consolidation."""

    def __init__(self, question_index: int, reason: str):
        super().__init__(f"Question {question_index + 1} omitted: {reason}")
        self.question_index = question_index
        self.reason = reason


class InvalidTransition(DebateError):
    """A session status change that the lifecycle does not allow."""


class SessionCancelled(DebateError):
    """The session was cancelled; no further work is dispatched."""


class DocumentNotFound(DebateError):
    """No document context exists for the requested id."""

    def __init__(self, document_id: str):
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id
