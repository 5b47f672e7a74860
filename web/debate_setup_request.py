from pydantic import BaseModel, Field, field_validator


class DebateSetupRequest(BaseModel):
    """Request model for starting a single-question debate."""

    document_id: str
    question: str | None = None
    num_debaters: int | None = Field(default=None, ge=2)
    cross_examination_rounds: int | None = Field(default=None, ge=0)

    @field_validator("question")
    @classmethod
    def validate_question(cls, v):
        """Treat a blank question as no seed question."""
        if v is None:
            return v
        return v.strip() or None


class QuestionGenerationRequest(BaseModel):
    """Request model for proposing debate questions about a document."""

    document_id: str
    max_questions: int | None = Field(default=None, ge=1, le=50)


class EnhancedDebateRequest(BaseModel):
    """Request model for a multi-question debate run."""

    document_id: str
    questions: list[str]

    @field_validator("questions")
    @classmethod
    def validate_questions(cls, v):
        """Drop blank entries; the orchestrator enforces the minimum count."""
        return [q.strip() for q in v if q.strip()]
