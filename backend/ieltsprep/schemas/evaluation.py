"""
IELTS Prep - Evaluation Schemas
Pydantic contracts for the JSON returned by the AI graders
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _check_band(value: float) -> float:
    if value * 2 != int(value * 2):
        raise ValueError("Band score must be in 0.5 increments")
    return value


class CriterionEvaluation(BaseModel):
    """One rubric criterion as scored by the grader."""
    band: float = Field(ge=0, le=9)
    summary: str = Field(min_length=1, max_length=500)
    strengths: list[str] = Field(default_factory=list, max_length=10)
    improvements: list[str] = Field(default_factory=list, max_length=10)

    @field_validator("band")
    @classmethod
    def band_in_half_steps(cls, value: float) -> float:
        return _check_band(value)


class RewrittenExcerpt(BaseModel):
    original: str = Field(max_length=1000)
    improved: str = Field(max_length=1000)
    explanation: str = Field(max_length=1000)


class WritingCriteria(BaseModel):
    task_achievement: CriterionEvaluation
    coherence_cohesion: CriterionEvaluation
    lexical_resource: CriterionEvaluation
    grammatical_range: CriterionEvaluation


class SpeakingCriteria(BaseModel):
    fluency_coherence: CriterionEvaluation
    lexical_resource: CriterionEvaluation
    grammatical_range: CriterionEvaluation
    pronunciation: CriterionEvaluation


class WritingEvaluation(BaseModel):
    """Grader response for a writing task. Unknown fields are dropped."""
    model_config = ConfigDict(extra="ignore")

    overall_band: float = Field(ge=0, le=9)
    criteria: WritingCriteria
    word_count: int | None = Field(default=None, ge=0, le=10000)
    word_count_feedback: str | None = None
    overall_feedback: str = Field(min_length=1, max_length=2000)
    rewritten_excerpt: RewrittenExcerpt | None = None
    metrics: dict[str, Any] = Field(default_factory=dict)

    @field_validator("overall_band")
    @classmethod
    def band_in_half_steps(cls, value: float) -> float:
        return _check_band(value)


class SpeakingEvaluation(BaseModel):
    """Grader response for one speaking part."""
    model_config = ConfigDict(extra="ignore")

    overall_band: float = Field(ge=0, le=9)
    criteria: SpeakingCriteria
    metrics: dict[str, Any] = Field(default_factory=dict)
    overall_feedback: str = Field(min_length=1, max_length=2000)
    sample_improvements: list[RewrittenExcerpt] = Field(default_factory=list)

    @field_validator("overall_band")
    @classmethod
    def band_in_half_steps(cls, value: float) -> float:
        return _check_band(value)
