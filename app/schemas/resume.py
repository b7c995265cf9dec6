from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


def _round_score(value: Any) -> Any:
    if isinstance(value, float):
        return int(round(value))
    return value


class ExperienceEntry(BaseModel):
    title: str = ""
    company: str = ""
    dates: str = ""
    description: str = ""


class EducationEntry(BaseModel):
    institution: str = ""
    degree: str = ""
    dates: str = ""


class ParsedResume(BaseModel):
    skills: list[str] = Field(default_factory=list)
    experience: list[ExperienceEntry] = Field(default_factory=list)
    education: list[EducationEntry] = Field(default_factory=list)


class CategoryScores(BaseModel):
    formatting: int = Field(ge=0, le=100)
    content: int = Field(ge=0, le=100)
    keywords: int = Field(ge=0, le=100)
    experience: int = Field(ge=0, le=100)
    skills: int = Field(ge=0, le=100)
    education: int = Field(ge=0, le=100)
    achievements: int = Field(ge=0, le=100)

    @field_validator("*", mode="before")
    @classmethod
    def round_scores(cls, value: Any) -> Any:
        return _round_score(value)


class ScoreResult(BaseModel):
    overall_score: int = Field(ge=0, le=100)
    category_scores: CategoryScores
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    ats_compatibility: int = Field(ge=0, le=100)
    recommendations: list[str] = Field(default_factory=list)
    industry_alignment: str = ""

    @field_validator("overall_score", "ats_compatibility", mode="before")
    @classmethod
    def round_scores(cls, value: Any) -> Any:
        return _round_score(value)


class RewriteResult(BaseModel):
    rewritten_resume: str = Field(min_length=1)


class InterviewReply(BaseModel):
    ai_message: str = Field(min_length=1)
