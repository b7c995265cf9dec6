from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Step(str, Enum):
    UPLOAD = "upload"
    AUTH = "auth"
    PARSE = "parse"
    SCORE = "score"
    PAYMENT = "payment"
    INTERVIEW = "interview"
    REWRITE = "rewrite"
    REVIEW = "review"


STEP_ORDER: tuple[Step, ...] = (
    Step.UPLOAD,
    Step.AUTH,
    Step.PARSE,
    Step.SCORE,
    Step.PAYMENT,
    Step.INTERVIEW,
    Step.REWRITE,
    Step.REVIEW,
)


@dataclass(frozen=True)
class StepPresentation:
    title: str
    icon: str


STEP_PRESENTATION: dict[Step, StepPresentation] = {
    Step.UPLOAD: StepPresentation(title="Upload Your Resume", icon="rocket"),
    Step.AUTH: StepPresentation(title="Create Account to Continue", icon="shield"),
    Step.PARSE: StepPresentation(title="Parsing Resume", icon="loader"),
    Step.SCORE: StepPresentation(title="Resume Analysis", icon="target"),
    Step.PAYMENT: StepPresentation(title="Complete Your Purchase", icon="credit-card"),
    Step.INTERVIEW: StepPresentation(title="AI Interview Chat", icon="message-square"),
    Step.REWRITE: StepPresentation(title="Rewriting Your Resume", icon="loader"),
    Step.REVIEW: StepPresentation(title="Review Your New Resume", icon="rocket"),
}


def presentation_for(step: Step) -> StepPresentation:
    return STEP_PRESENTATION[step]


def step_title(step: Step) -> str:
    return STEP_PRESENTATION[step].title


def step_icon(step: Step) -> str:
    return STEP_PRESENTATION[step].icon
