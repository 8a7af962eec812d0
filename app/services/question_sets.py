"""Canonical question lists for every analysis kind.

Each kind resolves to a :class:`QuestionSet` carrying the ordered questions,
the prompt verbosity mode and the question family used for framing. The
orchestrator slices the list into fixed-size batches on every run.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence, TypeVar

from app.domain.models import AnalysisKind

T = TypeVar("T")


class PromptMode(str, Enum):
    STANDARD = "standard"
    MICRO = "micro"


class QuestionFamily(str, Enum):
    COGNITIVE = "cognitive"
    PSYCHOLOGICAL = "psychological"
    PSYCHOPATHOLOGICAL = "psychopathological"


COGNITIVE_QUESTIONS: tuple[str, ...] = (
    "IS IT INSIGHTFUL?",
    "DOES IT DEVELOP POINTS? (OR, IF IT IS A SHORT EXCERPT, IS THERE EVIDENCE THAT IT WOULD DEVELOP POINTS IF EXTENDED)?",
    "IS THE ORGANIZATION MERELY SEQUENTIAL (JUST ONE POINT AFTER ANOTHER, LITTLE OR NO LOGICAL SCAFFOLDING)? OR ARE THE IDEAS ARRANGED, NOT JUST SEQUENTIALLY BUT HIERARCHICALLY?",
    "IF THE POINTS IT MAKES ARE NOT INSIGHTFUL, DOES IT OPERATE SKILLFULLY WITH CANONS OF LOGIC/REASONING.",
    'ARE THE POINTS CLICHES? OR ARE THEY "FRESH"?',
    "DOES IT USE TECHNICAL JARGON TO OBFUSCATE OR TO RENDER MORE PRECISE?",
    "IS IT ORGANIC? DO POINTS DEVELOP IN AN ORGANIC, NATURAL WAY? DO THEY 'UNFOLD'? OR ARE THEY FORCED AND ARTIFICIAL?",
    "DOES IT OPEN UP NEW DOMAINS? OR, ON THE CONTRARY, DOES IT SHUT OFF INQUIRY (BY CONDITIONALIZING FURTHER DISCUSSION OF THE MATTERS ON ACCEPTANCE OF ITS INTERNAL AND POSSIBLY VERY FAULTY LOGIC)?",
    "IS IT ACTUALLY INTELLIGENT OR JUST THE WORK OF SOMEBODY WHO, JUDGING BY THE SUBJECT-MATTER, IS PRESUMED TO BE INTELLIGENT (BUT MAY NOT BE)?",
    "IS IT REAL OR IS IT PHONY?",
    "DO THE SENTENCES EXHIBIT COMPLEX AND COHERENT INTERNAL LOGIC?",
    "IS THE PASSAGE GOVERNED BY A STRONG CONCEPT? OR IS THE ONLY ORGANIZATION DRIVEN PURELY BY EXPOSITORY (AS OPPOSED TO EPISTEMIC) NORMS?",
    "IS THERE SYSTEM-LEVEL CONTROL OVER IDEAS? IN OTHER WORDS, DOES THE AUTHOR SEEM TO RECALL WHAT HE SAID EARLIER AND TO BE IN A POSITION TO INTEGRATE IT INTO POINTS HE HAS MADE SINCE THEN?",
    "ARE THE POINTS 'REAL'? ARE THEY FRESH? OR IS SOME INSTITUTION OR SOME ACCEPTED VEIN OF PROPAGANDA OR ORTHODOXY JUST USING THE AUTHOR AS A MOUTH PIECE?",
    "IS THE WRITING EVASIVE OR DIRECT?",
    "ARE THE STATEMENTS AMBIGUOUS?",
    "DOES THE PROGRESSION OF THE TEXT DEVELOP ACCORDING TO WHO SAID WHAT OR ACCORDING TO WHAT ENTAILS OR CONFIRMS WHAT?",
    "DOES THE AUTHOR USE OTHER AUTHORS TO DEVELOP HIS IDEAS OR TO CLOAK HIS OWN LACK OF IDEAS?",
    "ARE THERE TERMS THAT ARE UNDEFINED BUT SHOULD BE DEFINED, IN THE SENSE THAT, WITHOUT DEFINITIONS, IT IS DIFFICULT OR IMPOSSIBLE TO KNOW WHAT IS BEING SAID OR THEREFORE TO EVALUATE WHAT IS BEING SAID?",
    'ARE THERE "FREE VARIABLES" IN THE TEXT? IE ARE THERE QUALIFICATIONS OR POINTS THAT ARE MADE BUT DO NOT CONNECT TO ANYTHING LATER OR EARLIER?',
    'DO NEW STATEMENTS DEVELOP OUT OF OLD ONES? OR ARE THEY MERELY "ADDED" TO PREVIOUS ONES, WITHOUT IN ANY SENSE BEING GENERATED BY THEM?',
    "DO NEW STATEMENTS CLARIFY OR DO THEY LEAD TO MORE LACK OF CLARITY?",
    'IS THE PASSAGE ACTUALLY (PALPABLY) SMART? OR IS ONLY "PRESUMPTION-SMART"? IE IS IT "SMART" ONLY IN THE SENSE THAT THERE EXISTS A PRESUMPTION THAT A DUMB PERSON WOULD NOT REFERENCE SUCH DOCTRINES?',
    "IF YOUR JUDGMENT IS THAT IT IS INSIGHTFUL, CAN YOU STATEMENT THAT INSIGHT IN A SINGLE SENTENCE? OR IF IT CONTAINS MULTIPLE INSIGHTS, CAN YOU STATE THOSE INSIGHTS, ONE PER SENTENCE?",
)

COMPREHENSIVE_COGNITIVE_EXTRA: tuple[str, ...] = (
    "DOES THE AUTHOR UNDERSTAND THE FOUNDATIONS OF THE SUBJECT MATTER?",
    "IS THERE EVIDENCE OF DEEP STRUCTURAL UNDERSTANDING?",
    "DOES THE WORK TRANSCEND DISCIPLINARY BOUNDARIES MEANINGFULLY?",
    "IS THE ARGUMENTATION INTERNALLY CONSISTENT ACROSS ALL LEVELS?",
    "DOES THE AUTHOR ANTICIPATE AND ADDRESS COUNTERARGUMENTS?",
    "IS THERE SYSTEMATIC INTEGRATION OF MULTIPLE PERSPECTIVES?",
    "DOES THE WORK DEMONSTRATE MASTERY OF RELEVANT METHODOLOGIES?",
    "IS THE SCOPE APPROPRIATE TO THE CLAIMS BEING MADE?",
)

PSYCHOLOGICAL_QUESTIONS: tuple[str, ...] = (
    "WHAT PSYCHOLOGICAL PROFILE EMERGES FROM THE WRITING STYLE?",
    "DOES THE AUTHOR DISPLAY INTELLECTUAL COURAGE OR COWARDICE?",
    "IS THERE EVIDENCE OF INTELLECTUAL HONESTY OR SELF-DECEPTION?",
    "WHAT LEVEL OF EMOTIONAL INTELLIGENCE IS DEMONSTRATED?",
    "DOES THE AUTHOR SHOW CAPACITY FOR SELF-REFLECTION?",
    "IS THERE EVIDENCE OF PSYCHOLOGICAL RIGIDITY OR FLEXIBILITY?",
    "WHAT MOTIVATIONAL PATTERNS CAN BE INFERRED?",
    "DOES THE WRITING SUGGEST NARCISSISTIC OR HUMBLE TENDENCIES?",
    "IS THERE EVIDENCE OF ANXIETY OR CONFIDENCE IN THE PRESENTATION?",
    "WHAT LEVEL OF PSYCHOLOGICAL SOPHISTICATION IS DISPLAYED?",
)

COMPREHENSIVE_PSYCHOLOGICAL_EXTRA: tuple[str, ...] = (
    "WHAT ATTACHMENT PATTERNS ARE SUGGESTED BY THE ARGUMENTATION STYLE?",
    "DOES THE AUTHOR DISPLAY MATURE OR IMMATURE DEFENSE MECHANISMS?",
    "IS THERE EVIDENCE OF EMOTIONAL REGULATION OR DYSREGULATION?",
    "WHAT LEVEL OF EMPATHY IS DEMONSTRATED TOWARD OPPOSING VIEWPOINTS?",
    "DOES THE WORK SUGGEST HIGH OR LOW EMOTIONAL QUOTIENT?",
    "IS THERE EVIDENCE OF PROJECTION OR PSYCHOLOGICAL INSIGHT?",
    "WHAT PERSONALITY TRAITS EMERGE FROM THE COMMUNICATION PATTERNS?",
    "DOES THE AUTHOR SHOW CAPACITY FOR PSYCHOLOGICAL GROWTH?",
)

PSYCHOPATHOLOGICAL_QUESTIONS: tuple[str, ...] = (
    "ARE THERE SIGNS OF COGNITIVE DISTORTIONS OR CLEAR THINKING?",
    "DOES THE REASONING SUGGEST PATHOLOGICAL OR HEALTHY MENTAL PROCESSES?",
    "IS THERE EVIDENCE OF PARANOID THINKING OR APPROPRIATE SKEPTICISM?",
    "DOES THE WORK DISPLAY GRANDIOSITY OR APPROPRIATE SELF-ASSESSMENT?",
    "ARE THERE SIGNS OF DELUSIONAL THINKING OR REALITY-BASED REASONING?",
    "DOES THE AUTHOR SHOW CAPACITY FOR LOGICAL COHERENCE?",
    "IS THERE EVIDENCE OF OBSESSIVE-COMPULSIVE PATTERNS IN THE REASONING?",
    "DOES THE WORK SUGGEST MANIC OR BALANCED MENTAL STATES?",
    "ARE THERE SIGNS OF DISSOCIATION OR INTEGRATED THINKING?",
    "DOES THE REASONING SUGGEST PSYCHOTIC OR NEUROTIC ORGANIZATION?",
)

COMPREHENSIVE_PSYCHOPATHOLOGICAL_EXTRA: tuple[str, ...] = (
    "WHAT LEVEL OF REALITY TESTING IS DEMONSTRATED?",
    "ARE THERE SIGNS OF THOUGHT DISORDER OR ORGANIZED COGNITION?",
    "DOES THE WORK SUGGEST PERSONALITY DISORDER TRAITS?",
    "IS THERE EVIDENCE OF IMPULSE CONTROL OR DYSCONTROL?",
    "DOES THE REASONING SUGGEST BORDERLINE OR INTEGRATED FUNCTIONING?",
    "ARE THERE SIGNS OF ANTISOCIAL OR PROSOCIAL ORIENTATION?",
    "DOES THE WORK DISPLAY PSYCHOPATHIC OR EMPATHIC CHARACTERISTICS?",
    "IS THERE EVIDENCE OF DEVELOPMENTAL TRAUMA IMPACT ON COGNITION?",
)


@dataclass(frozen=True)
class QuestionSet:
    kind: AnalysisKind
    family: QuestionFamily
    mode: PromptMode
    questions: tuple[str, ...]


QUESTION_SETS: dict[AnalysisKind, QuestionSet] = {
    AnalysisKind.COGNITIVE: QuestionSet(
        AnalysisKind.COGNITIVE,
        QuestionFamily.COGNITIVE,
        PromptMode.STANDARD,
        COGNITIVE_QUESTIONS,
    ),
    AnalysisKind.COMPREHENSIVE_COGNITIVE: QuestionSet(
        AnalysisKind.COMPREHENSIVE_COGNITIVE,
        QuestionFamily.COGNITIVE,
        PromptMode.STANDARD,
        COGNITIVE_QUESTIONS + COMPREHENSIVE_COGNITIVE_EXTRA,
    ),
    AnalysisKind.MICROCOGNITIVE: QuestionSet(
        AnalysisKind.MICROCOGNITIVE,
        QuestionFamily.COGNITIVE,
        PromptMode.MICRO,
        COGNITIVE_QUESTIONS,
    ),
    AnalysisKind.PSYCHOLOGICAL: QuestionSet(
        AnalysisKind.PSYCHOLOGICAL,
        QuestionFamily.PSYCHOLOGICAL,
        PromptMode.STANDARD,
        PSYCHOLOGICAL_QUESTIONS,
    ),
    AnalysisKind.COMPREHENSIVE_PSYCHOLOGICAL: QuestionSet(
        AnalysisKind.COMPREHENSIVE_PSYCHOLOGICAL,
        QuestionFamily.PSYCHOLOGICAL,
        PromptMode.STANDARD,
        PSYCHOLOGICAL_QUESTIONS + COMPREHENSIVE_PSYCHOLOGICAL_EXTRA,
    ),
    AnalysisKind.MICROPSYCHOLOGICAL: QuestionSet(
        AnalysisKind.MICROPSYCHOLOGICAL,
        QuestionFamily.PSYCHOLOGICAL,
        PromptMode.MICRO,
        PSYCHOLOGICAL_QUESTIONS,
    ),
    AnalysisKind.PSYCHOPATHOLOGICAL: QuestionSet(
        AnalysisKind.PSYCHOPATHOLOGICAL,
        QuestionFamily.PSYCHOPATHOLOGICAL,
        PromptMode.STANDARD,
        PSYCHOPATHOLOGICAL_QUESTIONS,
    ),
    AnalysisKind.COMPREHENSIVE_PSYCHOPATHOLOGICAL: QuestionSet(
        AnalysisKind.COMPREHENSIVE_PSYCHOPATHOLOGICAL,
        QuestionFamily.PSYCHOPATHOLOGICAL,
        PromptMode.STANDARD,
        PSYCHOPATHOLOGICAL_QUESTIONS + COMPREHENSIVE_PSYCHOPATHOLOGICAL_EXTRA,
    ),
    AnalysisKind.MICROPSYCHOPATHOLOGICAL: QuestionSet(
        AnalysisKind.MICROPSYCHOPATHOLOGICAL,
        QuestionFamily.PSYCHOPATHOLOGICAL,
        PromptMode.MICRO,
        PSYCHOPATHOLOGICAL_QUESTIONS,
    ),
}


def get_question_set(kind: AnalysisKind | str) -> QuestionSet:
    """Return the question set for ``kind``; unknown kinds raise ``KeyError``."""

    return QUESTION_SETS[AnalysisKind(kind)]


def make_batches(items: Sequence[T], batch_size: int) -> list[list[T]]:
    """Split ``items`` into consecutive groups of ``batch_size`` (last may be shorter)."""

    if batch_size < 1:
        raise ValueError("batch_size must be a positive integer")
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]


__all__ = [
    "PromptMode",
    "QuestionFamily",
    "QuestionSet",
    "QUESTION_SETS",
    "get_question_set",
    "make_batches",
]
