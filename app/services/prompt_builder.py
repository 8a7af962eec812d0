"""Helpers to construct the instruction prompts sent to the LLM vendors.

Given the submitted text, an optional context note and a batch of questions,
we emit one user prompt made of:
* A fixed framing block (full scoring protocol or the terse micro variant).
* The optional ``Additional Context:`` block.
* The literal text under ``TEXT TO ANALYZE:``.
* The 1-indexed question list under ``QUESTIONS TO ANSWER:``.
"""

from __future__ import annotations

from typing import Sequence

from app.services.question_sets import PromptMode, QuestionFamily

SUMMARY_PROMPT_PREFIX = "First, summarize this text and categorize it:\n\n"

# Full protocol shared by every non-micro kind.
STANDARD_FRAMING = """MANDATORY COMPREHENSIVE INTELLIGENCE ASSESSMENT PROTOCOL

CRITICAL: Read, understand and apply EVERY WORD of these instructions before answering ANY question.

METAPOINT 1: THIS IS NOT A GRADING APP. You evaluate the intelligence of what you are given. A brilliant fragment gets a high score. Do not look for completeness and make zero assumptions about whether the text is complete or what context it was written for.

METAPOINT 2: DO NOT OVERVALUE TURNS OF PHRASE. Confident speech is not shutting down inquiry and casual speech does not mean disorganized thought.

METAPOINT 3: Always start by summarizing the text and categorizing it.

METAPOINT 4: Do not change the grading based on the category of the text. Evaluate it with respect to the general population.

METAPOINT 5: DO NOT PENALIZE BOLDNESS. Insights that, if correct, stand on their own earn their score without argumentation.

METAPOINT 6: A SCORE OF N/100 MEANS THAT (100 MINUS N)/100 OUTPERFORM THE AUTHOR WITH RESPECT TO THE PARAMETER DEFINED BY THE QUESTION.

CORE RUBRIC
1. Defined vs. undefined terms: dock placeholder terms with no clear meaning in context.
2. Free variables: dock qualifications that never connect to the argument chain.
3. Development of points: new sentences must grow out of earlier claims.
4. Insight paraphrase test: restate each insight in one sentence or treat it as fake.
5. Depth vs. surface: reward compression, dock name-dropping.
6. Friction and tension: reward epistemic tension, dock smooth but empty prose.
7. Originality: reward synthesis, dock boilerplate.
8. Phoniness check: replace key doctrines with nonsense words; if the argument reads the same, it is phony.

SCORING THRESHOLDS
85-100: genuine intelligence. 65-84: mixed. Below 65: impostor.

DO NOT GIVE CREDIT MERELY FOR JARGON OR FOR REFERENCING AUTHORITIES. FOCUS ON SUBSTANCE.

"""

STANDARD_INSTRUCTIONS = """INSTRUCTIONS:
First, summarize the text and categorize it (e.g., academic paper, casual writing, technical documentation, creative work, etc.).

Answer these questions in connection with this text. You are NOT grading; you are answering these questions based on the text given. Give a score out of 100 for each question where HIGH SCORES = GOOD PERFORMANCE.

For each question, provide:
1. Direct answer addressing the question
2. Numerical score from 1-100 (high scores = good performance)
3. Brief justification

Do not use a risk-averse standard and do not attempt to be diplomatic. If a work is a work of genius, say so and say why; give it the score it deserves."""

_MICRO_FOCUS = {
    QuestionFamily.COGNITIVE: ("COGNITIVE", "core assessment", "assessment"),
    QuestionFamily.PSYCHOLOGICAL: (
        "PSYCHOLOGICAL",
        "core psychological assessment",
        "psychological assessment",
    ),
    QuestionFamily.PSYCHOPATHOLOGICAL: (
        "PSYCHOPATHOLOGICAL",
        "core pathological assessment",
        "psychopathological assessment",
    ),
}


def _micro_framing(family: QuestionFamily) -> str:
    title, focus, _ = _MICRO_FOCUS[family]
    framing = (
        f"MICRO {title} ANALYSIS - ULTRA-CONCISE MODE\n\n"
        "CRITICAL: PROVIDE ONLY 1-2 SENTENCE RESPONSES PER QUESTION FOR SPEED.\n\n"
        "KEY INSTRUCTION: Your responses must be extremely brief - maximum 1-2 "
        f"sentences per question. Focus on the {focus} without lengthy explanations.\n\n"
    )
    if family is QuestionFamily.COGNITIVE:
        framing += (
            "SCORING: Use the same intelligence standards but express judgments "
            "concisely.\n\n"
        )
    return framing


def _micro_instructions(family: QuestionFamily) -> str:
    _, _, noun = _MICRO_FOCUS[family]
    return (
        "INSTRUCTIONS:\n"
        "First, provide a 1-sentence summary and categorization.\n\n"
        "For each question:\n"
        f"1. Give a direct 1-2 sentence {noun}\n"
        "2. Score from 1-100 (high scores = good performance)\n"
        "3. One sentence justification\n\n"
        "KEEP ALL RESPONSES EXTREMELY BRIEF FOR SPEED."
    )


def format_question_list(questions: Sequence[str]) -> str:
    """Render ``questions`` as a 1-indexed list, one per line."""

    return "\n".join(f"{index}. {question}" for index, question in enumerate(questions, 1))


def build_summary_prompt(text: str) -> str:
    return f"{SUMMARY_PROMPT_PREFIX}{text}"


def build_batch_prompt(
    text: str,
    questions: Sequence[str],
    context: str | None = None,
    mode: PromptMode = PromptMode.STANDARD,
    family: QuestionFamily = QuestionFamily.COGNITIVE,
) -> str:
    """Return the full instruction string for one question batch.

    ``mode`` only switches the framing and length boilerplate; the context,
    text and question blocks are identical in both modes.
    """

    mode = PromptMode(mode)
    family = QuestionFamily(family)
    if mode is PromptMode.MICRO:
        prompt = _micro_framing(family)
        instructions = _micro_instructions(family)
    else:
        prompt = STANDARD_FRAMING
        instructions = STANDARD_INSTRUCTIONS

    if context:
        prompt += f"Additional Context: {context}\n\n"

    prompt += (
        f"TEXT TO ANALYZE:\n{text}\n\n"
        f"QUESTIONS TO ANSWER:\n{format_question_list(questions)}\n\n"
        f"{instructions}"
    )
    return prompt


def as_user_messages(prompt: str) -> list[dict[str, str]]:
    """Wrap a prompt into the single-turn message list every vendor accepts."""

    return [{"role": "user", "content": prompt}]


__all__ = [
    "SUMMARY_PROMPT_PREFIX",
    "as_user_messages",
    "build_batch_prompt",
    "build_summary_prompt",
    "format_question_list",
]
