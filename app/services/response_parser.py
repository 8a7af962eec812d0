"""Split a batch answer into per-question responses and scores."""

from __future__ import annotations

import re
from typing import Any, Sequence

_QUESTION_MARKER = re.compile(r"^(\d+)\.")
_SCORE = re.compile(r"(\d+)/100")


def _finish(item: dict[str, Any], response: str) -> None:
    item["response"] = response.strip()
    item["isComplete"] = True
    score = _SCORE.search(response)
    if score:
        item["score"] = int(score.group(1))


def parse_question_responses(response: str, questions: Sequence[str]) -> list[dict[str, Any]]:
    """Return one ``{question, response, score, isComplete}`` item per question.

    A line starting with ``<n>.`` opens the answer to question ``n`` (1-indexed
    within the batch); following lines belong to it until the next marker.
    Text before the first marker (summary preamble) is ignored, as are
    markers numbered beyond the question list.
    """

    results: list[dict[str, Any]] = [
        {"question": question, "response": "", "score": 0, "isComplete": False}
        for question in questions
    ]

    current = -1
    buffer = ""
    for line in response.split("\n"):
        marker = _QUESTION_MARKER.match(line)
        if marker:
            if 0 <= current < len(results):
                _finish(results[current], buffer)
            current = int(marker.group(1)) - 1
            buffer = line[marker.end():].strip()
        elif current >= 0:
            buffer += "\n" + line

    if 0 <= current < len(results):
        _finish(results[current], buffer)

    return results


__all__ = ["parse_question_responses"]
