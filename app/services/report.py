"""Plain-text rendering of an analysis for download."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Mapping

from app.domain.models import AnalysisJob

REPORT_TITLE = "PSYCHOLOGY PRO ANALYSIS REPORT"


def report_filename(job: AnalysisJob, generated_at: datetime | None = None) -> str:
    generated_at = generated_at or datetime.now()
    return f"analysis_{job.id}_{generated_at:%Y-%m-%d}.txt"


def format_analysis_report(
    job: AnalysisJob,
    results: Mapping[str, Any] | None = None,
    generated_at: datetime | None = None,
) -> str:
    """Render the report; ``results`` overrides the stored ones (e.g. a truncated view)."""

    generated_at = generated_at or datetime.now()
    results = job.results if results is None else results

    lines = [
        REPORT_TITLE,
        f"Generated: {generated_at:%m/%d/%Y, %I:%M:%S %p}",
        f"Analysis Type: {job.type.value.upper()}",
        f"LLM Provider: {job.llm_provider.value.upper()}",
        "",
        "ORIGINAL TEXT:",
        job.text_content,
        "",
    ]
    if job.additional_context:
        lines += ["ADDITIONAL CONTEXT:", job.additional_context, ""]

    content = "\n".join(lines) + "\n"
    if results:
        content += "ANALYSIS RESULTS:\n" + json.dumps(results, indent=2, ensure_ascii=False)
    return content


__all__ = ["REPORT_TITLE", "format_analysis_report", "report_filename"]
