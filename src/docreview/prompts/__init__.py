from __future__ import annotations

from docreview.prompts.stages import (
    ANALYSIS_SYSTEM_PROMPT,
    DEGRADED_SYSTEM_PROMPT,
    degraded_prompt,
    outline_prompt,
    stage_prompt,
)

__all__ = [
    "ANALYSIS_SYSTEM_PROMPT",
    "DEGRADED_SYSTEM_PROMPT",
    "degraded_prompt",
    "outline_prompt",
    "stage_prompt",
]
