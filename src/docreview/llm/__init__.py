from __future__ import annotations

from docreview.llm.client import Backend, ChatMessage, Completion, ModelGateway, truncate_history

__all__ = ["Backend", "ChatMessage", "Completion", "ModelGateway", "truncate_history"]
