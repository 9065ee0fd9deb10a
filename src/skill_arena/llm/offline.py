# src/skill_arena/llm/offline.py

from __future__ import annotations

import json
from collections.abc import Iterable

from ..core.ports import ChatMessage


class OfflineLLMClient:
    """
    Offline deterministic LLM client used for demos when no external API is configured.

    Behavior:
    - Task forge prompts -> a JSON task built from the request lines
    - Anything else -> a short offline notice
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        sp = (system_prompt or "").lower()

        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        if "task forge" in sp:
            fields: dict[str, str] = {}
            for line in user_text.splitlines():
                key, sep, value = line.partition(":")
                if sep:
                    fields[key.strip().lower()] = value.strip()
            skill = fields.get("skill area", "general skills")
            task_type = fields.get("task type", "practice").replace("_", " ")
            yield json.dumps(
                {
                    "title": f"Offline {task_type} task: {skill}",
                    "description": (
                        f"Complete a self-contained {task_type} exercise in {skill}. "
                        "Document your approach and include tests for the main behaviour."
                    ),
                }
            )
            return

        yield (
            "Offline demo mode: no external LLM is configured.\n"
            "Set ARENA_OPENROUTER_API_KEY (and ARENA_LLM_MODELS) to enable real responses."
        )
