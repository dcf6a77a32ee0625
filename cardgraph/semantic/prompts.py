"""
Prompts for relation labeling of card pairs.

The model gets a JSON list of pairs {id, A, B} and must answer with a bare
JSON array [{"id": ..., "label": ...}], one label per pair.
"""
from __future__ import annotations

import json
from typing import Any

from cardgraph.semantic.models import RELATIONS

# =============================================================================
# System Prompt
# =============================================================================

SYSTEM_PROMPT = "You are a precise relation labeler. Return ONLY strict JSON."

# =============================================================================
# Labeling Prompt
# =============================================================================

LABEL_PROMPT = """
You will be given flashcard pairs A,B. For each, pick ONE label from: {relations}.
Rules:
- "duplicate-of" if fronts/backs paraphrase.
- "prerequisite-of": A is needed to learn B.
- "part-of": A is component/member of B (meronymy).
- "cause-of": A causes/enables B.
- "contrasts-with": opposing/competing ideas.
- "example-of": A is instance/example of B.
- Otherwise "same-topic".
Return: [{{"id":"A|B","label":"<one>"}}...]
Pairs:
{pairs}
"""


def build_label_prompt(pairs: list[dict[str, Any]], max_chars: int = 10000) -> str:
    """Render the user message; the serialized pairs are cut at max_chars."""
    serialized = json.dumps(pairs, ensure_ascii=False, separators=(",", ":"))
    return LABEL_PROMPT.format(relations=", ".join(RELATIONS), pairs=serialized[:max_chars])


def build_messages(pairs: list[dict[str, Any]], max_chars: int = 10000) -> list[dict[str, str]]:
    """Two-message conversation for the chat-completion request."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_label_prompt(pairs, max_chars)},
    ]
