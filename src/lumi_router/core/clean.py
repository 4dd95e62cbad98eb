# src/lumi_router/core/clean.py

from __future__ import annotations
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from lumi_router.core.errors import MalformedHistoryError
from lumi_router.models import ASSISTANT, USER, ConversationMessage


def now_ms() -> int:
    return int(time.time() * 1000)


def is_eligible(message: ConversationMessage) -> bool:
    """A message only counts if it has text once whitespace is stripped."""
    return bool((message.content or "").strip())


def merge_message(
    history: Sequence[ConversationMessage],
    message: Optional[str],
    clock: Callable[[], int] = now_ms,
) -> List[ConversationMessage]:
    """
    Return a new list: history plus `message` as a fresh user turn.

    A blank `message` is ignored, so a history that already ends in a
    user turn can be re-submitted as-is. `history` is never mutated.
    """
    merged = list(history)
    if message is not None and message.strip():
        merged.append(ConversationMessage(role=USER, content=message, timestamp=clock()))
    return merged


def to_turns(
    messages: Sequence[ConversationMessage],
    provider_id: str,
) -> Tuple[List[Dict], str]:
    """
    Shape history for providers that want strict user-first turns.

    - drop empty-content messages
    - drop everything before the first user message
    - all but the last message -> prior turns (roles user / model)
    - the last message -> the new turn's input text

    Returns (turns, input_text).
    """
    kept = [m for m in messages if is_eligible(m)]
    first_user = next((i for i, m in enumerate(kept) if m.role == USER), None)
    if first_user is None:
        raise MalformedHistoryError(
            "history has no user message to start from",
            provider_id=provider_id,
        )
    kept = kept[first_user:]

    turns: List[Dict] = []
    for m in kept[:-1]:
        turns.append(
            {
                "role": "user" if m.role == USER else "model",
                "parts": [{"text": m.content}],
            }
        )
    return turns, kept[-1].content


def to_chat_completions(
    messages: Sequence[ConversationMessage],
    system_prompt: str,
) -> List[Dict]:
    """
    OpenAI-style message list: a leading system message, then every
    message in order with anything that isn't `user` mapped to `assistant`.
    """
    out: List[Dict] = [{"role": "system", "content": system_prompt}]
    for m in messages:
        out.append(
            {
                "role": USER if m.role == USER else ASSISTANT,
                "content": m.content,
            }
        )
    return out
