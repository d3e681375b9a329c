"""Bounded conversation window used to give the model multi-turn context."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from secondbrain.models import ConversationTurn, Role

DEFAULT_WINDOW = 5

History = Tuple[ConversationTurn, ...]


def make_turn(role: Role, content: str, created_at: Optional[datetime] = None) -> ConversationTurn:
    return ConversationTurn(
        role=role, content=content, created_at=created_at or datetime.now(timezone.utc)
    )


def build_context(
    full_history: Optional[Sequence[ConversationTurn]],
    window_size: int = DEFAULT_WINDOW,
    current_input: Optional[str] = None,
) -> History:
    """Return the turns to render in the prompt's history section.

    Takes the last `window_size` turns, then drops the newest one when it is the
    user turn carrying `current_input`, which the prompt already shows as the
    question. Assistant turns are always kept.
    """
    if not full_history or window_size <= 0:
        return ()

    window = tuple(full_history[-window_size:])
    if current_input is not None and window:
        newest = window[-1]
        if newest.role == "user" and newest.content == current_input:
            window = window[:-1]
    return window
