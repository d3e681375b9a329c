"""Prompt templates for knowledge-base answers and direct chat."""

from __future__ import annotations

from typing import Optional, Sequence

from secondbrain.models import ConversationTurn

_RAG_INSTRUCTIONS = """\
<instruction>
You are a helpful AI assistant that answers questions based on a personal knowledge base.
Base your answer solely on the information provided in the context below. Do not add external assumptions or information not found in the context.{history_note}
</instruction>
<instruction>
• Provide clear, concise, and accurate answers based on the retrieved context.
• If the context contains relevant information, synthesize it into a coherent answer.
• If multiple relevant pieces of information exist, organize them logically.
• If the context does not contain sufficient information to answer the question, politely state that the information is not available in the knowledge base.
• Use a natural, conversational tone while remaining factual.
• Cite specific details from the context when relevant.{history_bullet}
</instruction>"""

_DIRECT_INSTRUCTIONS = """\
<instruction>
You are a helpful AI assistant. Provide clear, concise, and accurate responses to user questions.
Your response will be displayed in a terminal, so format it appropriately for text-based output.
</instruction>

<formatting_guidelines>
• Use a blank line between paragraphs
• Use bullet points (- or •) for lists when appropriate
• Keep lines to a reasonable length
• Avoid markdown formatting (no **bold**, *italic*, etc.) unless specifically requested
</formatting_guidelines>"""

_DIRECT_GUIDELINES = """\
<response_guidelines>
• Answer directly and helpfully
• Be concise but complete
• If the question is unclear, ask for clarification
• If you don't know something, say so honestly{history_bullet}
</response_guidelines>"""


def _role_label(turn: ConversationTurn) -> str:
    return "User" if turn.role == "user" else "Assistant"


def render_history(history: Optional[Sequence[ConversationTurn]]) -> str:
    """History block, or an empty string when there is nothing to show."""
    if not history:
        return ""
    lines = ["<conversation_history>", "PREVIOUS CONVERSATION:"]
    lines.extend(f"{_role_label(turn)}: {turn.content}" for turn in history)
    lines.append("</conversation_history>")
    return "\n".join(lines) + "\n\n"


def build_prompt(
    question: str, context: str, history: Optional[Sequence[ConversationTurn]] = None
) -> str:
    """Assemble the knowledge-base prompt. Same inputs always give the same text."""
    has_history = bool(history)
    instructions = _RAG_INSTRUCTIONS.format(
        history_note=(
            "\nUse the conversation history to provide context-aware answers and "
            "maintain continuity in the conversation."
            if has_history
            else ""
        ),
        history_bullet=(
            "\n• Reference previous conversation when relevant to provide continuity."
            if has_history
            else ""
        ),
    )
    return (
        "<prompt>\n"
        f"{instructions}\n\n"
        f"{render_history(history)}"
        "<context>\n"
        "KNOWLEDGE BASE CONTENT:\n"
        f"{context}\n"
        "</context>\n\n"
        "<input>\n"
        f"User Question: {question}\n"
        "</input>\n\n"
        "<answer>\n"
        "Provide your answer here based on the context above.\n"
        "</answer>\n"
        "</prompt>"
    )


def build_direct_prompt(
    question: str, history: Optional[Sequence[ConversationTurn]] = None
) -> str:
    """Prompt for chatting with the model without knowledge-base context."""
    guidelines = _DIRECT_GUIDELINES.format(
        history_bullet=(
            "\n• Use the conversation history to provide context-aware answers"
            if history
            else ""
        )
    )
    return (
        "<prompt>\n"
        f"{_DIRECT_INSTRUCTIONS}\n\n"
        f"{render_history(history)}"
        "<user_input>\n"
        f"{question}\n"
        "</user_input>\n\n"
        f"{guidelines}\n\n"
        "Please provide your response:\n"
        "</prompt>"
    )
