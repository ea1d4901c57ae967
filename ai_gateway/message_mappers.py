"""Conversion helpers between API messages and provider-specific formats."""

from typing import Any

from .schemas import Message


def build_openai_messages(messages: list[Message]) -> list[dict[str, str]]:
    """Chat Completions accepts all three roles as a flat list."""
    return [{"role": message.role, "content": message.content} for message in messages]


def build_anthropic_messages(
    messages: list[Message],
) -> tuple[str | None, list[dict[str, Any]]]:
    """Split messages into Anthropic's top-level system prompt and alternating turns.

    Leading system messages become the ``system`` field. A system message that
    appears after the conversation started is folded into a user turn, and
    consecutive turns with the same role are merged so roles alternate.
    """
    system_parts: list[str] = []
    index = 0
    while index < len(messages) and messages[index].role == "system":
        system_parts.append(messages[index].content)
        index += 1

    turns: list[dict[str, Any]] = []
    for message in messages[index:]:
        role = "assistant" if message.role == "assistant" else "user"
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"] = f"{turns[-1]['content']}\n\n{message.content}"
        else:
            turns.append({"role": role, "content": message.content})

    system_prompt = "\n\n".join(system_parts) if system_parts else None
    if not turns and system_prompt is not None:
        # A request made only of system messages still needs one user turn.
        return None, [{"role": "user", "content": system_prompt}]
    return system_prompt, turns
