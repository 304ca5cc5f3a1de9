"""
Prompt text sent to the model backend.
"""

from typing import Any

SYSTEM_PROMPT: str = """You are a coding agent working in the user's project directory.
Use the available tools to read, create, edit and delete files and to run shell commands.
Tool calls may be denied by the user or blocked by project hooks; when that happens,
read the reason in the tool result and adjust instead of retrying the same call.
Keep answers short and concrete."""

COMPRESSION_PROMPT: str = """Summarize the conversation so far so that it can be continued
without the original messages. Keep: the user's goals and constraints, decisions made,
files created or changed and why, commands run and their outcomes, and any open tasks.
Write plain prose and bullet points; do not invent details."""


def build_system_prompt(cwd: str, memory: str | None = None) -> str:
    """
    System prompt for a session.

    Parameters
    ----------
    cwd : str
        Project root.
    memory : str | None, optional
        Combined project and user memory notes.
    """
    parts: list[str] = [SYSTEM_PROMPT, f"Project root: {cwd}"]
    if memory and memory.strip():
        parts.append(f"Notes to remember:\n{memory.strip()}")
    return "\n\n".join(parts)


def format_history_for_compression(messages: list[dict[str, Any]]) -> str:
    """
    Render chat-completion messages as plain text for summarization.

    Long tool output, assistant text and user text are truncated so the
    summarization request stays well below the compression threshold.

    Parameters
    ----------
    messages : list[dict[str, Any]]
        Messages in chat-completion format.

    Returns
    -------
    str
        Conversation transcript.
    """
    output: list[str] = ["Here is the conversation that needs to be continued:\n"]

    for msg in messages:
        role: str = msg.get("role", "")
        content: str = msg.get("content") or ""

        if role == "system":
            # earlier summaries are carried forward
            if content:
                output.append(content)
            continue

        if role == "tool":
            tool_id: str = msg.get("tool_call_id", "unknown")
            output.append(f"[Tool Result ({tool_id})]:\n{_truncate(content, 2000, 'tool output')}")
        elif role == "assistant":
            if content:
                output.append(f"Assistant:\n{_truncate(content, 3000, 'response')}")

            tool_details: list[str] = []
            for tc in msg.get("tool_calls") or []:
                func: dict[str, Any] = tc.get("function", {})
                args: str = func.get("arguments", "{}")
                if len(args) > 500:
                    args = args[:500] + "..."
                tool_details.append(f"  - {func.get('name', 'unknown')}({args})")
            if tool_details:
                output.append("Assistant called tools:\n" + "\n".join(tool_details))
        else:
            output.append(f"User:\n{_truncate(content, 1500, 'message')}")

    return "\n\n---\n\n".join(output)


def _truncate(text: str, limit: int, label: str) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n... [{label} truncated]"
