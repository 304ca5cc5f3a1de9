"""
Session wiring.

A ``Session`` owns one conversation and builds every collaborator the agent
loop needs: the block store, hook dispatcher, permission gate and its
confirmation queue, tool registry and invoker, model backend and abort
coordinator. Front-ends talk to the session only.
"""

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from conductor.agent.abort import AbortCoordinator
from conductor.agent.compaction import ChatCompactor
from conductor.agent.loop import AgentLoop
from conductor.config.loader import get_config_dir, get_data_dir
from conductor.config.schema import Configuration
from conductor.constants import DEFAULT_ENCODING, PROJECT_MEMORY_FILE_NAME, USER_MEMORY_FILE_NAME
from conductor.hooks.dispatcher import HookDispatcher
from conductor.interfaces import ModelBackend
from conductor.llm.client import OpenAIBackend
from conductor.llm.prompts import build_system_prompt
from conductor.messages.blocks import Message
from conductor.messages.store import BlockStore
from conductor.safety.confirmation import ConfirmationQueue
from conductor.safety.permissions import CanUseTool, PermissionGate
from conductor.tools.invoker import ToolInvoker
from conductor.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

MemoryScope = Literal["project", "user"]


def parse_memory_note(prompt: str) -> tuple[str, MemoryScope] | None:
    """
    Recognize a memory note.

    ``# text`` is a project note and ``## text`` a user note. Multi-line
    prompts are never notes.

    Examples
    --------
    >>> parse_memory_note("# use tabs")
    ('use tabs', 'project')
    >>> parse_memory_note("## prefer short answers")
    ('prefer short answers', 'user')
    >>> parse_memory_note("fix the bug") is None
    True
    """
    text: str = prompt.strip()
    if not text.startswith("#") or "\n" in text:
        return None
    if text.startswith("##"):
        note, scope = text[2:].strip(), "user"
    else:
        note, scope = text[1:].strip(), "project"
    if not note:
        return None
    return note, scope


class Session:
    """
    One conversation and the components that drive it.

    Parameters
    ----------
    config : Configuration
        Merged configuration.
    backend : ModelBackend | None, optional
        Model backend. Defaults to ``OpenAIBackend``.
    can_use_tool : CanUseTool | None, optional
        Host permission callback replacing interactive confirmation.
    data_dir : Path | None, optional
        Where transcripts are written. Defaults to the user data directory.
    user_memory_path : Path | None, optional
        User memory file. Defaults to the user config directory.

    Attributes
    ----------
    store : BlockStore
        Conversation state; front-ends subscribe to it.
    queue : ConfirmationQueue
        Pending confirmations; front-ends drain it.
    coordinator : AbortCoordinator
        Abort signals of the running turn.
    loop : AgentLoop
        Turn driver.

    Examples
    --------
    >>> async with Session(config) as session:
    ...     await session.submit("list the python files")
    ...     print(session.store.messages[-1].text)
    """

    def __init__(
        self,
        config: Configuration,
        backend: ModelBackend | None = None,
        can_use_tool: CanUseTool | None = None,
        data_dir: Path | None = None,
        user_memory_path: Path | None = None,
    ) -> None:
        self.config: Configuration = config
        self.session_id: str = str(uuid.uuid4())
        self.created_at: datetime = datetime.now()
        self.turn_count: int = 0

        self.transcript_path: Path = (
            (data_dir or get_data_dir()) / "sessions" / f"{self.session_id}.json"
        )
        self.project_memory_path: Path = config.cwd / PROJECT_MEMORY_FILE_NAME
        self.user_memory_path: Path = user_memory_path or get_config_dir() / USER_MEMORY_FILE_NAME

        self.store: BlockStore = BlockStore()
        self.queue: ConfirmationQueue = ConfirmationQueue()
        self.gate: PermissionGate = PermissionGate(
            mode=config.permission_mode,
            queue=self.queue,
            can_use_tool=can_use_tool,
            allow_rules=config.allow_rules(),
        )
        self.registry: ToolRegistry = ToolRegistry(config)
        self.invoker: ToolInvoker = ToolInvoker(self.registry, self.gate, config.cwd)
        self.dispatcher: HookDispatcher = HookDispatcher(config, self.store)
        self.backend: ModelBackend = backend or OpenAIBackend(config)
        self.coordinator: AbortCoordinator = AbortCoordinator()
        self.compactor: ChatCompactor = ChatCompactor(
            self.backend,
            self.store,
            token_limit=config.model.token_limit,
        )
        self.loop: AgentLoop = AgentLoop(
            store=self.store,
            backend=self.backend,
            dispatcher=self.dispatcher,
            invoker=self.invoker,
            coordinator=self.coordinator,
            compactor=self.compactor,
            session_id=self.session_id,
            transcript_path=self.transcript_path,
            cwd=config.cwd,
            system_prompt=self.system_prompt,
            tools=self.registry.get_schemas(),
        )
        logger.info(f"Session {self.session_id} created in {config.cwd}")

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    @property
    def busy(self) -> bool:
        return self.loop.busy

    def system_prompt(self) -> str:
        return build_system_prompt(str(self.config.cwd), self.load_memory())

    def load_memory(self) -> str | None:
        """
        Read project and user memory notes.

        Returns
        -------
        str | None
            Combined notes, or ``None`` if neither file has content.
        """
        sections: list[str] = []
        for label, path in (
            ("Project notes", self.project_memory_path),
            ("User notes", self.user_memory_path),
        ):
            if not path.is_file():
                continue
            try:
                content: str = path.read_text(encoding=DEFAULT_ENCODING).strip()
            except OSError as e:
                logger.warning(f"Failed to read memory file {path}: {e}")
                continue
            if content:
                sections.append(f"{label}:\n{content}")
        return "\n\n".join(sections) or None

    def save_memory(self, text: str, scope: MemoryScope = "project") -> Message:
        """
        Append a note to a memory file and record it in the conversation.

        Parameters
        ----------
        text : str
            Note text.
        scope : MemoryScope, default="project"
            ``project`` writes ``CONDUCTOR.md`` in the project root, ``user``
            the user memory file.

        Returns
        -------
        Message
            Assistant message holding the memory block.
        """
        path: Path = self.project_memory_path if scope == "project" else self.user_memory_path
        success: bool = True
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding=DEFAULT_ENCODING) as handle:
                handle.write(f"- {text}\n")
            logger.info(f"Saved {scope} memory note to {path}")
        except OSError as e:
            logger.error(f"Failed to save memory note to {path}: {e}")
            success = False

        return self.store.add_memory_message(
            text,
            success=success,
            scope=scope,
            storage_path=str(path),
        )

    async def submit(self, prompt: str) -> None:
        """
        Handle one line of user input.

        Memory notes are saved directly; everything else runs a turn.
        """
        note = parse_memory_note(prompt)
        if note is not None:
            self.save_memory(*note)
            return

        self.turn_count += 1
        await self.loop.run_turn(prompt)

    def abort(self) -> None:
        """Abort the running turn, if any."""
        self.coordinator.abort()

    async def close(self) -> None:
        await self.backend.close()
        logger.info(f"Session {self.session_id} closed")

    def get_stats(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "turn_count": self.turn_count,
            "message_count": len(self.store),
            "pending_confirmations": len(self.queue),
            "tools_count": len(self.registry.names),
        }
