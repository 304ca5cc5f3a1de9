"""
Conversation compaction for managing context length.

When a backend response reports more tokens than the configured limit,
everything older than the last few text and tool blocks is summarized and a
compress message is inserted in front of the kept tail. Later requests start
from that summary.
"""

import logging

from conductor.agent.abort import AbortSignal
from conductor.constants import COMPRESS_KEEP_LAST_BLOCKS
from conductor.interfaces import ModelBackend
from conductor.llm.models import TokenUsage
from conductor.messages.blocks import Message
from conductor.messages.store import BlockStore
from conductor.types import MessageDict

logger = logging.getLogger(__name__)


class ChatCompactor:
    """
    Compresses older conversation history into a summary message.

    Parameters
    ----------
    backend : ModelBackend
        Backend used to produce the summary.
    store : BlockStore
        Conversation to compact.
    token_limit : int
        Threshold on reported total tokens.
    keep_last : int, default=7
        Number of trailing text/tool blocks left uncompressed.

    Examples
    --------
    >>> compactor = ChatCompactor(backend, store, token_limit=64_000)
    >>> if compactor.should_compress(response.usage):
    ...     await compactor.compress(signals.model)
    """

    def __init__(
        self,
        backend: ModelBackend,
        store: BlockStore,
        token_limit: int,
        keep_last: int = COMPRESS_KEEP_LAST_BLOCKS,
    ) -> None:
        self.backend: ModelBackend = backend
        self.store: BlockStore = store
        self.token_limit: int = token_limit
        self.keep_last: int = keep_last

    def should_compress(self, usage: TokenUsage | None) -> bool:
        return usage is not None and usage.total_tokens > self.token_limit

    async def compress(self, abort_signal: AbortSignal) -> bool:
        """
        Summarize old messages and insert the summary.

        Parameters
        ----------
        abort_signal : AbortSignal
            Model signal of the running turn.

        Returns
        -------
        bool
            ``True`` if a compress message was inserted.

        Raises
        ------
        AbortedError
            If the signal fires during the summarization request.
        """
        messages, index = self.store.messages_to_compress(self.keep_last)
        if not messages:
            logger.debug("Not enough messages to compress")
            return False

        api_messages: list[MessageDict] = self.store.to_api_messages(messages)
        if not api_messages:
            return False

        summary: str = await abort_signal.race(self.backend.compress(api_messages))
        if not summary:
            logger.warning("Compression returned an empty summary")
            return False

        message: Message = self.store.insert_compress_message(index, summary)
        logger.info(f"Inserted compress message at index {index} ({len(message.text)} chars)")
        return True
