"""
OpenAI-compatible model backend.

``OpenAIBackend`` streams one chat completion per call, forwarding text
deltas to an optional callback and assembling tool calls in the order the
model produced them. Cancellation is the caller's concern: the agent loop
races every call against the model signal of the turn.
"""

import logging
from typing import Any, Callable

from openai import APIConnectionError, APIError, APITimeoutError, AsyncOpenAI
from openai import RateLimitError as OpenAIRateLimitError

from conductor.config.schema import Configuration
from conductor.exceptions import APIError as ConductorAPIError
from conductor.exceptions import ConnectionError
from conductor.llm.models import ModelResponse, TokenUsage, ToolCall
from conductor.llm.prompts import COMPRESSION_PROMPT, format_history_for_compression
from conductor.llm.retry import RetryStrategy
from conductor.types import MessageDict, ToolDefinitions

logger = logging.getLogger(__name__)

TextCallback = Callable[[str], None]


def _usage_from(raw: Any) -> TokenUsage | None:
    if not raw:
        return None
    details = getattr(raw, "prompt_tokens_details", None)
    return TokenUsage(
        prompt_tokens=raw.prompt_tokens or 0,
        completion_tokens=raw.completion_tokens or 0,
        total_tokens=raw.total_tokens or 0,
        cached_tokens=(details.cached_tokens or 0) if details else 0,
    )


class OpenAIBackend:
    """
    Model backend for OpenAI-compatible chat-completion APIs.

    Parameters
    ----------
    config : Configuration
        Source of the API key, base URL and model settings.
    retry_strategy : RetryStrategy | None, optional
        Backoff policy for opening a request.

    Examples
    --------
    >>> backend = OpenAIBackend(config)
    >>> response = await backend.send(
    ...     [{"role": "user", "content": "Hello"}],
    ...     tools=registry.get_schemas(),
    ...     on_text=lambda delta: print(delta, end=""),
    ... )
    >>> response.tool_calls
    []
    >>> await backend.close()
    """

    def __init__(
        self,
        config: Configuration,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        self.config: Configuration = config
        self._client: AsyncOpenAI | None = None
        self._retry_strategy: RetryStrategy = retry_strategy or RetryStrategy()

    def _get_client(self) -> AsyncOpenAI:
        """
        Get or create the OpenAI client instance.

        Raises
        ------
        ConnectionError
            If the API key is not configured.
        """
        if self._client is None:
            api_key: str | None = self.config.api_key
            if not api_key:
                raise ConnectionError(
                    "API key not configured. Set API_KEY environment variable.",
                )

            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=self.config.base_url,
            )
            logger.debug("Model backend client initialized")

        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.close()
            self._client = None
            logger.debug("Model backend client closed")

    def _build_tools(self, tools: ToolDefinitions) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool.get("description", ""),
                    "parameters": tool.get(
                        "parameters",
                        {"type": "object", "properties": {}},
                    ),
                },
            }
            for tool in tools
        ]

    async def send(
        self,
        messages: list[MessageDict],
        tools: ToolDefinitions | None = None,
        on_text: TextCallback | None = None,
    ) -> ModelResponse:
        """
        Request one completion.

        Parameters
        ----------
        messages : list[MessageDict]
            Conversation in chat-completion format, system prompt first.
        tools : ToolDefinitions | None, optional
            Tool schemas offered to the model.
        on_text : TextCallback | None, optional
            Called with every text delta as it arrives.

        Returns
        -------
        ModelResponse
            Complete text, tool calls and usage.

        Raises
        ------
        ConnectionError
            If the backend cannot be reached.
        APIError
            If the backend rejects the request or the stream breaks.
        RateLimitError
            If rate limits persist after retries.
        """
        client: AsyncOpenAI = self._get_client()

        kwargs: dict[str, Any] = {
            "model": self.config.model.name,
            "messages": messages,
            "stream": True,
            "stream_options": {"include_usage": True},
            "temperature": self.config.model.temperature,
        }
        if tools:
            kwargs["tools"] = self._build_tools(tools)
            kwargs["tool_choice"] = "auto"

        stream = await self._retry_strategy.execute(
            lambda: client.chat.completions.create(**kwargs),
        )

        text_parts: list[str] = []
        tool_calls: dict[int, dict[str, str]] = {}
        finish_reason: str | None = None
        usage: TokenUsage | None = None

        try:
            async for chunk in stream:
                if getattr(chunk, "usage", None):
                    usage = _usage_from(chunk.usage)

                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta
                if choice.finish_reason:
                    finish_reason = choice.finish_reason

                if delta.content:
                    text_parts.append(delta.content)
                    if on_text is not None:
                        on_text(delta.content)

                for tool_call_delta in delta.tool_calls or []:
                    entry = tool_calls.setdefault(
                        tool_call_delta.index,
                        {"id": "", "name": "", "arguments": ""},
                    )
                    if tool_call_delta.id:
                        entry["id"] = tool_call_delta.id
                    function = tool_call_delta.function
                    if function and function.name:
                        entry["name"] = function.name
                    if function and function.arguments:
                        entry["arguments"] += function.arguments
        except (APIConnectionError, APITimeoutError) as e:
            raise ConnectionError(f"Stream interrupted: {e}", cause=e) from e
        except (APIError, OpenAIRateLimitError) as e:
            raise ConductorAPIError(
                str(e),
                status_code=getattr(e, "status_code", None),
                cause=e,
            ) from e

        response = ModelResponse(
            content="".join(text_parts),
            tool_calls=[
                ToolCall(id=tc["id"], name=tc["name"], arguments=tc["arguments"] or "{}")
                for _, tc in sorted(tool_calls.items())
            ],
            usage=usage,
            finish_reason=finish_reason,
        )
        logger.debug(
            f"Completion finished ({finish_reason}): {len(response.tool_calls)} tool call(s), "
            f"{usage.total_tokens if usage else '?'} tokens",
        )
        return response

    async def compress(self, messages: list[MessageDict]) -> str:
        """
        Summarize older conversation messages.

        Parameters
        ----------
        messages : list[MessageDict]
            Messages to summarize, in chat-completion format.

        Returns
        -------
        str
            Summary text; empty if the backend returned nothing.
        """
        response: ModelResponse = await self.send(
            [
                {"role": "system", "content": COMPRESSION_PROMPT},
                {"role": "user", "content": format_history_for_compression(messages)},
            ],
        )
        if response.usage:
            logger.info(
                f"Compressed conversation history "
                f"({response.usage.total_tokens} tokens used for compression)",
            )
        return response.content.strip()
