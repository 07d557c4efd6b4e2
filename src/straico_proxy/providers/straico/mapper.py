"""Straico request and response mappers."""
import json
import re
import uuid
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from ...core.logger import LoggerService
from ...router.chat_completion.models import (
    AssistantMessage,
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatContext,
    Choice,
    ChunkChoice,
    ChunkToolCall,
    Delta,
    FunctionCall,
    ResponseFunctionCall,
    ResponseMessage,
    ResponseToolCall,
    SystemMessage,
    TextContent,
    Tool,
    ToolCall,
    ToolMessage,
    Usage,
    UserMessage,
)
from ...router.images.models import (
    ImageGenerationRequest,
    ImageGenerationResponse,
    ImageObject,
)
from ..models import (
    InvalidRequest,
    StraicoCompletion,
    StraicoCompletionData,
    StraicoCompletionRequest,
    StraicoFunctionCall,
    StraicoImageData,
    StraicoImageRequest,
    StraicoToolCall,
    StraicoUsage,
    StreamChunk,
    UpstreamUnavailable,
)
from .model_mapper import StraicoModelMapper

_TAG_NAMES = r"/?(?:system|user|assistant|tools|tool_call|tool)[\s>]"

# Raw "<" or an already escaped "&lt;" / "&amp;...lt;" in front of a tag name
_ESCAPE_RE = re.compile(r"(&(?:amp;)*lt;|<)(?=" + _TAG_NAMES + ")")
_UNESCAPE_RE = re.compile(r"&((?:amp;)*)lt;(?=" + _TAG_NAMES + ")")

_SEGMENT_RE = re.compile(
    r"<(system|user|assistant|tools)>(.*?)</\1>"
    r'|<tool id="([A-Za-z0-9_.:\-]+)">(.*?)</tool>',
    re.DOTALL,
)
_TOOL_CALL_RE = re.compile(r"<tool_call>(.*?)</tool_call>", re.DOTALL)
# Ids clients can send back as tool_call_id
_TOOL_CALL_ID_RE = re.compile(r"^[A-Za-z0-9_.:\-]{1,64}$")

SEGMENT_SEPARATOR = "\n"

TOOL_INSTRUCTION = (
    "You can call the tools described below. To call a tool, answer only with "
    '<tool_call>{"name": "<tool name>", "arguments": {...}}</tool_call>, '
    "one block per call."
)

IMAGE_SIZES = {
    "1024x1024": "square",
    "1792x1024": "landscape",
    "1024x1792": "portrait",
}

FINISH_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
}


def escape_tags(text: str) -> str:
    """Escape role-tag look-alikes so they cannot close or open a segment."""
    return _ESCAPE_RE.sub(
        lambda m: "&lt;" if m.group(1) == "<" else "&amp;" + m.group(1)[1:],
        text,
    )


def unescape_tags(text: str) -> str:
    """Inverse of ``escape_tags``."""
    return _UNESCAPE_RE.sub(
        lambda m: "<" if not m.group(1) else "&" + m.group(1)[4:] + "lt;",
        text,
    )


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def malformed_output(message: str, **details: Any) -> UpstreamUnavailable:
    """Non-transient error for an upstream answer that arrived but is unusable."""
    error = UpstreamUnavailable(message=message, details=details)
    error.transient = False
    return error


class StraicoMapper:
    """Mapper for Straico API requests and responses.

    Straico accepts a single prompt string per request, so the chat history
    is rendered as newline-separated role segments:

        <system>...</system>
        <user>...</user>
        <assistant>...<tool_call>{...}</tool_call></assistant>
        <tool id="call_1">...</tool>

    Tool definitions go first as a ``<tools>`` segment. The rendering is
    deterministic and ``map_from_provider_request`` parses it back.
    """

    def __init__(
        self, logger: LoggerService, model_mapper: StraicoModelMapper
    ) -> None:
        """Initialize mapper.

        Args:
            logger: Logger service instance
            model_mapper: Model table used to resolve client model ids
        """
        self.logger = logger.get_logger(__name__)
        self.model_mapper = model_mapper

    # Request side

    def _text(self, content: Union[str, List[TextContent], None]) -> str:
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        return "\n".join(part.text for part in content)

    def _render_tools(self, request: ChatCompletionRequest) -> str:
        payload: Dict[str, Any] = {
            "tools": [tool.model_dump(exclude_none=True) for tool in request.tools or []]
        }
        if request.tool_choice is not None:
            payload["tool_choice"] = (
                request.tool_choice
                if isinstance(request.tool_choice, str)
                else request.tool_choice.model_dump()
            )
        body = TOOL_INSTRUCTION + "\n" + escape_tags(_dumps(payload))
        return f"<tools>{body}</tools>"

    def _render_message(
        self,
        message: Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    ) -> str:
        if isinstance(message, ToolMessage):
            return (
                f'<tool id="{message.tool_call_id}">'
                f"{escape_tags(message.content)}</tool>"
            )
        body = escape_tags(self._text(message.content))
        if isinstance(message, AssistantMessage):
            for call in message.tool_calls or []:
                payload = {
                    "id": call.id,
                    "name": call.function.name,
                    "arguments": call.function.arguments,
                }
                body += f"<tool_call>{escape_tags(_dumps(payload))}</tool_call>"
        return f"<{message.role}>{body}</{message.role}>"

    def _validate_tools(self, request: ChatCompletionRequest) -> None:
        if request.tool_choice is None:
            return
        if not request.tools:
            raise InvalidRequest(
                message="tool_choice requires tools", field="tool_choice"
            )
        if not isinstance(request.tool_choice, str):
            name = request.tool_choice.function.name
            if name not in {tool.function.name for tool in request.tools}:
                raise InvalidRequest(
                    message=f"tool_choice names unknown function '{name}'",
                    field="tool_choice",
                )

    def _max_tokens(
        self, request: ChatCompletionRequest, limit: Optional[int]
    ) -> Optional[int]:
        if (
            request.max_tokens is not None
            and request.max_completion_tokens is not None
            and request.max_tokens != request.max_completion_tokens
        ):
            raise InvalidRequest(
                message="max_tokens and max_completion_tokens disagree",
                field="max_tokens",
            )
        max_tokens = (
            request.max_tokens
            if request.max_tokens is not None
            else request.max_completion_tokens
        )
        if max_tokens is not None and limit is not None and max_tokens > limit:
            raise InvalidRequest(
                message=f"max_tokens exceeds the model limit of {limit}",
                field="max_tokens",
            )
        return max_tokens

    def map_to_provider_request(
        self, request: ChatCompletionRequest
    ) -> StraicoCompletionRequest:
        """Map chat completion request to Straico API request.

        Args:
            request: Client request

        Returns:
            Straico completion request

        Raises:
            InvalidRequest: If the request cannot be expressed upstream
        """
        if not request.messages:
            raise InvalidRequest(message="messages must not be empty", field="messages")

        model = self.model_mapper.resolve(request.model)
        max_tokens = self._max_tokens(request, model.max_output_tokens)
        self._validate_tools(request)

        segments = []
        if request.tools:
            segments.append(self._render_tools(request))
        segments.extend(self._render_message(m) for m in request.messages)

        straico_request = StraicoCompletionRequest(
            models=[model.upstream_id],
            message=SEGMENT_SEPARATOR.join(segments),
            temperature=request.temperature,
            max_tokens=max_tokens,
        )

        self.logger.debug(
            "Mapped request to Straico API format",
            extra={
                "model": request.model,
                "upstream_model": model.upstream_id,
                "message_count": len(request.messages),
                "tool_count": len(request.tools or []),
                "prompt_length": len(straico_request.message),
            },
        )
        return straico_request

    def _parse_assistant(self, body: str) -> AssistantMessage:
        start = body.find("<tool_call>")
        if start == -1:
            return AssistantMessage(role="assistant", content=unescape_tags(body))

        content, rest = body[:start], body[start:]
        tool_calls = []
        position = 0
        for match in _TOOL_CALL_RE.finditer(rest):
            if match.start() != position:
                raise ValueError("Unexpected text between tool calls")
            payload = json.loads(unescape_tags(match.group(1)))
            tool_calls.append(
                ToolCall(
                    id=payload["id"],
                    function=FunctionCall(
                        name=payload["name"], arguments=payload["arguments"]
                    ),
                )
            )
            position = match.end()
        if position != len(rest):
            raise ValueError("Trailing text after tool calls")

        return AssistantMessage(
            role="assistant",
            content=unescape_tags(content) if content else None,
            tool_calls=tool_calls,
        )

    def map_from_provider_request(
        self, request: StraicoCompletionRequest
    ) -> ChatCompletionRequest:
        """Reconstruct the chat request a Straico request was rendered from.

        Args:
            request: Straico request produced by ``map_to_provider_request``

        Returns:
            Equivalent chat completion request

        Raises:
            InvalidRequest: If the prompt is not in the rendered format
        """
        canonical = self.model_mapper.canonical_model(request.models[0])
        if canonical is None:
            raise InvalidRequest(
                message=f"Unknown upstream model '{request.models[0]}'",
                field="model",
            )

        prompt = request.message
        messages: List[Any] = []
        tools_payload: Optional[Dict[str, Any]] = None
        position = 0
        try:
            while position < len(prompt):
                if position and not prompt.startswith(SEGMENT_SEPARATOR, position):
                    raise ValueError(f"Expected separator at {position}")
                if position:
                    position += len(SEGMENT_SEPARATOR)
                match = _SEGMENT_RE.match(prompt, position)
                if match is None:
                    raise ValueError(f"Expected segment at {position}")
                position = match.end()

                role, body = match.group(1), match.group(2)
                if role is None:
                    messages.append(
                        ToolMessage(
                            role="tool",
                            tool_call_id=match.group(3),
                            content=unescape_tags(match.group(4)),
                        )
                    )
                elif role == "tools":
                    if messages or tools_payload is not None:
                        raise ValueError("Tools segment must come first")
                    instruction, _, payload = body.partition("\n")
                    if instruction != TOOL_INSTRUCTION:
                        raise ValueError("Unknown tools preamble")
                    tools_payload = json.loads(unescape_tags(payload))
                elif role == "assistant":
                    messages.append(self._parse_assistant(body))
                elif role == "system":
                    messages.append(
                        SystemMessage(role="system", content=unescape_tags(body))
                    )
                else:
                    messages.append(UserMessage(role="user", content=unescape_tags(body)))

            return ChatCompletionRequest(
                model=canonical.model_id,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                tools=(
                    [Tool.model_validate(t) for t in tools_payload["tools"]]
                    if tools_payload
                    else None
                ),
                tool_choice=tools_payload.get("tool_choice") if tools_payload else None,
            )
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            self.logger.warning(
                "Failed to parse Straico prompt",
                extra={"error": str(e), "prompt_length": len(prompt)},
            )
            raise InvalidRequest(message="Malformed Straico prompt", field="message")

    # Response side

    def parse_tool_calls(
        self, content: Optional[str]
    ) -> Tuple[Optional[str], Optional[List[StraicoToolCall]]]:
        """Extract ``<tool_call>`` markup from generated text.

        Args:
            content: Generated assistant text

        Returns:
            Tuple of remaining content (None when tool calls were found) and
            the parsed tool calls

        Raises:
            UpstreamUnavailable: If the markup does not hold valid JSON
        """
        if not content or (
            "<tool_call>" not in content and "</tool_call>" not in content
        ):
            return content, None

        tool_calls = []
        for raw in _TOOL_CALL_RE.findall(content):
            try:
                payload = json.loads(raw.strip(), strict=False)
                name = payload["name"]
                if not isinstance(name, str) or not name.strip():
                    raise ValueError("tool call name must be a non-empty string")
                call_id = payload.get("id")
                if not isinstance(call_id, str) or not _TOOL_CALL_ID_RE.match(call_id):
                    call_id = f"call_{uuid.uuid4().hex[:24]}"
                tool_calls.append(
                    StraicoToolCall(
                        id=call_id,
                        function=StraicoFunctionCall(
                            name=name,
                            arguments=payload.get("arguments"),
                        ),
                    )
                )
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                self.logger.error(
                    "Malformed tool call in upstream response",
                    extra={"error": str(e), "tool_call": raw[:200]},
                )
                raise malformed_output(
                    "Upstream returned a malformed tool call", error=str(e)
                )
        return None, tool_calls

    @staticmethod
    def normalize_finish_reason(
        finish_reason: Optional[str], has_tool_calls: bool = False
    ) -> str:
        """Map upstream finish reasons onto OpenAI values."""
        if has_tool_calls:
            return "tool_calls"
        if not finish_reason:
            return "stop"
        return FINISH_REASONS.get(finish_reason, finish_reason)

    @staticmethod
    def _arguments(arguments: Any) -> str:
        if arguments is None:
            return "{}"
        if isinstance(arguments, str):
            return arguments
        return _dumps(arguments)

    def _client_tool_calls(
        self, tool_calls: Optional[List[StraicoToolCall]]
    ) -> Optional[List[ResponseToolCall]]:
        if not tool_calls:
            return None
        return [
            ResponseToolCall(
                id=call.id,
                function=ResponseFunctionCall(
                    name=call.function.name,
                    arguments=self._arguments(call.function.arguments),
                ),
            )
            for call in tool_calls
        ]

    def parse_completion(self, completion: StraicoCompletion) -> StraicoCompletion:
        """Turn tool call markup into structured calls and fix finish reasons."""
        choices = []
        for choice in completion.choices:
            message = choice.message
            content, tool_calls = message.content, message.tool_calls
            if not tool_calls:
                content, tool_calls = self.parse_tool_calls(content)
            choices.append(
                choice.model_copy(
                    update={
                        "message": message.model_copy(
                            update={"content": content, "tool_calls": tool_calls}
                        ),
                        "finish_reason": self.normalize_finish_reason(
                            choice.finish_reason, bool(tool_calls)
                        ),
                    }
                )
            )
        return completion.model_copy(update={"choices": choices})

    def map_provider_response(
        self, data: StraicoCompletionData, context: ChatContext
    ) -> ChatCompletionResponse:
        """Map Straico completion data to a chat completion response.

        Args:
            data: ``data`` member of the Straico response
            context: Chat request context

        Returns:
            OpenAI-compatible chat completion
        """
        completion = self.parse_completion(data.get_completion())
        choices = [
            Choice(
                index=choice.index,
                message=ResponseMessage(
                    content=choice.message.content,
                    tool_calls=self._client_tool_calls(choice.message.tool_calls),
                ),
                finish_reason=choice.finish_reason,
            )
            for choice in completion.choices
        ]
        return ChatCompletionResponse(
            id=context.completion_id,
            created=context.created,
            model=context.model,
            choices=choices,
            usage=Usage(**completion.usage.model_dump()),
        )

    def split_completion(self, completion: StraicoCompletion) -> List[StreamChunk]:
        """Split a complete Straico answer into stream chunks.

        Content goes first, the finish reason and usage come last.
        """
        completion = self.parse_completion(completion)
        if not completion.choices:
            return [StreamChunk(sequence=0, finish_reason="stop", usage=completion.usage)]

        choice = completion.choices[0]
        chunks = []
        if choice.message.content:
            chunks.append(StreamChunk(sequence=0, content=choice.message.content))
        chunks.append(
            StreamChunk(
                sequence=len(chunks),
                finish_reason=choice.finish_reason,
                tool_calls=choice.message.tool_calls,
                usage=completion.usage,
            )
        )
        return chunks

    def parse_sse_line(self, line: str) -> Optional[Dict[str, Any]]:
        """Parse SSE line into chunk data.

        Args:
            line: Raw SSE line

        Returns:
            Parsed chunk data or None if line should be skipped

        Raises:
            UpstreamUnavailable: If a data line does not hold JSON
        """
        line = line.strip()
        if not line or not line.startswith("data:"):
            return None

        data = line[5:].strip()
        if data == "[DONE]":
            return {"event": "done"}

        try:
            parsed = json.loads(data)
        except json.JSONDecodeError as e:
            raise malformed_output("Upstream sent malformed stream data", error=str(e))
        if not isinstance(parsed, dict):
            raise malformed_output("Upstream sent malformed stream data")
        return parsed

    def map_provider_stream_chunk(
        self, chunk_data: Dict[str, Any], sequence: int
    ) -> Optional[StreamChunk]:
        """Map an upstream SSE event to a stream chunk.

        Args:
            chunk_data: Parsed ``data:`` payload
            sequence: Arrival index to assign

        Returns:
            Stream chunk, or None when the event carries nothing
        """
        choices = chunk_data.get("choices") or []
        delta = (choices[0].get("delta") or {}) if choices else {}
        content = delta.get("content") or ""
        finish_reason = choices[0].get("finish_reason") if choices else None
        usage = chunk_data.get("usage")

        if not content and finish_reason is None and usage is None:
            return None

        return StreamChunk(
            sequence=sequence,
            content=content,
            finish_reason=(
                self.normalize_finish_reason(finish_reason)
                if finish_reason is not None
                else None
            ),
            usage=self._stream_usage(usage),
        )

    @staticmethod
    def _stream_usage(usage: Any) -> Optional[StraicoUsage]:
        if not usage:
            return None
        try:
            return StraicoUsage.model_validate(usage)
        except ValidationError as e:
            raise malformed_output("Upstream sent malformed usage data", error=str(e))

    def map_stream_chunk(
        self, chunk: StreamChunk, context: ChatContext, first: bool = False
    ) -> ChatCompletionChunk:
        """Map a stream chunk to an OpenAI chunk event."""
        tool_calls = None
        if chunk.tool_calls:
            tool_calls = [
                ChunkToolCall(index=index, **call.model_dump())
                for index, call in enumerate(self._client_tool_calls(chunk.tool_calls) or [])
            ]
        return ChatCompletionChunk(
            id=context.completion_id,
            created=context.created,
            model=context.model,
            choices=[
                ChunkChoice(
                    delta=Delta(
                        role="assistant" if first else None,
                        content=chunk.content or None,
                        tool_calls=tool_calls,
                    ),
                    finish_reason=chunk.finish_reason,
                )
            ],
        )

    def map_usage_chunk(
        self, usage: Optional[StraicoUsage], context: ChatContext
    ) -> ChatCompletionChunk:
        """Build the trailing usage-only chunk."""
        return ChatCompletionChunk(
            id=context.completion_id,
            created=context.created,
            model=context.model,
            choices=[],
            usage=Usage(**usage.model_dump()) if usage else Usage(),
        )

    # Images

    def map_image_request(self, request: ImageGenerationRequest) -> StraicoImageRequest:
        """Map an OpenAI image request to a Straico image request.

        Raises:
            InvalidRequest: If the model is not an image model
        """
        model = self.model_mapper.resolve_image_model(request.model)
        return StraicoImageRequest(
            model=model.upstream_id,
            description=request.prompt,
            size=IMAGE_SIZES[request.size],
            variations=request.n,
        )

    def map_image_response(
        self, data: StraicoImageData, created: int
    ) -> ImageGenerationResponse:
        """Map Straico image data to an OpenAI image response."""
        return ImageGenerationResponse(
            created=created,
            data=[ImageObject(url=url) for url in data.images],
        )
