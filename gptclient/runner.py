"""Tool-calling conversation loop for chat completions."""
from __future__ import annotations

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from .chat import ChatCompletionRequest, ChatCompletionResponse
from .classifier import classify
from .config import DEFAULT_MAX_TOOL_TURNS
from .conversation import Conversation
from .errors import IterationLimitError, RequestCanceledError, RequestRejectedError, ResponseUnusableError
from .executor import RunGuard
from .logger import HumanEntry, Logger
from .tools import ToolDefinition, ToolRegistry
from .types import ToolCallContext, ToolInvocation


class RequestSender(Protocol):
    def send(self, request: Any, use_backoff: bool = False, guard: Optional[RunGuard] = None) -> Any:
        ...


@dataclass(frozen=True)
class PreparedCall:
    invocation: ToolInvocation
    tool: ToolDefinition
    arguments: Dict[str, Any]


class ChatCompletionRunner:
    """Drives one chat completion to a final answer, executing the tools the model asks for.

    Each ``submit`` owns its conversation, tool registry and turn counter, so a
    single runner can serve concurrent runs.
    """

    def __init__(
        self,
        sender: RequestSender,
        max_turns: int = DEFAULT_MAX_TOOL_TURNS,
        max_tool_workers: int = 1,
        logger: Optional[Logger] = None,
    ) -> None:
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.sender = sender
        self.max_turns = max_turns
        self.max_tool_workers = max(1, max_tool_workers)
        self.logger = logger or Logger()

    def submit(self, initial_request: ChatCompletionRequest, use_backoff: bool = False) -> ChatCompletionResponse:
        registry = ToolRegistry(initial_request.tools)
        conversation = Conversation(initial_request.messages)
        guard = RunGuard(initial_request.is_canceled, initial_request.max_execution_seconds)
        logger = self.logger.for_model(initial_request.model)

        request = initial_request
        turn = 0
        while True:
            turn += 1
            if turn > self.max_turns:
                logger.human(HumanEntry(title="model", body=f"no final answer after {self.max_turns} turns", variant="error"))
                logger.json({"type": "turn_limit", "max_turns": self.max_turns})
                raise IterationLimitError(self.max_turns)

            response = self._send(request, use_backoff, guard, logger, turn)
            if "error" in response.json:
                raise RequestRejectedError(f"API returned an error: {json.dumps(response.json)}", body=response.json)

            classification = classify(response.json)
            logger.json(
                {
                    "type": "model_response",
                    "turn": turn,
                    "finish_reason": classification.finish_reason,
                    "content": response.content,
                    "toolCalls": [inv.name for inv in classification.tool_invocations],
                }
            )
            if classification.refusal is not None:
                logger.human(HumanEntry(title="model", body=f"refused: {classification.refusal}", variant="warn"))
                logger.json({"type": "model_refusal", "turn": turn, "refusal": classification.refusal})
                return response

            conversation.append(classification.assistant_message)
            if not classification.tool_invocations:
                return response

            logger.human(
                HumanEntry(
                    title="model",
                    body=f"turn {turn} → tool calls: {format_tool_calls(classification.tool_invocations)}",
                    variant="model",
                )
            )
            prepared = [self._prepare(invocation, registry) for invocation in classification.tool_invocations]
            outputs = self._run_tools(prepared, logger, turn)
            for call, output in zip(prepared, outputs):
                conversation.append_tool_result(call.invocation.id, output)

            request = initial_request.with_messages(conversation.snapshot())

    def _send(
        self,
        request: ChatCompletionRequest,
        use_backoff: bool,
        guard: RunGuard,
        logger: Logger,
        turn: int,
    ) -> ChatCompletionResponse:
        stop_spinner = logger.start_spinner()
        try:
            return self.sender.send(request, use_backoff=use_backoff, guard=guard)
        except RequestCanceledError as err:
            logger.human(HumanEntry(title="model", body=str(err), variant="warn"))
            logger.json({"type": "run_canceled", "turn": turn, "reason": str(err)})
            raise
        finally:
            stop_spinner()

    @staticmethod
    def _prepare(invocation: ToolInvocation, registry: ToolRegistry) -> PreparedCall:
        tool = registry.lookup(invocation.name)
        if tool is None:
            raise ResponseUnusableError(
                f"Unknown or missing tool call name: {invocation.name}",
                tool_name=invocation.name,
                body=invocation.raw,
            )
        try:
            arguments = json.loads(invocation.raw_arguments or "")
        except ValueError as err:
            raise ResponseUnusableError(
                f"Failed to parse arguments for tool call '{tool.name}': {err}",
                tool_name=tool.name,
                body=invocation.raw,
            ) from err
        if not isinstance(arguments, dict):
            raise ResponseUnusableError(
                f"Arguments for tool call '{tool.name}' are not a JSON object",
                tool_name=tool.name,
                body=invocation.raw,
            )
        return PreparedCall(invocation, tool, arguments)

    def _run_tools(self, calls: List[PreparedCall], logger: Logger, turn: int) -> List[str]:
        """Run one turn's callbacks, sequentially or on a thread pool.

        Once a callback raises, callbacks that have not started yet are
        skipped; callbacks already running on other workers finish. The first
        failure in invocation order is re-raised.
        """
        if self.max_tool_workers == 1 or len(calls) == 1:
            return [self._invoke(call, logger, turn) for call in calls]

        failed = threading.Event()

        def run(call: PreparedCall) -> Optional[str]:
            if failed.is_set():
                return None
            try:
                return self._invoke(call, logger, turn)
            except Exception:
                failed.set()
                raise

        with ThreadPoolExecutor(max_workers=min(self.max_tool_workers, len(calls))) as pool:
            futures = [pool.submit(run, call) for call in calls]
        for future in futures:
            error = future.exception()
            if error is not None:
                raise error
        return [future.result() for future in futures]

    @staticmethod
    def _invoke(call: PreparedCall, logger: Logger, turn: int) -> str:
        context = ToolCallContext(arguments=call.arguments, tool_call_id=call.invocation.id, tool_name=call.tool.name)
        try:
            output = call.tool.invoke(context)
        except Exception as err:
            logger.human(HumanEntry(title=call.tool.name, body=f"error: {err}", variant="error"))
            logger.json(
                {
                    "type": "tool_error",
                    "turn": turn,
                    "tool": call.tool.name,
                    "arguments": call.arguments,
                    "error": str(err),
                }
            )
            raise
        logger.human(HumanEntry(title=call.tool.name, body=output, variant="tool"))
        logger.json(
            {
                "type": "tool_result",
                "turn": turn,
                "tool": call.tool.name,
                "arguments": call.arguments,
                "output": output,
            }
        )
        return output


def format_tool_calls(invocations: List[ToolInvocation]) -> str:
    return ", ".join(str(invocation.name) for invocation in invocations)
