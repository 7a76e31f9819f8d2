"""
Agent Orchestrator - Runs one customer turn through the model and the tools.

compose -> model -> (tools -> model)* -> finalize. Tool rounds are bounded by
``max_tool_calls``; a failing model falls back once to the alternate provider
and otherwise ends the turn with an apology.
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.business import BusinessConfig
from ..core.errors import ModelProviderError
from ..core.logging_config import LoggerAdapter, truncate_large_data
from ..core.memory_manager import CustomerMemory
from ..core.session_registry import SessionRegistry
from ..gateway.gateway import ADMIN_CHANNEL, APOLOGY, Gateway, Turn
from ..llm.base import LLMMessage, LLMProvider, LLMResponse
from ..models.session import Message
from ..tools.registry import ToolDispatcher
from .prompt import build_customer_context, build_system_prompt

logger = logging.getLogger(__name__)

NO_REPLY = "Sorry, I couldn't finish that just now. Could you tell me a little more about what you need?"


class TurnState(str, Enum):
    COMPOSING = "composing"
    AWAITING_MODEL = "awaiting_model"
    TOOLS_REQUESTED = "tools_requested"
    EXECUTING_TOOLS = "executing_tools"
    FINALIZING = "finalizing"
    DONE = "done"


def customer_id(metadata: Dict[str, Any]) -> Optional[str]:
    """The stable customer identifier a channel adapter supplied, phone first."""
    return (
        metadata.get("sender_phone")
        or metadata.get("customer_phone")
        or metadata.get("sender_id")
    )


class AgentOrchestrator:
    """
    Drives the reason / call tool / observe / respond loop for each turn the
    gateway hands over, and replies through ``Gateway.send_response``.
    """

    def __init__(
        self,
        gateway: Gateway,
        registry: SessionRegistry,
        dispatcher: ToolDispatcher,
        config: BusinessConfig,
        llm_provider: Optional[LLMProvider],
        fallback_provider: Optional[LLMProvider] = None,
        memory: Optional[CustomerMemory] = None,
        max_tool_calls: int = 5,
        history_limit: int = 10,
        model_timeout: Optional[float] = None,
    ):
        self.gateway = gateway
        self.registry = registry
        self.dispatcher = dispatcher
        self.config = config
        self.llm_provider = llm_provider
        self.fallback_provider = fallback_provider
        self.memory = memory
        self.max_tool_calls = max_tool_calls
        self.history_limit = history_limit
        self.model_timeout = model_timeout
        self.system_prompt = build_system_prompt(config)
        self.catalogue = dispatcher.catalogue()

        gateway.set_turn_handler(self.handle)

    async def reload_prompt(self) -> str:
        """Re-read the business configuration and rebuild the system prompt."""
        await self.config.reload()
        self.system_prompt = build_system_prompt(self.config)
        logger.info(f"System prompt reloaded ({len(self.system_prompt)} chars)")
        return self.system_prompt

    async def handle(self, turn: Turn) -> str:
        """Answer one turn. The user message is already in the session."""
        log = LoggerAdapter(logger, {"session_id": turn.session_id, "channel": turn.channel})
        log.info(f"Turn started: {truncate_large_data(turn.text, 100)}")

        state = TurnState.COMPOSING
        messages = await self._compose(turn)

        last_text: Optional[str] = None
        rounds = 0
        try:
            while True:
                state = TurnState.AWAITING_MODEL
                response = await self._call_model(messages, log)
                if response.content:
                    last_text = response.content
                if not response.wants_tools:
                    break

                state = TurnState.TOOLS_REQUESTED
                self._record_tool_request(turn, response, messages)

                state = TurnState.EXECUTING_TOOLS
                await self._execute_tools(turn, response, messages, log)
                rounds += 1
                if rounds >= self.max_tool_calls:
                    log.warning(f"Tool round limit reached ({self.max_tool_calls}), finalizing")
                    break
            reply = last_text or NO_REPLY
        except ModelProviderError as e:
            log.error(f"No model available for turn: {e.detail}")
            reply = APOLOGY

        state = TurnState.FINALIZING
        await self._learn(turn, reply, log)
        await self.gateway.send_response(turn.channel, turn.session_id, reply)

        state = TurnState.DONE
        log.info(
            f"Turn {state.value}",
            extra={"extra_fields": {"tool_rounds": rounds, "reply_length": len(reply)}}
        )
        return reply

    async def _compose(self, turn: Turn) -> List[LLMMessage]:
        system = self.system_prompt
        customer_context = await self._customer_context(turn)
        if customer_context:
            system = f"{system}\n\n{customer_context}"

        history = self.registry.recent_history(turn.session_id, self.history_limit + 1)
        if history and history[-1].role == "user" and history[-1].content == turn.text:
            history = history[:-1]
        history = history[-self.history_limit:] if self.history_limit > 0 else []

        return [
            LLMMessage.text("system", system),
            # Tool bookkeeping stays out of the history, so only role and text go in
            *(LLMMessage.text(m.role, m.content or "") for m in history),
            LLMMessage.text("user", turn.text),
        ]

    def _session_metadata(self, turn: Turn) -> Dict[str, Any]:
        # Admin turns carry no customer details of their own
        session = self.registry.get(turn.session_id)
        return session.metadata if session else turn.metadata

    async def _customer_context(self, turn: Turn) -> str:
        key = customer_id(self._session_metadata(turn))
        if self.memory is None or not key:
            return ""
        return build_customer_context(await self.memory.get_customer(key))

    async def _call_model(self, messages: List[LLMMessage], log: LoggerAdapter) -> LLMResponse:
        try:
            return await self._call_provider(self.llm_provider, messages)
        except ModelProviderError as e:
            if self.fallback_provider is None:
                raise
            log.warning(f"Primary model failed ({e.detail}), trying fallback {self.fallback_provider.name}")
        return await self._call_provider(self.fallback_provider, messages)

    async def _call_provider(self, provider: Optional[LLMProvider], messages: List[LLMMessage]) -> LLMResponse:
        if provider is None:
            raise ModelProviderError("none", "no language model configured")
        call = provider.chat(messages, tools=self.catalogue)
        try:
            if self.model_timeout:
                return await asyncio.wait_for(call, timeout=self.model_timeout)
            return await call
        except asyncio.TimeoutError as e:
            raise ModelProviderError(provider.name, f"timed out after {self.model_timeout}s", e) from e

    def _record_tool_request(self, turn: Turn, response: LLMResponse, messages: List[LLMMessage]) -> None:
        self.registry.append(turn.session_id, Message(
            role="assistant",
            content=response.content,
            tool_calls=response.tool_calls,
        ))
        messages.append(LLMMessage(
            role="assistant",
            content=response.content,
            tool_calls=list(response.tool_calls),
        ))

    async def _execute_tools(
        self,
        turn: Turn,
        response: LLMResponse,
        messages: List[LLMMessage],
        log: LoggerAdapter
    ) -> None:
        # Sequential, in the order the model asked for them
        for invocation in response.tool_calls:
            log.info(f"Tool call: {invocation.name}")
            result = await self.dispatcher.invoke(invocation)
            content = json.dumps(result.model_dump(exclude_none=True), ensure_ascii=False, default=str)
            self.registry.append(turn.session_id, Message(
                role="tool",
                content=content,
                tool_call_id=invocation.call_id,
                name=invocation.name,
            ))
            messages.append(LLMMessage(
                role="tool",
                content=content,
                tool_call_id=invocation.call_id,
                name=invocation.name,
            ))

    async def _learn(self, turn: Turn, reply: str, log: LoggerAdapter) -> None:
        if self.memory is None or turn.channel == ADMIN_CHANNEL:
            return
        customer = customer_id(self._session_metadata(turn))
        if not customer:
            return
        try:
            session = self.registry.require(turn.session_id)
            if sum(1 for m in session.messages if m.role == "user") == 1:
                await self.memory.remember_customer(customer, session.customer_name)
            await self.memory.learn_from_conversation(customer, [turn.text, reply])
        except Exception as e:
            log.warning(f"Customer memory update failed: {str(e)}", exc_info=True)
