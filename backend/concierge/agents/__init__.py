"""Agents module - the turn orchestrator and its system prompt."""

from .orchestrator import AgentOrchestrator, TurnState
from .prompt import build_system_prompt, build_customer_context

__all__ = [
    'AgentOrchestrator',
    'TurnState',
    'build_system_prompt',
    'build_customer_context',
]
