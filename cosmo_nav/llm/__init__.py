"""
LLM subsystem for Cosmo.

Intent and answer agents, call pacing, and the AI-then-keyword fallback
chain. The OpenAI adapter lives in ``cosmo_nav.llm.provider_wrapper``.
"""

from cosmo_nav.llm.agents import AnswerAgent, IntentAgent, IntentDecision
from cosmo_nav.llm.fallback import FallbackChain, KeywordIntentClassifier
from cosmo_nav.llm.rate_limiter import MinIntervalRateLimiter

__all__ = [
    'AnswerAgent',
    'IntentAgent',
    'IntentDecision',
    'FallbackChain',
    'KeywordIntentClassifier',
    'MinIntervalRateLimiter',
]
