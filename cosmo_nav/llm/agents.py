"""
LLM Agent System.

Two agents share one LLM provider and one rate limiter:
1. IntentAgent - Decide whether a request is a navigation target or a question
2. AnswerAgent - Generate a short spoken answer to a general question
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from cosmo_nav.config.settings import LLMConfig
from cosmo_nav.core.errors import AIError, AIRateLimited, MalformedAIResponse
from cosmo_nav.hardware.interfaces import ILLMProvider
from cosmo_nav.llm.prompts import (
    ANSWER_AGENT_SYSTEM_PROMPT,
    INTENT_AGENT_SYSTEM_PROMPT,
    get_intent_user_prompt
)
from cosmo_nav.llm.rate_limiter import MinIntervalRateLimiter

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")

NAVIGATE = "navigate"
ANSWER = "answer"


@dataclass(frozen=True)
class IntentDecision:
    """
    Free-form intent resolved by the AI or the keyword fallback.

    ``action`` is "navigate" (with ``location``) or "answer"/"question"
    (with an optional suggested ``response``). ``fallback_reason`` is set
    when the keyword classifier produced the decision.
    """

    action: str
    location: str = ""
    response: str = ""
    source: str = "ai"
    fallback_reason: Optional[str] = None

    @property
    def is_navigation(self) -> bool:
        return self.action == NAVIGATE


class BaseAgent:
    """
    Base class for LLM agents.

    Provides paced LLM calls with error normalization and text extraction.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        rate_limiter: Optional[MinIntervalRateLimiter] = None,
        config: Optional[LLMConfig] = None
    ):
        """
        Initialize base agent.

        Args:
            llm_provider: LLM provider implementing ILLMProvider interface
            rate_limiter: Shared limiter pacing outbound calls
            config: LLM configuration
        """
        self.llm = llm_provider
        self.config = config or LLMConfig()
        self.rate_limiter = rate_limiter or MinIntervalRateLimiter(self.config.min_call_interval_sec)
        self.logger = logging.getLogger(self.__class__.__name__)

    async def _call_llm(self, messages: List[Dict[str, str]], **kwargs) -> str:
        """
        Call LLM after the rate limiter allows it.

        Args:
            messages: List of message dicts for LLM
            **kwargs: Additional LLM parameters

        Returns:
            str: Extracted text from LLM response

        Raises:
            AIRateLimited: If the backend rejected the call for rate reasons
            AIError: For any other backend failure
        """
        await self.rate_limiter.acquire()
        params = {
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }
        params.update(kwargs)
        try:
            response = await self.llm.chat(messages=messages, **params)
        except AIError:
            raise
        except Exception as e:
            self.logger.error(f"LLM call failed in {self.__class__.__name__}: {e}")
            raise AIError(str(e)) from e
        return self._extract_text(response)

    def _extract_text(self, response) -> str:
        text = self.llm.extract_text(response)
        return text.strip() if text else ""


class IntentAgent(BaseAgent):
    """
    Classifies free-form requests as navigation or question.

    Rate-limit rejections are retried with exponential back-off (2 s, 4 s)
    up to ``max_attempts`` calls in total.

    Example:
        >>> agent = IntentAgent(llm_provider)
        >>> await agent.decide("take me to starbucks")
        IntentDecision(action='navigate', location='Starbucks', ...)
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        rate_limiter: Optional[MinIntervalRateLimiter] = None,
        config: Optional[LLMConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        super().__init__(llm_provider, rate_limiter, config)
        self._sleep = sleep

    async def decide(self, user_text: str) -> IntentDecision:
        """
        Ask the LLM for a structured decision.

        Args:
            user_text: Transcribed user request

        Returns:
            IntentDecision: Parsed decision

        Raises:
            AIRateLimited: If every attempt was rate limited
            MalformedAIResponse: If the response is not a valid decision
            AIError: For other backend failures
        """
        messages = [
            {"role": "system", "content": INTENT_AGENT_SYSTEM_PROMPT},
            {"role": "user", "content": get_intent_user_prompt(user_text)},
        ]

        attempt = 0
        while True:
            attempt += 1
            try:
                response_text = await self._call_llm(messages)
                break
            except AIRateLimited:
                if attempt >= self.config.max_attempts:
                    self.logger.warning(f"Rate limit persists after {attempt} attempts")
                    raise
                backoff = self.config.backoff_base_sec ** attempt
                self.logger.info(
                    f"Rate limit hit, retry {attempt}/{self.config.max_attempts} after {backoff:.0f}s"
                )
                await self._sleep(backoff)

        self.logger.debug(f"AI raw response: {response_text}")
        decision = self.parse_decision(response_text)
        self.logger.info(f"AI decision: {decision.action} {decision.location or ''}".rstrip())
        return decision

    @staticmethod
    def parse_decision(response_text: str) -> IntentDecision:
        """
        Parse the JSON decision embedded in an LLM response.

        Args:
            response_text: Raw LLM text (may contain markdown or prose)

        Returns:
            IntentDecision: Parsed decision

        Raises:
            MalformedAIResponse: If no valid decision object is found
        """
        match = JSON_OBJECT_PATTERN.search(response_text or "")
        if not match:
            raise MalformedAIResponse("No JSON found in AI response", response_text)

        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise MalformedAIResponse(f"Invalid JSON in AI response: {e}", response_text)

        if not isinstance(data, dict):
            raise MalformedAIResponse("AI response is not an object", response_text)

        action = str(data.get("action", "")).strip().lower()
        if action == NAVIGATE:
            location = data.get("location")
            if not isinstance(location, str) or not location.strip():
                raise MalformedAIResponse("Navigate decision without location", response_text)
            return IntentDecision(action=NAVIGATE, location=location.strip())

        if action == ANSWER:
            response = data.get("response") or ""
            if not isinstance(response, str):
                raise MalformedAIResponse("Answer decision with non-text response", response_text)
            return IntentDecision(action=ANSWER, response=response.strip())

        raise MalformedAIResponse(f"Unknown action: {action!r}", response_text)


class AnswerAgent(BaseAgent):
    """
    Generates short spoken answers with recent chat history as context.
    """

    async def answer(self, question: str, history: Optional[List[Dict[str, str]]] = None) -> str:
        """
        Answer a general question.

        Args:
            question: User question
            history: Previous chat turns ({"role", "content"} dicts)

        Returns:
            str: Answer text

        Raises:
            AIError: If the backend fails or returns nothing
        """
        messages = [{"role": "system", "content": ANSWER_AGENT_SYSTEM_PROMPT}]
        for turn in (history or [])[-self.config.max_history:]:
            messages.append({"role": turn["role"], "content": turn["content"]})
        messages.append({"role": "user", "content": question})

        text = await self._call_llm(messages)
        if not text:
            raise AIError("Empty answer from LLM")
        return text
