"""
AI-then-keyword fallback chain.

The intent agent is asked first. When it fails (rate limiting that outlasted
the retries, malformed output, or any backend error) a local keyword
classifier resolves the request instead, so a free-form command always gets
a decision.
"""

import logging
from typing import Optional

from cosmo_nav.core.errors import AIError, AIRateLimited, MalformedAIResponse
from cosmo_nav.llm.agents import IntentAgent, IntentDecision, NAVIGATE

logger = logging.getLogger(__name__)

QUESTION = "question"


class KeywordIntentClassifier:
    """
    Local navigate-vs-question classifier.

    A request is treated as navigation if it contains a travel keyword, or if
    it is short (three words or fewer) and contains no question keyword.
    """

    NAVIGATION_KEYWORDS = [
        'navigate', 'go', 'take me', 'drive', 'directions', 'find',
        'locate', 'show', 'search', 'where is', 'nearest'
    ]
    QUESTION_KEYWORDS = [
        'what', 'how', 'why', 'when', 'who', 'weather', 'temperature',
        'tell me', 'explain'
    ]

    def classify(self, text: str) -> str:
        """
        Bucket an utterance.

        Args:
            text: User request

        Returns:
            str: "navigate" or "question"
        """
        lowered = text.lower()
        has_navigation = any(kw in lowered for kw in self.NAVIGATION_KEYWORDS)
        has_question = any(kw in lowered for kw in self.QUESTION_KEYWORDS)

        if has_navigation or (not has_question and len(text.split()) <= 3):
            return NAVIGATE
        return QUESTION

    def decide(self, text: str, reason: Optional[str] = None) -> IntentDecision:
        action = self.classify(text)
        if action == NAVIGATE:
            return IntentDecision(action=NAVIGATE, location=text.strip(),
                                  source="keyword", fallback_reason=reason)
        return IntentDecision(action=QUESTION, source="keyword", fallback_reason=reason)


class FallbackChain:
    """
    Resolves free-form text to an IntentDecision, never raising AI errors.

    Example:
        >>> chain = FallbackChain(IntentAgent(llm))
        >>> decision = await chain.resolve("coffee shop")
        >>> decision.action
        'navigate'
    """

    def __init__(self, agent: Optional[IntentAgent], classifier: Optional[KeywordIntentClassifier] = None):
        """
        Initialize fallback chain.

        Args:
            agent: Intent agent (None to use keyword routing only)
            classifier: Keyword classifier used on AI failure
        """
        self.agent = agent
        self.classifier = classifier or KeywordIntentClassifier()

    async def resolve(self, text: str) -> IntentDecision:
        """
        Decide intent, degrading to keywords on any AI failure.

        Args:
            text: Free-form user request

        Returns:
            IntentDecision: AI decision, or keyword decision with
            ``fallback_reason`` set to "rate_limited", "malformed", "error"
            or "unavailable"
        """
        if self.agent is None:
            return self.classifier.decide(text, reason="unavailable")

        try:
            return await self.agent.decide(text)
        except AIRateLimited:
            logger.warning("Rate limit persists, using fallback keyword routing")
            reason = "rate_limited"
        except MalformedAIResponse as e:
            logger.warning(f"Malformed AI response, using fallback keyword routing: {e}")
            reason = "malformed"
        except AIError as e:
            logger.error(f"AI processing error, using fallback keyword routing: {e}")
            reason = "error"

        decision = self.classifier.decide(text, reason=reason)
        logger.info(f"Fallback: treating as {decision.action}")
        return decision
