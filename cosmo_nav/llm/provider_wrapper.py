"""
LLM Provider Wrapper.

Wraps the OpenAI async client to implement the ILLMProvider interface and
translate client errors into Cosmo's AI error types.
"""

from typing import Any, Dict, List, Optional

try:
    import openai
    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False

from cosmo_nav.core.errors import AIError, AIRateLimited
from cosmo_nav.hardware.interfaces import ILLMProvider


class OpenAIProvider(ILLMProvider):
    """
    Chat completions through ``openai.AsyncOpenAI``.

    ``openai.RateLimitError`` (HTTP 429, including quota exhaustion) becomes
    ``AIRateLimited``; every other client error becomes ``AIError``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        timeout_sec: float = 15.0
    ):
        """
        Initialize provider.

        Args:
            api_key: OpenAI API key (if None, the client reads OPENAI_API_KEY)
            model: Chat model name
            timeout_sec: Request timeout

        Raises:
            ImportError: If openai package is not installed
        """
        if not OPENAI_AVAILABLE:
            raise ImportError(
                "OpenAI package not installed. Install with: pip install openai"
            )

        self.client = openai.AsyncOpenAI(api_key=api_key or None, timeout=timeout_sec)
        self.model = model

    async def chat(self, messages: List[Dict[str, str]], **kwargs) -> Any:
        """
        Call the chat completions endpoint.

        Args:
            messages: List of message dicts with 'role' and 'content'
            **kwargs: Additional parameters (max_tokens, temperature, etc.)

        Returns:
            ChatCompletion response object

        Raises:
            AIRateLimited: On rate or quota rejection
            AIError: On any other API failure
        """
        try:
            return await self.client.chat.completions.create(
                model=kwargs.pop("model", self.model),
                messages=messages,
                **kwargs
            )
        except openai.RateLimitError as e:
            raise AIRateLimited(str(e)) from e
        except openai.OpenAIError as e:
            raise AIError(str(e)) from e

    def extract_text(self, response: Any) -> str:
        """
        Extract text content from LLM response.

        Handles:
        - String responses (direct return)
        - ChatCompletion objects with .choices[0].message.content
        - Dicts in the OpenAI API response format

        Args:
            response: Response object from chat()

        Returns:
            str: Extracted text content
        """
        # Already a string
        if isinstance(response, str):
            return response.strip()

        # OpenAI ChatCompletion object with choices
        if hasattr(response, 'choices') and len(response.choices) > 0:
            message = getattr(response.choices[0], 'message', None)
            if message is not None and getattr(message, 'content', None) is not None:
                return message.content.strip()

        # Dict with nested structure
        if isinstance(response, dict):
            choices = response.get('choices') or []
            if choices:
                content = (choices[0].get('message') or {}).get('content')
                if content is not None:
                    return content.strip()
            for key in ('content', 'text', 'response'):
                if isinstance(response.get(key), str):
                    return response[key].strip()

        return ""
