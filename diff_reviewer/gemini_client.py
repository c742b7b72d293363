"""
Gemini AI reviewer for the Diff Reviewer.

This module wraps Google's Gemini API behind the reviewer capability used by
the dispatcher: one request text in, raw response text out. Calls are never
retried; a failure surfaces as a ``ReviewerError`` and the dispatcher
degrades that unit.
"""

import logging
from typing import Any, Dict, Optional

import google.generativeai as genai

from .config import GeminiConfig


logger = logging.getLogger(__name__)

# finish_reason values reported by the API for filtered candidates
_FILTERED_FINISH_REASONS = {3: "SAFETY", 4: "RECITATION"}


class ReviewerError(Exception):
    """Base exception for reviewer errors."""
    pass


class ModelNotAvailableError(ReviewerError):
    """Exception raised when the specified model is not available."""
    pass


class TokenLimitExceededError(ReviewerError):
    """Exception raised when token limit is exceeded."""
    pass


class GeminiReviewer:
    """Reviewer capability backed by a Gemini generative model."""

    def __init__(self, config: GeminiConfig):
        """Initialize the Gemini model with configuration."""
        self.config = config

        try:
            genai.configure(api_key=config.api_key)
            self._model = genai.GenerativeModel(config.model_name)
            logger.info(f"Initialized Gemini reviewer with model: {config.model_name}")
        except Exception as e:
            logger.error(f"Failed to initialize Gemini reviewer: {str(e)}")
            raise ReviewerError(f"Failed to initialize Gemini reviewer: {str(e)}") from e

        self._generation_config = {
            "max_output_tokens": config.max_output_tokens,
            "temperature": config.temperature,
            "top_p": config.top_p,
            "response_mime_type": "application/json",
        }

        self.last_usage: Optional[Dict[str, int]] = None

        self._total_requests = 0
        self._successful_requests = 0
        self._failed_requests = 0
        self._total_tokens_used = 0

    def review(self, request_text: str) -> str:
        """Send one review request and return the raw response text.

        Args:
            request_text: Full request built by the dispatcher

        Returns:
            The model's text; ``""`` when the response was filtered or empty

        Raises:
            ReviewerError: On API failures
        """
        self._total_requests += 1
        self.last_usage = None

        prompt = request_text or ""
        if len(prompt) > self.config.max_prompt_length:
            logger.warning(f"Prompt too long ({len(prompt)} chars), truncating...")
            prompt = prompt[:self.config.max_prompt_length] + "...[truncated]"

        logger.debug(f"Prompt preview: {prompt[:200]}...")

        try:
            text = self._generate_content(prompt)
        except ReviewerError:
            self._failed_requests += 1
            raise

        self._successful_requests += 1
        return text

    def _generate_content(self, prompt: str) -> str:
        logger.info("Sending request to Gemini API...")

        try:
            response = self._model.generate_content(prompt, generation_config=self._generation_config)
        except Exception as e:
            raise self._classify_error(e) from e

        if not response:
            raise ReviewerError("Empty response from Gemini API")

        self._record_usage(response)

        candidates = getattr(response, "candidates", None)
        if candidates:
            candidate = candidates[0]
            finish_reason = getattr(candidate, "finish_reason", None)
            if finish_reason in _FILTERED_FINISH_REASONS:
                logger.warning(
                    f"Gemini API response filtered due to {_FILTERED_FINISH_REASONS[finish_reason]} "
                    f"(finish_reason={finish_reason}); returning empty review text"
                )
                return ""
            content = getattr(candidate, "content", None)
            if not content or not getattr(content, "parts", None):
                logger.warning(f"Response has no valid parts (finish_reason={finish_reason})")
                return ""

        try:
            response_text = (response.text or "").strip()
        except ValueError as e:
            # response.text raises when no valid Part exists
            logger.warning(f"Response text unavailable: {e}")
            return ""

        if not response_text:
            logger.warning("Empty response text from Gemini API")
        logger.debug(f"Received response (length: {len(response_text)})")
        return response_text

    def _record_usage(self, response: Any) -> None:
        usage = getattr(response, "usage_metadata", None)
        if usage is None:
            return
        input_tokens = getattr(usage, "prompt_token_count", None)
        output_tokens = getattr(usage, "candidates_token_count", None)
        if not isinstance(input_tokens, int) or not isinstance(output_tokens, int):
            return
        self.last_usage = {"input_tokens": input_tokens, "output_tokens": output_tokens}
        self._total_tokens_used += input_tokens + output_tokens
        logger.debug(f"Tokens used: {input_tokens + output_tokens}")

    def _classify_error(self, error: Exception) -> ReviewerError:
        error_msg = str(error).lower()
        if "quota" in error_msg or "rate limit" in error_msg:
            logger.warning("Gemini API rate limit or quota exceeded")
            return ReviewerError("API rate limit exceeded")
        if "token" in error_msg and "limit" in error_msg:
            return TokenLimitExceededError("Token limit exceeded")
        if "not found" in error_msg and "model" in error_msg:
            return ModelNotAvailableError(f"Model {self.config.model_name} not available")
        logger.error(f"Gemini API error: {str(error)}")
        return ReviewerError(f"Gemini API error: {str(error)}")

    def get_statistics(self) -> Dict[str, Any]:
        """Get reviewer usage statistics."""
        success_rate = 0.0
        if self._total_requests > 0:
            success_rate = self._successful_requests / self._total_requests

        return {
            'total_requests': self._total_requests,
            'successful_requests': self._successful_requests,
            'failed_requests': self._failed_requests,
            'success_rate': success_rate,
            'total_tokens_used': self._total_tokens_used,
            'model_name': self.config.model_name
        }
