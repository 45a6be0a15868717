"""Generated-answer production for the responder's clone."""

import asyncio
import logging
import time
from dataclasses import dataclass

from config.settings import GeneratorConfig
from models.manager import ModelManager

from .fallback import fallback_answer

logger = logging.getLogger(__name__)

GENERATOR_MODEL_ID = "clone_generator"


@dataclass
class GeneratedAnswer:
    """A generated answer and where it came from ("model" or "fallback")."""

    text: str
    source: str
    error: str | None = None
    generation_time_ms: int | None = None

    @property
    def used_fallback(self) -> bool:
        return self.source == "fallback"


class AnswerGenerator:
    """Writes the clone's answer from a personality profile and a question.

    Any model failure (timeout, provider error, empty output, missing API
    key) degrades to the offline fallback, so generate() always returns
    usable text.
    """

    def __init__(self, config: GeneratorConfig, model_manager: ModelManager | None = None):
        self.config = config
        self.model_manager = model_manager
        self._registered = False

        if model_manager is not None and config.enabled:
            try:
                model_manager.register_model(GENERATOR_MODEL_ID, config.model)
                self._registered = True
            except ValueError as e:
                logger.error(f"Generator model unavailable, using fallback only: {e}")

    @property
    def model_available(self) -> bool:
        return (
            self._registered
            and self.model_manager is not None
            and self.model_manager.is_available(GENERATOR_MODEL_ID)
        )

    def _get_system_prompt(self, profile_text: str, topic: str) -> str:
        return f"""You are answering a question as someone's clone in a party game.

Personality Profile: {profile_text}
Topic: {topic or 'General'}

Answer the way this person would: natural, conversational, 1-2 sentences max. The answer should be believable enough that their friends cannot tell it apart from the real person's answer. Do not mention that you are a clone."""

    def _build_messages(self, profile_text: str, question: str, topic: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self._get_system_prompt(profile_text, topic)},
            {"role": "user", "content": question},
        ]

    def _fallback(self, profile_text: str, question: str, error: str | None) -> GeneratedAnswer:
        return GeneratedAnswer(
            text=fallback_answer(profile_text, question),
            source="fallback",
            error=error,
        )

    async def generate(self, profile_text: str, question: str, topic: str = "General") -> GeneratedAnswer:
        """Produce the generated answer for a question, bounded by config.timeout."""
        if not self.config.enabled:
            return self._fallback(profile_text, question, None)

        if not self.model_available:
            logger.warning("No model client configured, using fallback answer")
            return self._fallback(profile_text, question, "model unavailable")

        assert self.model_manager is not None
        messages = self._build_messages(profile_text, question, topic)
        start_time = time.time()

        try:
            text = await asyncio.wait_for(
                self.model_manager.generate_response(GENERATOR_MODEL_ID, messages),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Answer generation timed out after {self.config.timeout}s, using fallback"
            )
            return self._fallback(profile_text, question, "timeout")
        except Exception as e:
            logger.warning(f"Answer generation failed, using fallback: {e}")
            return self._fallback(profile_text, question, str(e))

        if not text or not text.strip():
            logger.warning("Model returned an empty answer, using fallback")
            return self._fallback(profile_text, question, "empty response")

        return GeneratedAnswer(
            text=text.strip(),
            source="model",
            generation_time_ms=int((time.time() - start_time) * 1000),
        )
