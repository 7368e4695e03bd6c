# okr_tracker/services/AISuggestionService.py
import json
import logging
import re
from enum import Enum
from typing import Dict, List, Optional, Type, TypeVar

import anthropic
import openai
from pydantic import BaseModel, ValidationError

from okr_tracker.core.config import settings
from okr_tracker.schemas.aiSchema import (
    SuggestCoursesRequest,
    SuggestCoursesResponse,
    SuggestKPIsRequest,
    SuggestKPIsResponse,
)
from okr_tracker.utils.ai_prompts import (
    COURSE_SYSTEM_PROMPT,
    KPI_SYSTEM_PROMPT,
    build_course_user_prompt,
    build_kpi_user_prompt,
)

logger = logging.getLogger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)

CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class AIServiceError(Exception):
    """Base class; the message is what the client sees."""
    status_code = 502
    message = "AI-Service vorübergehend nicht verfügbar"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class AIServiceNotConfigured(AIServiceError):
    status_code = 503
    message = "AI-Service nicht konfiguriert"


class AIServiceUnavailable(AIServiceError):
    message = "AI-Service vorübergehend nicht verfügbar"


class AIEmptyResponse(AIServiceError):
    message = "Keine Vorschläge generiert"


class AIInvalidResponse(AIServiceError):
    message = "Ungültige AI-Antwort. Bitte erneut versuchen."


class LLMProvider(Enum):
    """Available LLM providers, in priority order"""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


def extract_json(text: str) -> str:
    """Strip a markdown code fence if the model wrapped its JSON in one."""
    match = CODE_FENCE.search(text)
    return match.group(1).strip() if match else text.strip()


def parse_model_output(text: str, model: Type[ResponseModel]) -> ResponseModel:
    try:
        return model.model_validate(json.loads(extract_json(text)))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error(
            "Failed to parse AI response",
            extra={"error": str(e), "raw_response": text[:500]},
        )
        raise AIInvalidResponse()


class AISuggestionService:
    """Key-result and course suggestions from OpenAI, with Anthropic as fallback."""

    def __init__(self, openai_api_key: Optional[str] = None, anthropic_api_key: Optional[str] = None):
        self.providers: Dict[LLMProvider, dict] = {}
        self._initialize_providers(openai_api_key, anthropic_api_key)

    @classmethod
    def from_settings(cls) -> "AISuggestionService":
        return cls(settings.OPENAI_API_KEY, settings.ANTHROPIC_API_KEY)

    def _initialize_providers(self, openai_api_key: Optional[str], anthropic_api_key: Optional[str]):
        """Initialize available providers based on configured keys"""
        if openai_api_key:
            self.providers[LLMProvider.OPENAI] = {
                "client": openai.AsyncOpenAI(api_key=openai_api_key),
                "model": settings.OPENAI_MODEL,
                "max_tokens": 1024,
            }
            logger.info("OpenAI provider initialized")

        if anthropic_api_key:
            self.providers[LLMProvider.ANTHROPIC] = {
                "client": anthropic.AsyncAnthropic(api_key=anthropic_api_key),
                "model": settings.ANTHROPIC_MODEL,
                "max_tokens": 1024,
            }
            logger.info("Anthropic provider initialized")

        if not self.providers:
            logger.warning("No AI provider configured; suggestion endpoints will answer 503")

    @property
    def is_configured(self) -> bool:
        return bool(self.providers)

    def _get_provider_priority(self) -> List[LLMProvider]:
        return [provider for provider in LLMProvider if provider in self.providers]

    async def _call_openai(self, system_prompt: str, user_prompt: str) -> Optional[str]:
        provider_config = self.providers[LLMProvider.OPENAI]

        response = await provider_config["client"].chat.completions.create(
            model=provider_config["model"],
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            temperature=0.7,
            max_tokens=provider_config["max_tokens"],
        )

        if not response.choices:
            return None
        return response.choices[0].message.content

    async def _call_anthropic(self, system_prompt: str, user_prompt: str) -> Optional[str]:
        provider_config = self.providers[LLMProvider.ANTHROPIC]

        response = await provider_config["client"].messages.create(
            model=provider_config["model"],
            max_tokens=provider_config["max_tokens"],
            system=system_prompt,
            messages=[
                {"role": "user", "content": user_prompt}
            ]
        )

        if not response.content:
            return None
        return getattr(response.content[0], "text", None)

    async def _call_llm(self, provider: LLMProvider, system_prompt: str, user_prompt: str) -> Optional[str]:
        if provider == LLMProvider.OPENAI:
            return await self._call_openai(system_prompt, user_prompt)
        elif provider == LLMProvider.ANTHROPIC:
            return await self._call_anthropic(system_prompt, user_prompt)
        else:
            raise ValueError(f"Unknown provider: {provider}")

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """
        Ask providers in priority order and return the first text answer.

        Raises:
            AIServiceNotConfigured: no API key is set.
            AIServiceUnavailable: every provider failed.
            AIEmptyResponse: a provider answered without text.
        """
        if not self.is_configured:
            raise AIServiceNotConfigured()

        for provider in self._get_provider_priority():
            try:
                text = await self._call_llm(provider, system_prompt, user_prompt)
            except (openai.OpenAIError, anthropic.AnthropicError) as e:
                logger.error("AI provider error", extra={"provider": provider.value, "error": str(e)})
                continue
            if not text:
                logger.error("Empty AI response", extra={"provider": provider.value})
                raise AIEmptyResponse()
            return text

        raise AIServiceUnavailable()

    async def suggest_key_results(self, request: SuggestKPIsRequest) -> SuggestKPIsResponse:
        text = await self.complete(
            KPI_SYSTEM_PROMPT,
            build_kpi_user_prompt(request.okr_title, request.category.value, request.existing_krs),
        )
        return parse_model_output(text, SuggestKPIsResponse)

    async def suggest_courses(self, request: SuggestCoursesRequest) -> SuggestCoursesResponse:
        text = await self.complete(
            COURSE_SYSTEM_PROMPT,
            build_course_user_prompt(request.craft_focus, request.department, request.okr_categories),
        )
        return parse_model_output(text, SuggestCoursesResponse)
