"""OpenAI batch translation provider for String Catalog entries."""
import asyncio
import json
import logging
import random
from typing import Any, Dict, List, Optional

import tiktoken
from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    OpenAIError,
    RateLimitError,
)
from openai.types.chat import (
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam
)

from xcstrings_translator.catalog_model import TranslationRequest
from xcstrings_translator.result_merger import BatchTranslationResponse, ProviderResponseError

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (RateLimitError, APITimeoutError, APIConnectionError, InternalServerError)


def count_tokens(text: str, model_name: str = 'gpt-4o-mini') -> int:
    """Count the number of tokens in ``text`` for ``model_name``.

    ``tiktoken.encoding_for_model`` may need to download model data and does
    not know every model name. On failure it falls back to ``gpt2``, and as a
    last resort to a whitespace split.
    """
    try:
        encoding = tiktoken.encoding_for_model(model_name)
    except Exception:
        try:
            encoding = tiktoken.get_encoding("gpt2")
        except Exception:
            return len(text.split())

    try:
        return len(encoding.encode(text))
    except Exception:
        return len(text.split())


def collect_target_languages(requests: List[TranslationRequest]) -> List[str]:
    """All languages mentioned by any request, in first-seen order."""
    return list(dict.fromkeys(lang for request in requests for lang in request.target_languages))


def build_response_schema(languages: List[str]) -> Dict[str, Any]:
    """Build the strict structured-output schema for a batch over ``languages``."""
    return {
        "type": "object",
        "properties": {
            "translations": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "key": {
                            "type": "string",
                            "description": "The original key/identifier for the string"
                        },
                        "translations": {
                            "type": "object",
                            "properties": {
                                lang: {"type": "string", "description": f"Translation in {lang}"}
                                for lang in languages
                            },
                            "required": languages,
                            "additionalProperties": False
                        }
                    },
                    "required": ["key", "translations"],
                    "additionalProperties": False
                }
            }
        },
        "required": ["translations"],
        "additionalProperties": False
    }


def build_system_prompt(source_language: str, languages: List[str], base_system_prompt: str = "") -> str:
    prompt = f"""You are a professional translator localizing an iOS app. Translate the following strings from {source_language} to the specified target languages: {', '.join(languages)}.

For each string, provide accurate, natural translations that preserve the meaning and context. If a string contains placeholders (like %@, %d, %lld, {{0}}, etc.), keep them exactly as they are in the translation.

Only the languages listed for a string are needed; any other language the format asks for may be left as an empty string.

Return the translations in the exact JSON structure specified."""
    if base_system_prompt:
        prompt += f"\n\n**Additional Context**:\n{base_system_prompt}"
    return prompt


def build_user_prompt(requests: List[TranslationRequest]) -> str:
    blocks = []
    for request in requests:
        lines = [f'Key: "{request.key}"', f'Text: "{request.text}"']
        if request.comment:
            lines.append(f'Context: {request.comment}')
        lines.append(f'Languages: {", ".join(request.target_languages)}')
        blocks.append("\n".join(lines))
    return "Translate these strings:\n\n" + "\n\n".join(blocks)


def _retry_after_seconds(api_exc: Optional[Exception]) -> Optional[float]:
    """Read the Retry-After header of an API error, if there is one."""
    response = getattr(api_exc, "response", None)
    headers = getattr(response, "headers", None) or {}
    retry_after_header = headers.get("Retry-After") or headers.get("retry-after")
    if not retry_after_header:
        return None
    if retry_after_header.isdigit():
        return float(retry_after_header)
    if retry_after_header.endswith("ms"):
        return float(retry_after_header[:-2]) / 1000
    return None


async def _handle_retry(attempt: int, max_retries: int, base_delay: float,
                        api_exc: Optional[Exception] = None) -> bool:
    """
    Sleep before the next attempt, using exponential backoff with jitter.

    Returns:
        bool: True if the caller should retry, False once attempts are exhausted.
    """
    if attempt >= max_retries:
        logger.error("Batch translation failed after %d attempts.", max_retries)
        return False

    try:
        delay = _retry_after_seconds(api_exc)
    except ValueError as exc:
        logger.warning("Failed to parse Retry-After header: %s. Falling back to exponential backoff.", exc)
        delay = None
    if delay is None:
        delay = base_delay * (2 ** (attempt - 1)) + random.uniform(0, 1)

    logger.info("Retrying request to /chat/completions in %.2f seconds (Attempt %d/%d)", delay, attempt, max_retries)
    await asyncio.sleep(delay)
    return True


class OpenAITranslationProvider:
    """
    Translates a whole batch of requests with one structured-output chat completion.

    The client is passed in, so tests and callers decide which client (or stub) is used.
    """

    def __init__(
            self,
            client: AsyncOpenAI,
            model_name: str,
            base_system_prompt: str = "",
            max_model_tokens: int = 16000,
            max_retries: int = 3,
            base_delay: float = 1.0
    ):
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}.")
        self.client = client
        self.model_name = model_name
        self.base_system_prompt = base_system_prompt
        self.max_model_tokens = max_model_tokens
        self.max_retries = max_retries
        self.base_delay = base_delay

    async def translate_batch(
            self,
            requests: List[TranslationRequest],
            source_language: str = "en"
    ) -> BatchTranslationResponse:
        """
        Translate every request in a single API call.

        Args:
            requests: The requests built by the reconciliation.
            source_language: The catalog's source language code.

        Returns:
            BatchTranslationResponse: The parsed and validated provider answer.

        Raises:
            OpenAIError: When the API keeps failing or fails with a non-retryable error.
            ProviderResponseError: When the answer is not valid batch JSON.
        """
        if not requests:
            return BatchTranslationResponse()

        languages = collect_target_languages(requests)
        logger.info(
            "Requesting batch translation for %d strings from %s to languages: %s",
            len(requests), source_language, ", ".join(languages)
        )

        system_prompt = build_system_prompt(source_language, languages, self.base_system_prompt)
        user_prompt = build_user_prompt(requests)

        prompt_tokens = count_tokens(system_prompt + user_prompt, self.model_name)
        if prompt_tokens > self.max_model_tokens:
            logger.warning(
                "Batch prompt is about %d tokens, above the configured limit of %d. The request may be rejected or truncated.",
                prompt_tokens, self.max_model_tokens
            )

        for attempt in range(1, self.max_retries + 1):
            try:
                chat_completion = await self.client.chat.completions.create(
                    model=self.model_name,
                    messages=[
                        ChatCompletionSystemMessageParam(role="system", content=system_prompt),
                        ChatCompletionUserMessageParam(role="user", content=user_prompt)
                    ],
                    response_format={
                        "type": "json_schema",
                        "json_schema": {
                            "name": "batch_translation",
                            "schema": build_response_schema(languages),
                            "strict": True
                        }
                    }
                )
                break
            except RETRYABLE_ERRORS as api_exc:
                logger.error("API error occurred: %s - %s", api_exc.__class__.__name__, api_exc)
                if not await _handle_retry(attempt, self.max_retries, self.base_delay, api_exc):
                    raise
            except OpenAIError as api_exc:
                logger.error("Error in batch translation: %s - %s", api_exc.__class__.__name__, api_exc)
                raise

        response_content = chat_completion.choices[0].message.content if chat_completion.choices else None
        if not response_content:
            raise ProviderResponseError("No content in OpenAI response")

        try:
            parsed = json.loads(response_content)
        except json.JSONDecodeError as json_exc:
            logger.debug("Invalid AI response:\n---\n%s\n---", response_content)
            raise ProviderResponseError(f"OpenAI response is not valid JSON: {json_exc}") from json_exc

        batch_response = BatchTranslationResponse.from_dict(parsed)
        _drop_unrequested_languages(batch_response, requests)
        logger.info("Received batch translations for %d strings", len(batch_response.translations))
        return batch_response


def _drop_unrequested_languages(batch_response: BatchTranslationResponse, requests: List[TranslationRequest]) -> None:
    # The strict schema makes the model fill every batch language for every
    # key; only the languages each key asked for are kept.
    requested = {request.key: set(request.target_languages) for request in requests}
    for result in batch_response.translations:
        wanted = requested.get(result.key)
        if wanted is None:
            continue
        dropped = [lang for lang in result.translations if lang not in wanted]
        for lang in dropped:
            del result.translations[lang]
        if dropped:
            logger.debug("Dropped unrequested languages %s for key '%s'.", ", ".join(dropped), result.key)
