"""Clients for the remote AI model that grades answer documents.

Two backends share one calling contract, ``await client.generate(prompt, document=None)``:

* ``GeminiClient`` posts to a ``generateContent`` REST endpoint with httpx.
* ``AgentClient`` runs a pydantic-ai ``Agent`` (OpenAI models by default).

Neither backend retries; retry policy belongs to the caller.
"""

import base64
import json
import logging
import os
from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic_ai import Agent, BinaryContent
from pydantic_ai.models.openai import OpenAIResponsesModel, OpenAIResponsesModelSettings

from fairgrade.libs.config_loader import ConfigType, get_config

LOG = logging.getLogger(__name__)

# Fix up logging level for httpx to WARNING to reduce noise
logging.getLogger("httpx").setLevel(logging.WARNING)

DEFAULT_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"

DEFAULT_DOCUMENT_GENERATION = {"temperature": 0.3, "maxOutputTokens": 1024, "topP": 0.8, "topK": 40}
DEFAULT_TEXT_GENERATION = {"temperature": 0.7, "maxOutputTokens": 128, "topP": 0.8, "topK": 40}

HARM_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
DEFAULT_SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"} for category in HARM_CATEGORIES
]

AGENT_SYSTEM_PROMPT = (
    "You are a careful exam grading assistant. Follow the requested output "
    "format exactly and do not add text outside of it."
)


class Document(Protocol):
    """Anything with raw bytes and a MIME type, e.g. an uploaded answer file."""
    name: str
    data: bytes
    mime_type: str


class AIClientError(Exception):
    """The AI call failed; grading for this request cannot proceed."""


class AIConfigurationError(AIClientError):
    """API key or endpoint missing; raised before any network attempt."""


class AIRequestError(AIClientError):
    """The endpoint answered with a non-success status."""

    def __init__(self, status_code: int, reason: str, payload: Any):
        self.status_code = status_code
        self.payload = payload
        detail = payload if isinstance(payload, str) else json.dumps(payload)
        super().__init__(f"AI API request failed: {status_code} {reason} - {detail}")


class AIProtocolError(AIClientError):
    """The response did not have the expected shape."""


class GeminiClient:
    """Call a Gemini-style ``generateContent`` endpoint."""

    def __init__(self, api_key: Optional[str], api_url: Optional[str] = DEFAULT_API_URL,
                 document_generation: Optional[Dict[str, Any]] = None,
                 text_generation: Optional[Dict[str, Any]] = None,
                 safety_settings: Optional[List[Dict[str, str]]] = None,
                 timeout: Optional[float] = 60.0,
                 http_client: Optional[httpx.AsyncClient] = None):
        """
        Args:
            api_key: API key passed as the ``key`` query parameter
            api_url: Full URL of the generateContent endpoint
            document_generation: generationConfig used when a document is attached
            text_generation: generationConfig used for text-only prompts
            safety_settings: Per-category blocking thresholds
            timeout: httpx timeout in seconds for one request
            http_client: Shared client (mainly for tests); one is created per call otherwise
        """
        self.api_key = api_key
        self.api_url = api_url
        self.document_generation = dict(document_generation or DEFAULT_DOCUMENT_GENERATION)
        self.text_generation = dict(text_generation or DEFAULT_TEXT_GENERATION)
        self.safety_settings = list(safety_settings or DEFAULT_SAFETY_SETTINGS)
        self.timeout = timeout
        self._http_client = http_client

    @classmethod
    def from_config(cls, configs: ConfigType,
                    http_client: Optional[httpx.AsyncClient] = None) -> "GeminiClient":
        """Build a client from the ``ai`` config section, falling back to $GEMINI_API_KEY."""
        api_key = get_config("ai.api_key", configs, default=None) or os.environ.get("GEMINI_API_KEY")
        return cls(
            api_key=api_key,
            api_url=get_config("ai.api_url", configs, default=DEFAULT_API_URL),
            document_generation=get_config("ai.document_generation", configs, default=None),
            text_generation=get_config("ai.text_generation", configs, default=None),
            safety_settings=get_config("ai.safety_settings", configs, default=None),
            timeout=get_config("ai.request_timeout", configs, default=60.0),
            http_client=http_client,
        )

    def build_payload(self, prompt: str, document: Optional[Document] = None) -> Dict[str, Any]:
        """Build the JSON request body for a prompt and optional attachment."""
        parts: List[Dict[str, Any]] = [{"text": prompt}]
        if document is None:
            return {
                "contents": [{"parts": parts}],
                "generationConfig": dict(self.text_generation),
            }

        parts.append({
            "inline_data": {
                "mime_type": document.mime_type,
                "data": base64.b64encode(document.data).decode("ascii"),
            }
        })
        return {
            "contents": [{"parts": parts}],
            "generationConfig": dict(self.document_generation),
            "safetySettings": list(self.safety_settings),
        }

    async def generate(self, prompt: str, document: Optional[Document] = None) -> str:
        """
        Send a prompt (and optional document) and return the generated text.

        Raises:
            AIConfigurationError: If the API key or URL is missing
            AIRequestError: If the endpoint returns a non-success status
            AIProtocolError: If the response has no candidates[0].content.parts[0].text
            AIClientError: On transport failures
        """
        if not self.api_key or not self.api_url:
            raise AIConfigurationError(
                "AI API configuration missing. Set ai.api_key/ai.api_url in config/local.yaml "
                "or the GEMINI_API_KEY environment variable."
            )

        payload = self.build_payload(prompt, document)
        try:
            if self._http_client is not None:
                response = await self._post(self._http_client, payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._post(client, payload)
        except httpx.HTTPError as e:
            raise AIClientError(f"AI API request failed: {e}") from e

        if not response.is_success:
            try:
                error_payload = response.json()
            except ValueError:
                error_payload = response.text
            LOG.error("AI API error: %s", error_payload)
            raise AIRequestError(response.status_code, response.reason_phrase, error_payload)

        try:
            data = response.json()
        except ValueError as e:
            raise AIProtocolError("Invalid AI API response format: body is not JSON") from e

        return self.extract_text(data)

    async def _post(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> httpx.Response:
        return await client.post(
            self.api_url,
            params={"key": self.api_key},
            json=payload,
            headers={"Content-Type": "application/json"},
        )

    @staticmethod
    def extract_text(data: Any) -> str:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            LOG.error("Invalid AI API response: %s", data)
            raise AIProtocolError("Invalid AI API response format")
        if not text:
            raise AIProtocolError("Invalid AI API response format: empty text")
        return text


def create_agent(configs: ConfigType,
                 model: Optional[str] = None,
                 settings_dict: Optional[Dict[str, Any]] = None,
                 system_prompt: Optional[str] = None) -> Agent:
    """
    Create a pydantic-ai Agent configured with OpenAI models.

    Args:
        configs: Configuration dictionary (required)
        model: Model to use (overrides config value)
        settings_dict: Pydantic AI settings dict (overrides config values)
        system_prompt: System prompt for the agent (optional)

    Returns:
        Configured Agent

    Raises:
        AIConfigurationError: If no OpenAI API key is configured
    """
    api_key = get_config("agent.api_key", configs, default=None) or os.environ.get("OPENAI_API_KEY")
    organization = get_config("agent.organization", configs, default=None)
    model = model or get_config("agent.model", configs)
    base_settings = get_config("agent.pydantic_ai_settings", configs, default={}) or {}

    if not api_key:
        raise AIConfigurationError("OpenAI API key missing. Set agent.api_key in config/local.yaml.")

    os.environ['OPENAI_API_KEY'] = api_key
    if organization:
        os.environ['OPENAI_ORG_ID'] = organization

    settings_dict = base_settings | (settings_dict or {})
    model_settings = OpenAIResponsesModelSettings(**settings_dict) if settings_dict else None
    openai_model = OpenAIResponsesModel(model)
    if system_prompt:
        agent = Agent(
            model=openai_model,
            model_settings=model_settings,
            system_prompt=system_prompt,
            retries=0,
        )
    else:
        agent = Agent(
            model=openai_model,
            model_settings=model_settings,
            retries=0,
        )
    return agent


class AgentClient:
    """Adapt a pydantic-ai Agent to the ``generate(prompt, document)`` contract."""

    def __init__(self, agent: Agent):
        self.agent = agent

    async def generate(self, prompt: str, document: Optional[Document] = None) -> str:
        if document is None:
            result = await self.agent.run(prompt)
        else:
            result = await self.agent.run([
                prompt,
                BinaryContent(data=document.data, media_type=document.mime_type),
            ])

        output = result.output
        if not output:
            raise AIProtocolError("Agent returned an empty response")
        return str(output)


def create_ai_client(configs: ConfigType):
    """Build the client selected by ``ai.backend`` ("gemini" or "agent")."""
    backend = get_config("ai.backend", configs, default="gemini")
    if backend == "gemini":
        return GeminiClient.from_config(configs)
    if backend == "agent":
        return AgentClient(create_agent(configs, system_prompt=AGENT_SYSTEM_PROMPT))
    raise ValueError(f"Unknown AI backend: {backend!r} (expected 'gemini' or 'agent')")
