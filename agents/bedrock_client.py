"""AWS Bedrock client wrapper for AI tutor model calls."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    TokenRetrievalError,
    CredentialRetrievalError,
    EndpointConnectionError,
)

from config import get_settings
from core.errors import TutorServiceError

logger = logging.getLogger(__name__)


AI_RATE_LIMIT_RETRY_AFTER = 30


@dataclass
class ModelReply:
    """Text returned by the model plus usage reported by Bedrock."""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.usage.get("input_tokens", 0) + self.usage.get("output_tokens", 0)


class BedrockClient:
    """
    AWS Bedrock client for Claude model interactions.

    Handles authentication, request formatting, response parsing and
    classification of model failures into ``TutorServiceError``.
    """

    # Token/credential expiry related exceptions
    TOKEN_EXPIRY_ERRORS = (
        'ExpiredToken',
        'ExpiredTokenException',
        'TokenRefreshRequired',
        'InvalidIdentityToken',
        'UnauthorizedException',
    )

    THROTTLING_ERRORS = (
        'ThrottlingException',
        'TooManyRequestsException',
        'ServiceQuotaExceededException',
    )

    def __init__(
        self,
        model_id: Optional[str] = None,
        region: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        client=None
    ):
        """
        Initialize Bedrock client.

        Args:
            model_id: Bedrock model ID (defaults to config)
            region: AWS region (defaults to config)
            temperature: Sampling temperature
            max_tokens: Maximum tokens in response
            client: Pre-built bedrock-runtime client (tests)
        """
        settings = get_settings()

        self.model_id = model_id or settings.bedrock_model_id
        self.region = region or settings.aws_region
        self.profile = settings.aws_profile
        self.temperature = temperature if temperature is not None else settings.tutor_temperature
        self.max_tokens = max_tokens or settings.max_tokens

        self._client = client
        if self._client is None:
            self._create_client()

        logger.info(f"Initialized Bedrock client for {self.model_id} in {self.region}")

    def _create_client(self):
        """Create a fresh boto3 client with new credentials."""
        session = boto3.Session(profile_name=self.profile) if self.profile else boto3.Session()

        config = Config(
            region_name=self.region,
            retries={"max_attempts": 3, "mode": "adaptive"}
        )

        self._client = session.client(
            "bedrock-runtime",
            config=config
        )

        logger.info("Created new Bedrock client with fresh credentials")

    def _is_token_expiry_error(self, error: Exception) -> bool:
        """Check if the error is related to token/credential expiry."""
        if isinstance(error, (TokenRetrievalError, CredentialRetrievalError)):
            return True

        if isinstance(error, ClientError):
            error_code = error.response.get('Error', {}).get('Code', '')
            return error_code in self.TOKEN_EXPIRY_ERRORS

        return False

    def _classify_error(self, error: Exception) -> TutorServiceError:
        """Map a Bedrock failure onto the error surfaced to API callers."""
        if isinstance(error, ClientError):
            error_code = error.response.get('Error', {}).get('Code', '')
            if error_code in self.THROTTLING_ERRORS:
                return TutorServiceError(
                    "AI service rate limit exceeded. Please try again later.",
                    code="AI_RATE_LIMIT",
                    status_code=429,
                    retry_after=AI_RATE_LIMIT_RETRY_AFTER
                )
        if isinstance(error, EndpointConnectionError):
            return TutorServiceError("AI service is unreachable. Please try again later.")
        return TutorServiceError("AI service is temporarily unavailable.")

    def _build_body(
        self,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int]
    ) -> Dict[str, Any]:
        body = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
            "messages": messages
        }

        if system_prompt:
            body["system"] = system_prompt
        return body

    def _invoke_sync(self, body: Dict[str, Any]) -> ModelReply:
        response = self._client.invoke_model(
            modelId=self.model_id,
            body=json.dumps(body)
        )

        response_body = json.loads(response["body"].read())

        # Extract text from Claude response format
        if "content" in response_body:
            text = "".join(
                block.get("text", "") for block in response_body["content"]
                if block.get("type", "text") == "text"
            )
        else:
            text = response_body.get("completion", "")

        return ModelReply(
            content=text,
            model=self.model_id,
            usage=response_body.get("usage", {})
        )

    async def invoke_messages(
        self,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> ModelReply:
        """
        Invoke the model with a full user/assistant message list.

        Args:
            messages: Alternating user/assistant messages, ending with user
            system_prompt: Optional system prompt
            temperature: Override temperature
            max_tokens: Override max tokens

        Returns:
            ModelReply with text and token usage

        Raises:
            TutorServiceError: when the model cannot produce a reply
        """
        body = self._build_body(messages, system_prompt, temperature, max_tokens)

        max_retries = 2
        for attempt in range(max_retries):
            try:
                return await asyncio.to_thread(self._invoke_sync, body)
            except Exception as e:
                if self._is_token_expiry_error(e) and attempt < max_retries - 1:
                    logger.warning(f"Token expiry detected on attempt {attempt + 1}, refreshing credentials...")
                    self._create_client()
                    continue
                logger.error(f"Bedrock invocation failed: {e}")
                raise self._classify_error(e) from e

        raise TutorServiceError("AI service is temporarily unavailable.")

    async def invoke(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> ModelReply:
        """Invoke the model with a single user prompt."""
        return await self.invoke_messages(
            messages=[{"role": "user", "content": prompt}],
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens
        )

    async def invoke_with_json_output(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Invoke and parse JSON response.

        Returns:
            Parsed JSON dictionary, or ``raw_response``/``parse_error``
            when the model answered with something else
        """
        reply = await self.invoke(
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens
        )
        return parse_json_reply(reply.content)


def parse_json_reply(response: str) -> Dict[str, Any]:
    """Extract a JSON object from a model reply, tolerating code fences."""
    try:
        if "```json" in response:
            start = response.index("```json") + 7
            end = response.index("```", start)
            json_str = response[start:end].strip()
        elif "```" in response:
            start = response.index("```") + 3
            end = response.index("```", start)
            json_str = response[start:end].strip()
        else:
            json_str = response.strip()

        return json.loads(json_str)

    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(f"Failed to parse JSON response: {e}")
        logger.debug(f"Raw response: {response}")
        return {"raw_response": response, "parse_error": str(e)}
