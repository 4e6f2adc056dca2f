"""Client side of the external content validator.

The validator decides whether a suggestion is acceptable and, when it is,
returns the full updated content. Its response is parsed strictly: anything
that does not match ``ValidationResult`` is an ExternalServiceError, never a
best-effort salvage of the body.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool
from pydantic import ValidationError as SchemaError

from palimpsest.db.models.enums import SuggestionKind
from palimpsest.lib.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class ValidationRequest(BaseModel):
    """Payload sent to the validator."""

    title: str
    current_content: str
    suggestion_kind: SuggestionKind
    suggestion_details: str
    requester_id: str


class ValidationResult(BaseModel):
    """Validator verdict. camelCase keys are accepted as aliases."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    is_valid: StrictBool = Field(validation_alias=AliasChoices("is_valid", "isValid"))
    updated_content: str | None = Field(
        default=None, validation_alias=AliasChoices("updated_content", "updatedContent")
    )
    diff: str | None = None
    description: str | None = None
    reason: str | None = None


class ContentValidator(Protocol):
    """Anything that can judge a suggestion against the current content."""

    async def validate(self, request: ValidationRequest) -> ValidationResult: ...


class HttpContentValidator:
    """ContentValidator backed by a JSON-over-HTTP service."""

    operation = "validate_suggestion"

    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> "HttpContentValidator":
        return cls(
            settings.validator.url,
            api_key=settings.validator.api_key,
            timeout=settings.validator.timeout_seconds,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _error(self, message: str, request: ValidationRequest, **details) -> ExternalServiceError:
        return ExternalServiceError(
            message,
            operation=self.operation,
            actor_id=request.requester_id,
            validator_url=self.url,
            **details,
        )

    async def validate(self, request: ValidationRequest) -> ValidationResult:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.url,
                    json=request.model_dump(mode="json"),
                    headers=self._headers(),
                )
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise self._error("Content validator timed out", request) from exc
        except httpx.HTTPStatusError as exc:
            raise self._error(
                "Content validator returned an error status",
                request,
                status=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise self._error("Content validator is unreachable", request) from exc

        try:
            result = ValidationResult.model_validate_json(response.content)
        except SchemaError as exc:
            logger.warning("Malformed validator response from %s: %s", self.url, exc.errors(include_url=False))
            raise self._error("Content validator returned a malformed response", request) from exc

        return result
