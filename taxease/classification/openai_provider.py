"""OpenAI-based receipt classification provider.

Sends the receipt image (or PDF) straight to a multimodal chat model and
reads the structured result back through function calling.

Includes retry logic with exponential backoff for transient API errors. The
retry covers a single round trip only; a failed receipt is never re-queued.
"""

import base64
import json
import logging
import os
from typing import Any

import openai
from openai import OpenAI
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from taxease.classification.base import ClassificationResult, ReceiptClassifier
from taxease.classification.prompts import (
    SYSTEM_INSTRUCTION,
    USER_INSTRUCTION,
    receipt_function_schema,
)
from taxease.shared.config import Settings
from taxease.shared.models import UploadedFile

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class OpenAIReceiptClassifier(ReceiptClassifier):
    """OpenAI-based provider using a vision-capable chat model.

    Requires OPENAI_API_KEY environment variable.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize OpenAI classification provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._client: OpenAI | None = None

    @property
    def provider_name(self) -> str:
        return "openai"

    def is_available(self) -> bool:
        """Check if OpenAI API key is configured.

        Returns:
            True if OPENAI_API_KEY environment variable is set
        """
        return os.getenv("OPENAI_API_KEY") is not None

    def classify(self, document: UploadedFile) -> ClassificationResult:
        """Classify one receipt using OpenAI.

        Args:
            document: Receipt image or PDF

        Returns:
            ClassificationResult with extracted fields or error, provider='openai'
        """
        # Check for API key at runtime
        if not self.is_available():
            return self.failure("OPENAI_API_KEY environment variable not set")

        problem = self.check_document(document)
        if problem:
            return self.failure(problem)

        try:
            # Initialize client if not already done
            api_key = os.getenv("OPENAI_API_KEY")
            if self._client is None or self._client.api_key != api_key:
                self._client = OpenAI(
                    api_key=api_key,
                    timeout=self.settings.classification_timeout,
                    max_retries=0,  # tenacity owns retries
                )

            response = self._call_openai_with_retry(self._build_content(document))

            message = response.choices[0].message
            if message.function_call is None:
                return self.failure("No function call in API response")

            payload = json.loads(message.function_call.arguments)
            return self.result_from_payload(payload)

        except Exception as e:
            logger.error(f"OpenAI classification failed for {document.filename}: {e}")
            return self.failure(f"Classification failed: {str(e)}")

    def _call_openai_with_retry(self, content: list[dict[str, Any]]) -> Any:
        """Call OpenAI API, retrying transient errors with exponential backoff.

        Args:
            content: User message parts (instruction plus the document)

        Returns:
            OpenAI API response

        Raises:
            Exception: After all retry attempts are exhausted
        """
        if self._client is None:
            raise RuntimeError("OpenAI client not initialized")

        for attempt in Retrying(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            wait=wait_exponential_jitter(initial=1, max=60),
            stop=stop_after_attempt(self.settings.classification_max_attempts),
            reraise=True,
        ):
            with attempt:
                return self._client.chat.completions.create(  # type: ignore[call-overload]
                    model=self.settings.openai_model,
                    messages=[
                        {"role": "system", "content": SYSTEM_INSTRUCTION},
                        {"role": "user", "content": content},
                    ],
                    functions=[receipt_function_schema()],
                    function_call={"name": "classify_receipt"},
                    temperature=0.1,  # Low temperature for factual extraction
                )
        raise RuntimeError("Retry loop exited without a response")

    def _build_content(self, document: UploadedFile) -> list[dict[str, Any]]:
        """Build the user message parts carrying the document inline.

        Images go as base64 data URLs, PDFs as inline file parts.
        """
        media_type = document.resolved_media_type
        data_url = f"data:{media_type};base64,{base64.b64encode(document.content).decode('ascii')}"

        if media_type == "application/pdf":
            part: dict[str, Any] = {
                "type": "file",
                "file": {"filename": document.filename, "file_data": data_url},
            }
        else:
            part = {"type": "image_url", "image_url": {"url": data_url}}

        return [{"type": "text", "text": USER_INSTRUCTION}, part]
