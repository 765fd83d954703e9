"""Ollama-based receipt classification provider for self-hosted inference.

Uses a vision model on a local Ollama server, so receipts never leave the
machine. Ollama accepts images only; PDFs are rejected up front.

Requires Ollama server running on localhost:11434.
See: https://ollama.ai/
"""

import base64
import json
import logging
import re
from typing import Any

import httpx
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from taxease.classification.base import ClassificationResult, ReceiptClassifier
from taxease.classification.prompts import OUTPUT_FIELDS, SYSTEM_INSTRUCTION, USER_INSTRUCTION
from taxease.shared.config import Settings
from taxease.shared.models import UploadedFile

logger = logging.getLogger(__name__)


class OllamaReceiptClassifier(ReceiptClassifier):
    """Ollama-based provider for self-hosted vision LLM inference.

    Supports vision models like Llama 3.2 Vision, LLaVA, Qwen2.5-VL.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize Ollama classification provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._base_url = settings.ollama_base_url
        self._model = settings.ollama_model
        self._client = httpx.Client(timeout=settings.classification_timeout)

    @property
    def provider_name(self) -> str:
        return "ollama"

    def is_available(self) -> bool:
        """Check if Ollama server is running and model is available.

        Returns:
            True if Ollama server responds and model is loaded
        """
        try:
            response = self._client.get(f"{self._base_url}/api/tags")
            if response.status_code != 200:
                return False
            models = response.json().get("models", [])
            model_names = [m.get("name", "").split(":")[0] for m in models]
            return self._model.split(":")[0] in model_names
        except httpx.HTTPError:
            return False

    def supports_media_type(self, media_type: str) -> bool:
        return media_type.startswith("image/")

    def classify(self, document: UploadedFile) -> ClassificationResult:
        """Classify one receipt image using Ollama.

        Args:
            document: Receipt image

        Returns:
            ClassificationResult with extracted fields or error
        """
        problem = self.check_document(document)
        if problem:
            return self.failure(problem)

        try:
            image = base64.b64encode(document.content).decode("ascii")
            response_text = self._call_ollama_with_retry(self._build_prompt(), image)
            payload = self._parse_json_response(response_text)
            return self.result_from_payload(payload)

        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse JSON from Ollama response: {e}")
            return self.failure(f"JSON parsing failed: {str(e)}")
        except Exception as e:
            logger.error(f"Ollama classification failed for {document.filename}: {e}")
            return self.failure(f"Classification failed: {str(e)}")

    def _call_ollama_with_retry(self, prompt: str, image: str) -> str:
        """Call Ollama API with retry logic for transient errors.

        Args:
            prompt: Classification prompt for the LLM
            image: Base64-encoded receipt image

        Returns:
            Raw response text from Ollama

        Raises:
            httpx.HTTPError: After all retry attempts exhausted
        """
        for attempt in Retrying(
            retry=retry_if_exception_type((httpx.TransportError, httpx.HTTPStatusError)),
            wait=wait_exponential_jitter(initial=1, max=30),
            stop=stop_after_attempt(self.settings.classification_max_attempts),
            reraise=True,
        ):
            with attempt:
                response = self._client.post(
                    f"{self._base_url}/api/generate",
                    json={
                        "model": self._model,
                        "system": SYSTEM_INSTRUCTION,
                        "prompt": prompt,
                        "images": [image],
                        "format": "json",
                        "stream": False,
                        "options": {
                            "temperature": 0.1,
                            "num_predict": 1024,
                        },
                    },
                )
                response.raise_for_status()
                result: str = response.json().get("response", "")
                return result
        raise RuntimeError("Retry loop exited without a response")

    def _parse_json_response(self, response_text: str) -> dict[str, Any]:
        """Extract and parse JSON from LLM response.

        Handles common LLM quirks like markdown code blocks.

        Raises:
            json.JSONDecodeError: If no valid JSON object found
        """
        json_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", response_text)
        if json_match:
            candidate = json_match.group(1).strip()
        else:
            json_match = re.search(r"\{[\s\S]*\}", response_text)
            candidate = json_match.group(0) if json_match else response_text.strip()

        result = json.loads(candidate)
        if not isinstance(result, dict):
            raise json.JSONDecodeError("Expected a JSON object", candidate, 0)
        return result

    def _build_prompt(self) -> str:
        return f"""{USER_INSTRUCTION}

Return ONLY valid JSON with these keys:
{OUTPUT_FIELDS}"""
