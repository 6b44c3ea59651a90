import asyncio
import base64
import os
from typing import Any

import httpx

from pdf_quickbooks.core import settings
from pdf_quickbooks.errors import ExtractionError
from pdf_quickbooks.logger import get_logger

logger = get_logger(__name__)

APP_HEADERS = {
    "HTTP-Referer": "https://pdf-to-quickbooks.vercel.app",
    "X-Title": "PDF to QuickBooks",
}


class OpenRouterClient:
    """Minimal async client for OpenRouter's chat completions with PDF attachments."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self.api_key = api_key or os.getenv("OPENROUTER_API_KEY")
        self.base_url = (
            base_url or os.getenv("OPENROUTER_BASE_URL") or settings.DEFAULT_OPENROUTER_BASE_URL
        ).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.EXTRACTION_TIMEOUT
        self._client = client
        self._client_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            **APP_HEADERS,
        }

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        client = self._client
        if client is not None and not client.is_closed:
            return client

        async with self._client_lock:
            client = self._client
            if client is None or client.is_closed:
                client = httpx.AsyncClient()
                self._client = client
            return client

    async def complete_with_pdf(
        self,
        *,
        model: str,
        prompt: str,
        filename: str,
        content: bytes,
        pdf_engine: str | None = None,
        max_tokens: int = 500,
        temperature: float = 0.1,
    ) -> str:
        """Send one PDF plus a prompt and return the model's text reply."""
        if not self.configured:
            raise ExtractionError("AI extraction service is not configured")

        encoded = base64.b64encode(content).decode("ascii")
        body: dict[str, Any] = {
            "model": model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {
                            "type": "file",
                            "file": {
                                "filename": filename,
                                "file_data": f"data:application/pdf;base64,{encoded}",
                            },
                        },
                    ],
                }
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if pdf_engine:
            body["plugins"] = [{"id": "file-parser", "pdf": {"engine": pdf_engine}}]

        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers=self.headers,
                json=body,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "[EXTRACT] OpenRouter returned %s: %s",
                exc.response.status_code,
                exc.response.text[:500],
            )
            raise ExtractionError("Failed to process PDF with AI service") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("[EXTRACT] OpenRouter request failed: %s", exc)
            raise ExtractionError("Failed to process PDF with AI service") from exc

        text = _message_text(data)
        if not text:
            raise ExtractionError("No data extracted from PDF")
        return text


def _message_text(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message") or {}
    content = message.get("content")
    if isinstance(content, str):
        return content
    # Some providers return a list of content blocks.
    if isinstance(content, list):
        parts = [
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") in {"text", "output_text"}
        ]
        return "".join(parts) or None
    return None
