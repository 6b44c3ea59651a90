import os

from openai import OpenAI
from rapidfuzz import fuzz

from pdf_quickbooks.core import settings
from pdf_quickbooks.domain.ai_json import extract_json_object
from pdf_quickbooks.logger import get_logger
from pdf_quickbooks.models import ClassificationResult, TransactionContext, TransactionType

from .base import Classifier

logger = get_logger(__name__)

DEFAULT_CONFIDENCE = 0.5
DEFAULT_REASONING = "AI classification"

APP_HEADERS = {
    "HTTP-Referer": "https://pdf-to-quickbooks.vercel.app",
    "X-Title": "PDF to QuickBooks",
}


def build_prompt(context: TransactionContext) -> str:
    similarity = fuzz.token_set_ratio(context.vendor.lower(), context.account_name.lower())
    return f"""Analyze this transaction and determine if it's INCOME or EXPENSE.

Account Name: {context.account_name}
Vendor: {context.vendor}
Description: {context.description}
Amount: {context.amount}
Vendor/account name similarity: {similarity:.0f}%

Context: This transaction is being processed under the account "{context.account_name}".

Important:
- Vendor names may not match exactly (e.g., "Amazon" vs "Amazon.com Inc" vs "AMZN")
- Consider if this is money coming IN (income) or going OUT (expense)
- If vendor is similar to account name, it's likely income (client paying us)
- If vendor is different from account name, it's likely expense (us paying vendor)
- Look for keywords: "payment received", "invoice", "deposit" (income) vs "purchase", "bill", "expense", "fee" (expense)

Return a JSON object with this exact structure:
{{
  "transaction_type": "income" or "expense",
  "confidence": 0.0 to 1.0,
  "reasoning": "brief explanation"
}}"""


def parse_classification(content: str | None) -> ClassificationResult | None:
    """Validate a model reply; None means the reply is unusable and rules should decide."""
    payload = extract_json_object(content)
    if payload is None:
        logger.warning("[CLASSIFY] No JSON object found in model reply.")
        return None

    raw_type = payload.get("transaction_type")
    if raw_type not in (TransactionType.INCOME.value, TransactionType.EXPENSE.value):
        logger.warning("[CLASSIFY] Invalid transaction_type in model reply: %r", raw_type)
        return None

    confidence = payload.get("confidence")
    if (
        isinstance(confidence, bool)
        or not isinstance(confidence, (int, float))
        or not 0.0 <= confidence <= 1.0
    ):
        confidence = DEFAULT_CONFIDENCE

    reasoning = payload.get("reasoning")
    if not reasoning:
        reasoning = DEFAULT_REASONING

    return ClassificationResult(
        transaction_type=TransactionType(raw_type),
        confidence=float(confidence),
        reasoning=str(reasoning),
        source="llm",
    )


class LLMClassifier(Classifier):
    def __init__(
        self,
        api_key: str | None = None,
        model: str = settings.DEFAULT_CLASSIFICATION_MODEL,
        base_url: str | None = None,
    ):
        self.client = OpenAI(
            api_key=api_key or os.getenv("OPENROUTER_API_KEY"),
            base_url=base_url or os.getenv("OPENROUTER_BASE_URL") or settings.DEFAULT_OPENROUTER_BASE_URL,
            timeout=settings.EXTRACTION_TIMEOUT,
            max_retries=0,
        )
        self.model = model

    def classify(self, context: TransactionContext) -> ClassificationResult | None:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": build_prompt(context)}],
                max_tokens=200,
                temperature=0.1,
                extra_headers=APP_HEADERS,
            )
        except Exception as e:
            logger.error(f"[CLASSIFY] LLM error: {e}")
            return None

        content = self._extract_message_text(response)
        if not content:
            logger.warning("[CLASSIFY] Empty model reply.")
            return None
        logger.debug("[CLASSIFY] Model reply: %s", content)
        return parse_classification(content)

    @staticmethod
    def _extract_message_text(response: object) -> str | None:
        choices = getattr(response, "choices", None)
        if not choices:
            return None
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if isinstance(content, str):
            return content
        return None
