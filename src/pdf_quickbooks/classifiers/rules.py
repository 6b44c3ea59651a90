from pdf_quickbooks.models import (
    UNKNOWN,
    ClassificationResult,
    TransactionContext,
    TransactionType,
)

from .base import Classifier

INCOME_KEYWORDS = ("payment received", "invoice", "deposit", "revenue", "sale", "income")
EXPENSE_KEYWORDS = ("purchase", "payment to", "bill", "expense", "cost", "fee")


def _known(value: str | None) -> str:
    text = (value or "").strip()
    if text.lower() == UNKNOWN.lower():
        return ""
    return text.lower()


def vendor_matches_account(vendor: str | None, account_name: str | None) -> bool:
    vendor_lower = _known(vendor)
    account_lower = _known(account_name)
    # An empty side would be a substring of everything.
    if not vendor_lower or not account_lower:
        return False
    return vendor_lower in account_lower or account_lower in vendor_lower


class RuleBasedClassifier(Classifier):
    """Deterministic fallback; always returns a result.

    Checks run in priority order: account-name match, income keywords,
    expense keywords, then a low-confidence expense default since receipts
    are mostly purchases.
    """

    def classify(self, context: TransactionContext) -> ClassificationResult:
        vendor_lower = (context.vendor or "").lower()
        description_lower = (context.description or "").lower()

        if vendor_matches_account(context.vendor, context.account_name):
            return ClassificationResult(
                transaction_type=TransactionType.INCOME,
                confidence=0.7,
                reasoning="Vendor name matches account name - likely client payment",
                source="rules",
            )

        if _contains_any(INCOME_KEYWORDS, description_lower, vendor_lower):
            return ClassificationResult(
                transaction_type=TransactionType.INCOME,
                confidence=0.6,
                reasoning="Contains income-related keywords",
                source="rules",
            )

        if _contains_any(EXPENSE_KEYWORDS, description_lower, vendor_lower):
            return ClassificationResult(
                transaction_type=TransactionType.EXPENSE,
                confidence=0.6,
                reasoning="Contains expense-related keywords",
                source="rules",
            )

        return ClassificationResult(
            transaction_type=TransactionType.EXPENSE,
            confidence=0.3,
            reasoning="Default classification - no clear indicators found",
            source="rules",
        )


def _contains_any(keywords: tuple[str, ...], *texts: str) -> bool:
    return any(keyword in text for keyword in keywords for text in texts)
