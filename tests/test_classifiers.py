from collections.abc import Generator
from unittest.mock import MagicMock, patch

import pytest

from pdf_quickbooks.classifiers.llm import LLMClassifier, build_prompt, parse_classification
from pdf_quickbooks.classifiers.rules import RuleBasedClassifier, vendor_matches_account
from pdf_quickbooks.core import settings
from pdf_quickbooks.manager import ClassifierService
from pdf_quickbooks.models import TransactionContext, TransactionType


def make_context(vendor: str, description: str = "Unknown", account_name: str = "Smith Consulting") -> TransactionContext:
    return TransactionContext(vendor=vendor, description=description, amount="100", account_name=account_name)


# Rules

def test_vendor_matching_account_is_income() -> None:
    result = RuleBasedClassifier().classify(make_context("Smith Consulting LLC", "Monthly purchase"))
    assert result.transaction_type == TransactionType.INCOME
    assert result.confidence == 0.7
    assert result.source == "rules"


def test_income_keywords_beat_expense_keywords() -> None:
    result = RuleBasedClassifier().classify(make_context("Acme", "Invoice payment, includes fee"))
    assert result.transaction_type == TransactionType.INCOME
    assert result.confidence == 0.6


def test_expense_keywords() -> None:
    result = RuleBasedClassifier().classify(make_context("City Power", "Electric bill"))
    assert result.transaction_type == TransactionType.EXPENSE
    assert result.confidence == 0.6


def test_default_is_low_confidence_expense() -> None:
    result = RuleBasedClassifier().classify(make_context("Staples", "Paper"))
    assert result.transaction_type == TransactionType.EXPENSE
    assert result.confidence == 0.3


def test_unknown_or_empty_vendor_never_matches_account() -> None:
    assert not vendor_matches_account("Unknown", "Smith Consulting")
    assert not vendor_matches_account("", "Smith Consulting")
    assert not vendor_matches_account("Staples", "")
    assert vendor_matches_account("smith consulting", "Smith Consulting")
    result = RuleBasedClassifier().classify(make_context("Unknown", "Unknown"))
    assert result.confidence == 0.3


# LLM reply parsing

def test_parse_classification_valid() -> None:
    result = parse_classification('{"transaction_type": "income", "confidence": 0.92, "reasoning": "client paid"}')
    assert result is not None
    assert result.transaction_type == TransactionType.INCOME
    assert result.confidence == 0.92
    assert result.reasoning == "client paid"
    assert result.source == "llm"


def test_parse_classification_defaults_bad_confidence_and_reasoning() -> None:
    result = parse_classification('Answer: {"transaction_type": "expense", "confidence": 7}')
    assert result is not None
    assert result.confidence == 0.5
    assert result.reasoning == "AI classification"

    result = parse_classification('{"transaction_type": "expense", "confidence": true}')
    assert result is not None
    assert result.confidence == 0.5


@pytest.mark.parametrize(
    "content",
    [
        None,
        "I think it's income",
        '{"transaction_type": "INCOME", "confidence": 0.9}',
        '{"transaction_type": "transfer", "confidence": 0.9}',
        '{"confidence": 0.9}',
    ],
)
def test_parse_classification_rejects_unusable_replies(content: str | None) -> None:
    assert parse_classification(content) is None


def test_prompt_mentions_account_and_vendor() -> None:
    prompt = build_prompt(make_context("Smith Consulting", "Retainer"))
    assert 'Account Name: Smith Consulting' in prompt
    assert "Vendor: Smith Consulting" in prompt
    assert "similarity: 100%" in prompt


# LLM classifier with a mocked client

@pytest.fixture
def mock_openai_client() -> Generator[MagicMock, None, None]:
    with patch("pdf_quickbooks.classifiers.llm.OpenAI") as mock:
        yield mock


def test_llm_classify(mock_openai_client: MagicMock) -> None:
    mock_instance = mock_openai_client.return_value
    mock_completion = MagicMock()
    mock_completion.choices[0].message.content = (
        '```json\n{"transaction_type": "expense", "confidence": 0.8, "reasoning": "office supplies"}\n```'
    )
    mock_instance.chat.completions.create.return_value = mock_completion

    classifier = LLMClassifier(api_key="sk-fake", model="deepseek/deepseek-chat")
    result = classifier.classify(make_context("Staples", "Paper"))

    assert result is not None
    assert result.transaction_type == TransactionType.EXPENSE
    assert result.confidence == 0.8
    assert result.source == "llm"

    mock_instance.chat.completions.create.assert_called_once()
    kwargs = mock_instance.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "deepseek/deepseek-chat"
    assert kwargs["max_tokens"] == 200
    assert kwargs["extra_headers"]["X-Title"] == "PDF to QuickBooks"


def test_llm_client_is_bounded(mock_openai_client: MagicMock) -> None:
    LLMClassifier(api_key="sk-fake")

    kwargs = mock_openai_client.call_args.kwargs
    assert kwargs["timeout"] == settings.EXTRACTION_TIMEOUT
    assert kwargs["max_retries"] == 0


def test_llm_classify_returns_none_on_error(mock_openai_client: MagicMock) -> None:
    mock_openai_client.return_value.chat.completions.create.side_effect = RuntimeError("boom")
    classifier = LLMClassifier(api_key="sk-fake")
    assert classifier.classify(make_context("Staples")) is None


# Classifier chain

def test_service_without_key_uses_rules(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    service = ClassifierService()
    assert service.llm is None
    result = service.classify(make_context("Staples", "Office purchase"))
    assert result.source == "rules"
    assert result.transaction_type == TransactionType.EXPENSE


def test_service_falls_back_when_llm_has_no_answer(
    mock_openai_client: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-fake")
    mock_completion = MagicMock()
    mock_completion.choices[0].message.content = "not sure"
    mock_openai_client.return_value.chat.completions.create.return_value = mock_completion

    service = ClassifierService()
    assert service.llm is not None
    result = service.classify(make_context("Smith Consulting", "Retainer"))

    assert result.source == "rules"
    assert result.transaction_type == TransactionType.INCOME
    assert result.confidence == 0.7


def test_service_prefers_llm_answer(
    mock_openai_client: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-fake")
    mock_completion = MagicMock()
    mock_completion.choices[0].message.content = '{"transaction_type": "income", "confidence": 0.95}'
    mock_openai_client.return_value.chat.completions.create.return_value = mock_completion

    result = ClassifierService().classify(make_context("Staples", "Refund deposit"))
    assert result.source == "llm"
    assert result.confidence == 0.95
