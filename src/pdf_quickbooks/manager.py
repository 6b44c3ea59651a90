import os

from pdf_quickbooks.classifiers.base import Classifier
from pdf_quickbooks.classifiers.llm import LLMClassifier
from pdf_quickbooks.classifiers.rules import RuleBasedClassifier
from pdf_quickbooks.core import settings
from pdf_quickbooks.logger import get_logger
from pdf_quickbooks.models import ClassificationResult, TransactionContext

logger = get_logger(__name__)


class ClassifierService:
    """Runs the classifier chain; the rule-based classifier always answers last."""

    def __init__(self, use_llm: bool = True):
        self.classifiers: list[Classifier] = []

        # 1. LLM classifier, only when an API key is configured
        api_key = os.getenv("OPENROUTER_API_KEY")
        if use_llm and api_key:
            model = os.getenv("CLASSIFICATION_MODEL", settings.DEFAULT_CLASSIFICATION_MODEL)
            base_url = os.getenv("OPENROUTER_BASE_URL")
            self.llm: LLMClassifier | None = LLMClassifier(api_key=api_key, model=model, base_url=base_url)
            self.classifiers.append(self.llm)
            logger.info(f"LLM classifier enabled: model={model}, base_url={base_url or 'default'}")
        else:
            self.llm = None
            logger.warning("OPENROUTER_API_KEY not found. Using rule-based classification only.")

        # 2. Rules (fallback)
        self.rules = RuleBasedClassifier()
        self.classifiers.append(self.rules)

    def classify(self, context: TransactionContext) -> ClassificationResult:
        for classifier in self.classifiers:
            classifier_name = classifier.__class__.__name__
            result = classifier.classify(context)
            if result:
                logger.debug(
                    f"{classifier_name} returned: '{result.transaction_type.value}' "
                    f"(confidence: {result.confidence:.2f}) for vendor '{context.vendor[:50]}'"
                )
                return result
            logger.info(f"[CLASSIFY] {classifier_name} gave no usable answer; falling back.")

        # Unreachable while the rules classifier is last in the chain.
        return self.rules.classify(context)
