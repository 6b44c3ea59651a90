from abc import ABC, abstractmethod

from pdf_quickbooks.models import ClassificationResult, TransactionContext


class Classifier(ABC):
    @abstractmethod
    def classify(self, context: TransactionContext) -> ClassificationResult | None:
        """Decide income vs expense, or return None to defer to the next classifier."""
        pass
