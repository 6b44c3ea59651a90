from abc import ABC, abstractmethod
from datetime import datetime

from pdf_quickbooks.models import Account, Batch, BatchStatus, Extraction, UserProfile


class Store(ABC):
    """Persistence for profiles, accounts, batches and extractions.

    Operations that touch the usage ledger (:meth:`create_batch_within_limit`
    and :meth:`complete_batch`) must be atomic with respect to each other.
    """

    @abstractmethod
    def get_profile(self, user_id: str) -> UserProfile | None:
        pass

    @abstractmethod
    def save_profile(self, profile: UserProfile) -> None:
        pass

    @abstractmethod
    def add_account(self, account: Account) -> Account:
        pass

    @abstractmethod
    def get_account(self, account_id: str) -> Account | None:
        pass

    @abstractmethod
    def create_batch_within_limit(self, batch: Batch, user_id: str, limit: int) -> Batch:
        """Insert *batch* unless usage plus reserved pages would pass *limit* (raises CapacityError)."""
        pass

    @abstractmethod
    def get_batch(self, batch_id: str) -> Batch | None:
        pass

    @abstractmethod
    def complete_batch(self, batch_id: str, processed_at: datetime) -> Batch:
        """Flip processing -> completed and add the batch's pages to the owner's usage, once."""
        pass

    @abstractmethod
    def set_batch_status(self, batch_id: str, status: BatchStatus, *, expected: BatchStatus) -> Batch:
        pass

    @abstractmethod
    def increment_batch_counter(self, batch_id: str, counter: str) -> Batch:
        pass

    @abstractmethod
    def add_extraction(self, extraction: Extraction) -> Extraction:
        """Attach to a processing batch; never past its declared file count (raises BatchStateError)."""
        pass

    @abstractmethod
    def get_extraction(self, extraction_id: str) -> Extraction | None:
        pass

    @abstractmethod
    def list_extractions(self, batch_id: str) -> list[Extraction]:
        pass

    @abstractmethod
    def update_extraction_field(self, extraction_id: str, field: str, value: str) -> Extraction:
        pass
