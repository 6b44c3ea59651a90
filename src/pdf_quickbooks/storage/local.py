import json
import os
import threading
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from pdf_quickbooks.domain.timefmt import (
    as_utc,
    first_day_of_next_month,
    first_day_of_previous_month,
    utcnow,
)
from pdf_quickbooks.errors import BatchStateError, CapacityError, NotFoundError
from pdf_quickbooks.logger import get_logger
from pdf_quickbooks.models import Account, Batch, BatchStatus, Extraction, UserProfile

from .base import Store

logger = get_logger(__name__)

BATCH_COUNTERS = ("edit_count", "download_count")


class LocalStore(Store):
    """Lock-guarded in-process store, optionally mirrored to a JSON file."""

    def __init__(
        self,
        data_path: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.data_path = data_path
        self.clock = clock
        self._lock = threading.RLock()
        self.profiles: dict[str, UserProfile] = {}
        self.accounts: dict[str, Account] = {}
        self.batches: dict[str, Batch] = {}
        self.extractions: dict[str, Extraction] = {}
        self.load()

    def load(self) -> None:
        if not self.data_path or not os.path.exists(self.data_path):
            return
        try:
            with open(self.data_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("[STORE] %s is not valid JSON; starting empty.", self.data_path)
            return

        with self._lock:
            self.profiles = {k: UserProfile.model_validate(v) for k, v in data.get("profiles", {}).items()}
            self.accounts = {k: Account.model_validate(v) for k, v in data.get("accounts", {}).items()}
            self.batches = {k: Batch.model_validate(v) for k, v in data.get("batches", {}).items()}
            self.extractions = {
                k: Extraction.model_validate(v) for k, v in data.get("extractions", {}).items()
            }

    def save(self) -> None:
        if not self.data_path:
            return
        payload: dict[str, Any] = {
            "profiles": {k: v.model_dump(mode="json") for k, v in self.profiles.items()},
            "accounts": {k: v.model_dump(mode="json") for k, v in self.accounts.items()},
            "batches": {k: v.model_dump(mode="json") for k, v in self.batches.items()},
            "extractions": {k: v.model_dump(mode="json") for k, v in self.extractions.items()},
        }
        tmp_path = f"{self.data_path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_path, self.data_path)

    # Profiles / usage ledger

    def _roll_usage(self, profile: UserProfile) -> None:
        """Reset monthly usage once the reset date has passed. Caller holds the lock."""
        today = self.clock().date()
        if profile.usage_reset_date is None:
            profile.usage_reset_date = first_day_of_next_month(today)
        elif today >= profile.usage_reset_date:
            logger.info(
                "[USAGE] Resetting monthly usage for %s (was %s pages).",
                profile.id,
                profile.monthly_usage,
            )
            profile.monthly_usage = 0
            profile.usage_reset_date = first_day_of_next_month(today)

    def get_profile(self, user_id: str) -> UserProfile | None:
        with self._lock:
            profile = self.profiles.get(user_id)
            if profile is None:
                return None
            self._roll_usage(profile)
            return profile.model_copy(deep=True)

    def save_profile(self, profile: UserProfile) -> None:
        with self._lock:
            self.profiles[profile.id] = profile.model_copy(deep=True)
            self.save()

    def _reserved_pages(self, user_id: str, since: date) -> int:
        """Pages of the user's processing batches created on or after *since*."""
        return sum(
            batch.total_pages
            for batch in self.batches.values()
            if batch.status == BatchStatus.PROCESSING
            and as_utc(batch.created_at).date() >= since
            and self.accounts.get(batch.account_id) is not None
            and self.accounts[batch.account_id].user_id == user_id
        )

    # Accounts

    def add_account(self, account: Account) -> Account:
        with self._lock:
            self.accounts[account.id] = account.model_copy(deep=True)
            self.save()
            return account

    def get_account(self, account_id: str) -> Account | None:
        with self._lock:
            account = self.accounts.get(account_id)
            return account.model_copy(deep=True) if account else None

    # Batches

    def create_batch_within_limit(self, batch: Batch, user_id: str, limit: int) -> Batch:
        with self._lock:
            profile = self.profiles.get(user_id)
            if profile is None:
                raise NotFoundError("User profile not found")
            self._roll_usage(profile)

            # Batches still processing in this usage period hold their pages.
            # Older ones were abandoned before the last reset and hold nothing.
            period_start = first_day_of_previous_month(profile.usage_reset_date)
            reserved = self._reserved_pages(user_id, period_start)
            if profile.monthly_usage + reserved + batch.total_pages > limit:
                raise CapacityError(
                    current_usage=profile.monthly_usage,
                    reserved_pages=reserved,
                    requested_pages=batch.total_pages,
                    limit=limit,
                )

            self.batches[batch.id] = batch.model_copy(deep=True)
            self.save()
            return batch

    def get_batch(self, batch_id: str) -> Batch | None:
        with self._lock:
            batch = self.batches.get(batch_id)
            return batch.model_copy(deep=True) if batch else None

    def _require_batch(self, batch_id: str) -> Batch:
        batch = self.batches.get(batch_id)
        if batch is None:
            raise NotFoundError("Batch not found")
        return batch

    def complete_batch(self, batch_id: str, processed_at: datetime) -> Batch:
        with self._lock:
            batch = self._require_batch(batch_id)
            if batch.status != BatchStatus.PROCESSING:
                raise BatchStateError("Batch is not in processing status", status=batch.status.value)

            account = self.accounts.get(batch.account_id)
            profile = self.profiles.get(account.user_id) if account else None
            if profile is None:
                raise NotFoundError("User profile not found")
            self._roll_usage(profile)

            batch.status = BatchStatus.COMPLETED
            batch.processed_at = processed_at
            profile.monthly_usage += batch.total_pages
            self.save()
            return batch.model_copy(deep=True)

    def set_batch_status(self, batch_id: str, status: BatchStatus, *, expected: BatchStatus) -> Batch:
        with self._lock:
            batch = self._require_batch(batch_id)
            if batch.status != expected:
                raise BatchStateError(
                    f"Batch is not in {expected.value} status",
                    status=batch.status.value,
                )
            batch.status = status
            self.save()
            return batch.model_copy(deep=True)

    def increment_batch_counter(self, batch_id: str, counter: str) -> Batch:
        if counter not in BATCH_COUNTERS:
            raise ValueError(f"Unknown batch counter: {counter}")
        with self._lock:
            batch = self._require_batch(batch_id)
            setattr(batch, counter, getattr(batch, counter) + 1)
            self.save()
            return batch.model_copy(deep=True)

    # Extractions

    def add_extraction(self, extraction: Extraction) -> Extraction:
        with self._lock:
            batch = self._require_batch(extraction.batch_id)
            if batch.status != BatchStatus.PROCESSING:
                raise BatchStateError("Batch is not in processing status", status=batch.status.value)
            stored = sum(1 for e in self.extractions.values() if e.batch_id == batch.id)
            if stored >= batch.file_count:
                raise BatchStateError(
                    f"Batch already holds all {batch.file_count} expected files",
                    status=batch.status.value,
                )
            self.extractions[extraction.id] = extraction.model_copy(deep=True)
            self.save()
            return extraction

    def get_extraction(self, extraction_id: str) -> Extraction | None:
        with self._lock:
            extraction = self.extractions.get(extraction_id)
            return extraction.model_copy(deep=True) if extraction else None

    def list_extractions(self, batch_id: str) -> list[Extraction]:
        with self._lock:
            rows = [e for e in self.extractions.values() if e.batch_id == batch_id]
            rows.sort(key=lambda e: e.created_at)
            return [e.model_copy(deep=True) for e in rows]

    def update_extraction_field(self, extraction_id: str, field: str, value: str) -> Extraction:
        with self._lock:
            extraction = self.extractions.get(extraction_id)
            if extraction is None:
                raise NotFoundError("Extraction not found")
            setattr(extraction.extracted_data, field, value)
            self.save()
            return extraction.model_copy(deep=True)
