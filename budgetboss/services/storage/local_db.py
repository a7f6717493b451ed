"""
Local Record Store

The offline replica. Every piece of budget data lives here under a
string key:

    plan:{month}      PlanData for one month (budget, incomes, categories)
    tx:{id}           one Transaction
    txindex:{month}   ids of the month's transactions (by transaction date)
    patterns          learned TransactionPatterns
    syncState         SyncState (last sync, pending-sync ids)
    settings          UserSettings

CRITICAL: Reads never raise. A failed or malformed read is logged and
treated as "not found" so the app degrades to an empty state instead of
crashing. Writes propagate StorageError to the caller.
"""

from typing import Any, Optional

from pydantic import ValidationError

from budgetboss.audit import AuditLogger
from budgetboss.models.audit import AuditEventBuilder
from budgetboss.models.budget import (
    PlanData,
    Transaction,
    TransactionPattern,
    UserSettings,
)
from budgetboss.models.sync import SyncState
from budgetboss.services.storage.interface import KeyValueStorageInterface


PLAN_PREFIX = "plan:"
TX_PREFIX = "tx:"
TX_INDEX_PREFIX = "txindex:"
PATTERNS_KEY = "patterns"
SYNC_STATE_KEY = "syncState"
SETTINGS_KEY = "settings"


def plan_key(month: str) -> str:
    return f"{PLAN_PREFIX}{month}"


def tx_key(transaction_id: str) -> str:
    return f"{TX_PREFIX}{transaction_id}"


def tx_index_key(month: str) -> str:
    return f"{TX_INDEX_PREFIX}{month}"


class LocalRecordStore:
    """
    Typed access to the local key-value replica.
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()

    async def _read(self, key: str) -> Optional[Any]:
        try:
            return await self._storage.get(key)
        except Exception as e:
            await self._audit.log(AuditEventBuilder.local_read_failed(key, str(e)))
            return None

    async def _read_model(self, key: str, model):
        raw = await self._read(key)
        if raw is None:
            return None
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            await self._audit.log(AuditEventBuilder.local_read_failed(key, str(e)))
            return None

    # -------------------------------------------------------------------------
    # Plans
    # -------------------------------------------------------------------------

    async def save_plan(self, month: str, plan: PlanData) -> None:
        await self._storage.set(plan_key(month), plan.model_dump(mode="json"))

    async def get_plan(self, month: str) -> Optional[PlanData]:
        return await self._read_model(plan_key(month), PlanData)

    async def delete_plan(self, month: str) -> None:
        await self._storage.delete(plan_key(month))

    async def get_all_stored_months(self) -> list[str]:
        """Every month that has a stored plan, oldest first."""
        try:
            keys = await self._storage.list_keys()
        except Exception as e:
            await self._audit.log(AuditEventBuilder.local_read_failed("*", str(e)))
            return []
        return sorted(
            key[len(PLAN_PREFIX):]
            for key in keys
            if isinstance(key, str) and key.startswith(PLAN_PREFIX)
        )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def get_transaction_index(self, month: str) -> list[str]:
        raw = await self._read(tx_index_key(month))
        if not isinstance(raw, dict):
            return []
        ids = raw.get("transaction_ids")
        if not isinstance(ids, list):
            return []
        return [i for i in ids if isinstance(i, str)]

    async def _save_transaction_index(self, month: str, ids: list[str]) -> None:
        await self._storage.set(
            tx_index_key(month),
            {"month": month, "transaction_ids": ids},
        )

    async def save_transaction(self, transaction: Transaction) -> None:
        """
        Write a transaction and keep the month index in step.

        The index is keyed by the transaction date's month. Re-saving is
        idempotent; moving the date to another month moves the id.
        """
        previous = await self.get_transaction(transaction.id)
        await self._storage.set(
            tx_key(transaction.id),
            transaction.model_dump(mode="json"),
        )

        if previous is not None and previous.month != transaction.month:
            old_ids = await self.get_transaction_index(previous.month)
            if transaction.id in old_ids:
                old_ids.remove(transaction.id)
                await self._save_transaction_index(previous.month, old_ids)

        ids = await self.get_transaction_index(transaction.month)
        if transaction.id not in ids:
            ids.append(transaction.id)
            await self._save_transaction_index(transaction.month, ids)

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return await self._read_model(tx_key(transaction_id), Transaction)

    async def get_transactions_for_month(
        self,
        month: str,
        include_deleted: bool = False,
    ) -> list[Transaction]:
        """Month's transactions, newest date first."""
        transactions = []
        for transaction_id in await self.get_transaction_index(month):
            tx = await self.get_transaction(transaction_id)
            if tx is None or tx.month != month:
                continue
            if tx.deleted and not include_deleted:
                continue
            transactions.append(tx)

        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    async def delete_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """
        Tombstone a transaction.

        The key is kept; the record is rewritten with deleted=True and a
        fresh updated_at so the deletion can be pushed and merged.
        """
        tx = await self.get_transaction(transaction_id)
        if tx is None:
            return None
        tombstone = tx.touched(deleted=True)
        await self._storage.set(tx_key(transaction_id), tombstone.model_dump(mode="json"))
        return tombstone

    # -------------------------------------------------------------------------
    # Patterns
    # -------------------------------------------------------------------------

    async def get_patterns(self) -> list[TransactionPattern]:
        raw = await self._read(PATTERNS_KEY)
        if not isinstance(raw, list):
            return []
        patterns = []
        for item in raw:
            try:
                patterns.append(TransactionPattern.model_validate(item))
            except ValidationError:
                continue  # Skip malformed entries
        return patterns

    async def save_patterns(self, patterns: list[TransactionPattern]) -> None:
        await self._storage.set(
            PATTERNS_KEY,
            [p.model_dump(mode="json") for p in patterns],
        )

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def get_settings(self) -> Optional[UserSettings]:
        return await self._read_model(SETTINGS_KEY, UserSettings)

    async def save_settings(self, settings: UserSettings) -> None:
        await self._storage.set(SETTINGS_KEY, settings.model_dump(mode="json"))

    # -------------------------------------------------------------------------
    # Sync bookkeeping
    # -------------------------------------------------------------------------

    async def get_sync_state(self) -> SyncState:
        state = await self._read_model(SYNC_STATE_KEY, SyncState)
        return state or SyncState()

    async def set_sync_state(self, state: SyncState) -> None:
        await self._storage.set(SYNC_STATE_KEY, state.model_dump(mode="json"))

    async def mark_for_sync(self, *record_ids: str) -> None:
        state = await self.get_sync_state()
        added = False
        for record_id in record_ids:
            if record_id not in state.pending_changes:
                state.pending_changes.append(record_id)
                added = True
        if added:
            await self.set_sync_state(state)

    async def mark_synced(self, *record_ids: str) -> None:
        state = await self.get_sync_state()
        remaining = [i for i in state.pending_changes if i not in record_ids]
        if len(remaining) != len(state.pending_changes):
            state.pending_changes = remaining
            await self.set_sync_state(state)

    async def get_pending_changes(self) -> list[str]:
        return list((await self.get_sync_state()).pending_changes)

    # -------------------------------------------------------------------------
    # Utilities
    # -------------------------------------------------------------------------

    async def clear_all_data(self) -> None:
        """Remove every key from the replica (e.g. on sign-out)."""
        for key in await self._storage.list_keys():
            await self._storage.delete(key)
