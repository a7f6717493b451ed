"""
Main Orchestrator for BudgetBoss

This module ties together all the components and defines the
end-to-end flows for:
1. Validated user actions (quick add, borrow)
2. Sync (full sync of the current month, then reload)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The budget store only ever sees validated actions
- Sync only runs for a signed-in owner, one pass at a time
- Sync failures never take the app out of offline mode

This is the composition root: nothing below it constructs its own
collaborators.
"""

from typing import Optional

import structlog

from budgetboss.audit import AuditLogger
from budgetboss.config import get_settings
from budgetboss.models.audit import AuditEventBuilder
from budgetboss.models.budget import (
    BorrowData,
    QuickAddData,
    Transaction,
    ValidationResult,
)
from budgetboss.models.sync import SyncReport
from budgetboss.services.identity import IdentityProvider, StaticIdentityProvider
from budgetboss.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    JsonFileKeyValueStorage,
    KeyValueStorageInterface,
    LocalRecordStore,
    RemoteStoreInterface,
)
from budgetboss.store import BudgetStore
from budgetboss.sync import SyncEngine, SyncUnavailableError
from budgetboss.validation import BudgetValidator


logger = structlog.get_logger("budgetboss.orchestrator")


class ValidationFailedError(Exception):
    """A user action was rejected by caller-side validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(i.message for i in result.issues if i.severity == "error")
        super().__init__(f"{result.action} rejected: {messages}")


class BudgetApp:
    """
    The running application: store, sync engine and identity together.

    Flow for a user action:
    1. Validate against the current month
    2. Apply through the budget store (optimistic, persisted locally)

    Flow for sync:
    1. Skip if signed out, offline, or a sync is already running
    2. Full sync of the current month
    3. Reload the month so the UI sees merged data
    """

    def __init__(
        self,
        store: BudgetStore,
        identity: IdentityProvider,
        sync_engine: Optional[SyncEngine] = None,
        validator: Optional[BudgetValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.identity = identity
        self.sync_engine = sync_engine
        self._validator = validator or BudgetValidator()
        self._audit = audit_logger or AuditLogger()
        self._syncing = False

    @property
    def is_online(self) -> bool:
        return self.sync_engine is not None

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    async def _reject(self, result: ValidationResult) -> None:
        await self._audit.log(AuditEventBuilder.validation_failed(
            result.action,
            [issue.model_dump() for issue in result.issues],
        ))
        raise ValidationFailedError(result)

    async def quick_add(self, data: QuickAddData) -> tuple[Transaction, ValidationResult]:
        """
        Validate and add a transaction.

        Returns the transaction and the validation result (which may
        carry warnings).

        Raises:
            ValidationFailedError: If validation found errors
        """
        result = self._validator.validate_quick_add(data, self.store.get_state().categories)
        if result.has_errors:
            await self._reject(result)
        transaction = await self.store.add_transaction(data)
        return transaction, result

    async def borrow(self, data: BorrowData) -> ValidationResult:
        """
        Validate and apply a borrow between two categories.

        Raises:
            ValidationFailedError: If validation found errors
        """
        result = self._validator.validate_borrow(self.store.get_state(), data)
        if result.has_errors:
            await self._reject(result)
        await self.store.borrow_between_categories(
            data.from_category_id,
            data.to_category_id,
            data.amount,
        )
        return result

    async def sync_with_remote(self) -> Optional[SyncReport]:
        """
        Sync the current month and reload it.

        Returns None when the sync was skipped.

        Raises:
            SyncUnavailableError: If the remote store could not be used;
                local data is untouched and the app stays usable offline
        """
        month = self.store.get_current_month()
        owner_id = self.identity.get_owner_id()

        if self.sync_engine is None:
            await self._audit.log(AuditEventBuilder.sync_skipped(month, "offline"))
            return None
        if owner_id is None:
            await self._audit.log(AuditEventBuilder.sync_skipped(month, "not signed in"))
            return None
        if self._syncing:
            await self._audit.log(AuditEventBuilder.sync_skipped(month, "already syncing"))
            return None

        self._syncing = True
        try:
            report = await self.sync_engine.full_sync(month, owner_id)
            try:
                await self.sync_engine.sync_settings(owner_id)
            except SyncUnavailableError as e:
                await self._audit.log_error("settings_sync", str(e))
        finally:
            self._syncing = False

        await self.store.load_month(month)
        return report


def create_app_components(
    use_remote: bool = True,
    storage: Optional[KeyValueStorageInterface] = None,
    remote: Optional[RemoteStoreInterface] = None,
    identity: Optional[IdentityProvider] = None,
) -> BudgetApp:
    """
    Factory function to create all application components.

    Args:
        use_remote: Whether to set up the remote store.
                    Set to False to run fully offline.
        storage: Local key-value backend; defaults to the configured
                 JSON file.
        remote: Remote store; defaults to Google Sheets.
        identity: Identity provider; defaults to signed out.

    Returns:
        The assembled BudgetApp. Without a usable remote it runs offline.
    """
    settings = get_settings()
    audit_logger = AuditLogger()

    if storage is None:
        storage = JsonFileKeyValueStorage(settings.local_storage.data_path)

    local_db = LocalRecordStore(storage, audit_logger)
    store = BudgetStore(local_db, audit_logger, settings.app)

    sync_engine = None
    if use_remote:
        if remote is None:
            try:
                remote = GoogleSheetsRemoteStore(GoogleSheetsClient())
            except Exception as e:
                # Remote not configured - continue offline
                logger.warning("remote_not_configured", error=str(e))
                remote = None
        if remote is not None:
            sync_engine = SyncEngine(local_db, remote, audit_logger, settings=settings.app)

    return BudgetApp(
        store=store,
        identity=identity or StaticIdentityProvider(),
        sync_engine=sync_engine,
        audit_logger=audit_logger,
    )
