"""
Main Orchestrator for Node Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Earnings import (paste / JSON / CSV → validate → reconcile → merge →
   commit → binding update → backup check)
2. License import (JSON / CSV → validate → merge → commit → backup check)
3. Record maintenance (earning patches, deletes, node mapping, license CRUD)
4. Snapshot export and restore

DESIGN DECISION: The orchestrator enforces the boundaries:
- A batch is committed in ONE store write or not at all
- Invalid records are reported, valid ones in the same batch still land
- Binding updates after a commit are best-effort and never undo it
- Every call that changes a collection counts as one change for the
  backup scheduler; a skip import that adds nothing writes nothing
- Every step is audited under the call's correlation id
"""

import json
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from node_ledger.audit import AuditLogger, create_correlation_id
from node_ledger.backup import BackupScheduler, BackupSink, BackupStateStore, FileBackupSink
from node_ledger.config import Settings, get_settings
from node_ledger.exports import export_snapshot, parse_snapshot
from node_ledger.licenses import LicenseTracker
from node_ledger.merge import MergeEngine, MergePolicy
from node_ledger.models.audit import AuditEventType
from node_ledger.models.backup import AutoBackupSettings, BackupFrequency, BackupResult
from node_ledger.models.common import Clock, utc_now
from node_ledger.models.earning import Earning, EarningPatch
from node_ledger.models.ingest import (
    BindingFailure,
    BindingSweepResult,
    ImportResult,
    LicenseImportResult,
    UnparsedGroup,
)
from node_ledger.models.license import BindingInfo, LeaseInfo, License, LicenseStatus
from node_ledger.models.validation import FormatError, ValidationIssue
from node_ledger.parsing import (
    EarningsColumnMap,
    parse_earnings_csv,
    parse_earnings_text,
    parse_license_csv,
)
from node_ledger.queries import LedgerQueries
from node_ledger.services.storage import (
    KeyValueStore,
    NotFoundError,
    Repositories,
    StorageError,
    create_store,
)
from node_ledger.validation import RecordKind, RecordValidator


logger = structlog.get_logger(__name__)


def _import_failed(message: str, correlation_id: UUID, **fields: Any) -> ImportResult:
    return ImportResult(
        success=False,
        message=message,
        correlation_id=correlation_id,
        **fields,
    )


class NodeLedger:
    """
    The engine's single entry point.

    Holds the repositories of one store plus the components built over
    them. All operations are synchronous and run to completion.
    """

    def __init__(
        self,
        repositories: Repositories,
        settings: Optional[Settings] = None,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        backup_sink: Optional[BackupSink] = None,
        clock: Clock = utc_now,
    ):
        settings = settings or get_settings()
        storage_settings = settings.storage

        self._repos = repositories
        self._clock = clock
        self._validator = validator or RecordValidator(settings.validation, clock)
        self._audit = audit_logger or AuditLogger()
        self._backup_sink = backup_sink

        self._merge = MergeEngine(repositories.earnings, repositories.licenses)
        self._licenses = LicenseTracker(repositories.licenses, clock)
        self._queries = LedgerQueries(repositories, clock)
        self._scheduler = BackupScheduler(
            BackupStateStore(
                repositories.store,
                storage_settings.backup_settings_key,
                storage_settings.backup_counter_key,
            ),
            clock=clock,
            filename_prefix=settings.backup.filename_prefix,
        )

    @property
    def repositories(self) -> Repositories:
        return self._repos

    @property
    def licenses(self) -> LicenseTracker:
        return self._licenses

    @property
    def queries(self) -> LedgerQueries:
        return self._queries

    @property
    def scheduler(self) -> BackupScheduler:
        return self._scheduler

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    @property
    def validator(self) -> RecordValidator:
        return self._validator

    # Earnings import

    def import_text(
        self,
        text: str,
        policy: MergePolicy = MergePolicy.ADD_ALL,
        correlation_id: Optional[UUID] = None,
    ) -> ImportResult:
        """
        Import earnings pasted from the node dashboard.

        Defaults to add-all: same-day, same-amount repeats are real
        payouts, so duplicates are flagged but kept.
        """
        correlation_id = correlation_id or create_correlation_id()
        parsed = parse_earnings_text(text)

        if not parsed.success:
            self._audit.log_parse_failed("text", parsed.error or "nothing parsed", correlation_id)
            return _import_failed(
                parsed.error or "No earnings could be parsed",
                correlation_id,
                unparsed=parsed.unparsed,
            )

        self._audit.log_parse_completed(
            "text", parsed.parsed_count, parsed.error_count, correlation_id,
        )
        return self._import_earnings(
            parsed.records,
            policy,
            correlation_id,
            unparsed=parsed.unparsed,
        )

    def import_json(
        self,
        text: str,
        policy: MergePolicy = MergePolicy.SKIP,
        correlation_id: Optional[UUID] = None,
    ) -> ImportResult:
        """Import a JSON array of earnings (e.g. a previous JSON export)."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            candidates = json.loads(text)
        except json.JSONDecodeError as e:
            self._audit.log_parse_failed("json", e.msg, correlation_id)
            return _import_failed(f"Import failed: invalid JSON ({e.msg})", correlation_id)

        if not isinstance(candidates, list):
            self._audit.log_parse_failed("json", "top level is not an array", correlation_id)
            return _import_failed(
                "Import failed: invalid format, expected an array of earnings",
                correlation_id,
            )

        self._audit.log_parse_completed("json", len(candidates), 0, correlation_id)
        return self._import_earnings(candidates, policy, correlation_id)

    def import_csv(
        self,
        text: str,
        policy: MergePolicy = MergePolicy.SKIP,
        column_map: Optional[EarningsColumnMap] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ImportResult:
        """Import earnings from CSV, detecting the columns unless a map is given."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            candidates, _ = parse_earnings_csv(text, column_map)
        except FormatError as e:
            self._audit.log_parse_failed("csv", str(e), correlation_id)
            return _import_failed(f"Import failed: {e}", correlation_id, issues=e.issues)

        self._audit.log_parse_completed("csv", len(candidates), 0, correlation_id)
        return self._import_earnings(candidates, policy, correlation_id)

    def _import_earnings(
        self,
        candidates: list[Any],
        policy: MergePolicy,
        correlation_id: UUID,
        unparsed: Optional[list[UnparsedGroup]] = None,
        allow_empty: bool = False,
    ) -> ImportResult:
        policy = MergePolicy(policy)
        unparsed = unparsed or []

        earnings, issues, invalid_count = self._sanitize_earnings(
            candidates, correlation_id, allow_empty,
        )
        if not earnings and not (allow_empty and not candidates):
            return _import_failed(
                "No valid earnings to import",
                correlation_id,
                policy=policy.value,
                parsed_count=len(candidates),
                invalid_count=invalid_count,
                unparsed=unparsed,
                issues=issues,
            )
        return self._commit_earnings(
            earnings, policy, correlation_id,
            parsed_count=len(candidates),
            invalid_count=invalid_count,
            issues=issues,
            unparsed=unparsed,
        )

    def _commit_earnings(
        self,
        earnings: list[Earning],
        policy: MergePolicy,
        correlation_id: UUID,
        parsed_count: int,
        invalid_count: int,
        issues: list[ValidationIssue],
        unparsed: Optional[list[UnparsedGroup]] = None,
    ) -> ImportResult:
        """Merge sanitized earnings, then run the binding sweep and the backup check."""
        try:
            merged = self._merge.merge_earnings(earnings, policy)
        except StorageError as e:
            self._audit.log_commit_failed("earning", str(e), correlation_id)
            raise

        if merged.duplicate_count:
            self._audit.log_duplicates(
                "earning", merged.duplicate_count, len(earnings), correlation_id,
            )
        self._audit.log_merge_committed(
            entity_type="earning",
            policy=policy.value,
            added_count=merged.added_count,
            skipped_count=merged.skipped_count,
            total_count=merged.total_count,
            correlation_id=correlation_id,
        )

        binding = self._sweep_bindings([e.node_id for e in merged.accepted], correlation_id)
        backup = self._after_change(correlation_id) if merged.committed else None

        message = f"Added {merged.added_count} earning(s)"
        if policy == MergePolicy.SKIP and merged.skipped_count:
            message += f", skipped {merged.skipped_count} duplicate(s)"
        elif policy == MergePolicy.ADD_ALL and merged.duplicate_count:
            message += f", {merged.duplicate_count} flagged as possible duplicate(s)"
        elif policy == MergePolicy.REPLACE_ALL:
            message += f", replacing {merged.replaced_count} existing"

        return ImportResult(
            success=True,
            message=message,
            correlation_id=correlation_id,
            policy=policy.value,
            parsed_count=parsed_count,
            valid_count=len(earnings),
            invalid_count=invalid_count,
            added_count=merged.added_count,
            skipped_count=merged.skipped_count,
            duplicate_count=merged.duplicate_count,
            total_count=merged.total_count,
            unparsed=unparsed or [],
            issues=issues,
            binding=binding,
            backup=backup,
        )

    def _sanitize_earnings(
        self,
        candidates: list[Any],
        correlation_id: UUID,
        allow_empty: bool = False,
    ) -> tuple[list[Earning], list[ValidationIssue], int]:
        """Valid candidates as Earnings, plus every issue and the invalid count."""
        if allow_empty and not candidates:
            return [], [], 0

        batch = self._validator.validate_batch(candidates, RecordKind.EARNING)
        issues = batch.all_issues
        invalid_count = batch.invalid_count

        mapping = self._repos.node_mapping.load()
        earnings = []
        for result in batch.valid_results:
            try:
                earnings.append(self._validator.sanitize_earning(
                    result.candidate, mapping, result.index,
                ))
            except FormatError as e:
                issues.extend(e.issues)
                invalid_count += 1

        self._audit.log_validation(
            entity_type="earning",
            valid_count=len(earnings),
            invalid_count=invalid_count,
            issues=[i.model_dump(mode="json") for i in issues],
            correlation_id=correlation_id,
        )
        return earnings, issues, invalid_count

    def _sweep_bindings(
        self,
        node_ids: list[str],
        correlation_id: UUID,
    ) -> BindingSweepResult:
        """Bind licenses for newly accepted earnings; failures never undo the commit."""
        try:
            sweep = self._licenses.mark_bound_from_earnings(node_ids)
        except StorageError as e:
            logger.error("binding_sweep_failed", error=str(e))
            self._audit.log_error(
                "binding_sweep_failed",
                str(e),
                details={"node_count": len(set(node_ids))},
                correlation_id=correlation_id,
            )
            sweep = BindingSweepResult(failures=[
                BindingFailure(node_id=node_id, reason=f"storage error: {e}")
                for node_id in dict.fromkeys(node_ids)
            ])

        for failure in sweep.failures:
            self._audit.log_binding_failed(failure.node_id, failure.reason, correlation_id)
        for license_id in sweep.bound:
            self._audit.log_record_changed(
                AuditEventType.BINDING_UPDATED,
                "license",
                license_id,
                "License bound by new earnings",
                correlation_id=correlation_id,
            )
        return sweep

    # License import

    def import_licenses_json(
        self,
        text: str,
        policy: MergePolicy = MergePolicy.SKIP,
        correlation_id: Optional[UUID] = None,
    ) -> LicenseImportResult:
        """Import a JSON object keyed by license id (e.g. a previous JSON export)."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            self._audit.log_parse_failed("license-json", e.msg, correlation_id)
            return LicenseImportResult(
                success=False,
                message=f"Import failed: invalid JSON ({e.msg})",
                correlation_id=correlation_id,
            )

        if not isinstance(data, dict):
            self._audit.log_parse_failed("license-json", "top level is not an object", correlation_id)
            return LicenseImportResult(
                success=False,
                message="Import failed: invalid JSON format, expected an object",
                correlation_id=correlation_id,
            )

        candidates = [_keyed_license(license_id, entry) for license_id, entry in data.items()]
        self._audit.log_parse_completed("license-json", len(candidates), 0, correlation_id)
        return self._import_licenses(candidates, policy, correlation_id)

    def import_licenses_csv(
        self,
        text: str,
        policy: MergePolicy = MergePolicy.SKIP,
        correlation_id: Optional[UUID] = None,
    ) -> LicenseImportResult:
        correlation_id = correlation_id or create_correlation_id()
        try:
            candidates = parse_license_csv(text)
        except FormatError as e:
            self._audit.log_parse_failed("license-csv", str(e), correlation_id)
            return LicenseImportResult(
                success=False,
                message=f"Import failed: {e}",
                correlation_id=correlation_id,
                issues=e.issues,
            )

        self._audit.log_parse_completed("license-csv", len(candidates), 0, correlation_id)
        return self._import_licenses(candidates, policy, correlation_id)

    def _import_licenses(
        self,
        candidates: list[Any],
        policy: MergePolicy,
        correlation_id: UUID,
        allow_empty: bool = False,
    ) -> LicenseImportResult:
        policy = MergePolicy(policy)
        licenses, issues, invalid_count = self._sanitize_licenses(
            candidates, correlation_id, allow_empty,
        )
        if not licenses and not (allow_empty and not candidates):
            return LicenseImportResult(
                success=False,
                message="No valid licenses to import",
                correlation_id=correlation_id,
                policy=policy.value,
                invalid_count=invalid_count,
                issues=issues,
            )
        return self._commit_licenses(licenses, policy, correlation_id, invalid_count, issues)

    def _sanitize_licenses(
        self,
        candidates: list[Any],
        correlation_id: UUID,
        allow_empty: bool = False,
    ) -> tuple[list[License], list[ValidationIssue], int]:
        """Valid candidates as Licenses, plus every issue and the invalid count."""
        if allow_empty and not candidates:
            return [], [], 0

        existing_ids = list(self._repos.licenses.load())
        batch = self._validator.validate_batch(
            candidates, RecordKind.LICENSE, existing_license_ids=existing_ids,
        )
        issues = batch.all_issues
        invalid_count = batch.invalid_count

        licenses = []
        for result in batch.valid_results:
            try:
                licenses.append(self._validator.sanitize_license(result.candidate, result.index))
            except FormatError as e:
                issues.extend(e.issues)
                invalid_count += 1

        self._audit.log_validation(
            entity_type="license",
            valid_count=len(licenses),
            invalid_count=invalid_count,
            issues=[i.model_dump(mode="json") for i in issues],
            correlation_id=correlation_id,
        )
        return licenses, issues, invalid_count

    def _commit_licenses(
        self,
        licenses: list[License],
        policy: MergePolicy,
        correlation_id: UUID,
        invalid_count: int,
        issues: list[ValidationIssue],
    ) -> LicenseImportResult:
        try:
            merged = self._merge.merge_licenses(licenses, policy)
        except StorageError as e:
            self._audit.log_commit_failed("license", str(e), correlation_id)
            raise

        if merged.duplicate_count:
            self._audit.log_duplicates(
                "license", merged.duplicate_count, len(licenses), correlation_id,
            )
        self._audit.log_merge_committed(
            entity_type="license",
            policy=policy.value,
            added_count=merged.added_count,
            skipped_count=merged.skipped_count,
            total_count=merged.total_count,
            correlation_id=correlation_id,
        )
        backup = self._after_change(correlation_id) if merged.committed else None

        return LicenseImportResult(
            success=True,
            message=(
                f"Import completed. Added: {merged.added_count}, "
                f"Updated: {merged.updated_count}, "
                f"Skipped: {merged.skipped_count + invalid_count}"
            ),
            correlation_id=correlation_id,
            policy=policy.value,
            valid_count=len(licenses),
            invalid_count=invalid_count,
            added_count=merged.added_count,
            updated_count=merged.updated_count,
            skipped_count=merged.skipped_count,
            duplicate_count=merged.duplicate_count,
            total_count=merged.total_count,
            issues=issues,
            backup=backup,
        )

    # Earnings maintenance

    def update_earning(
        self,
        earning_id: str,
        patch: Union[EarningPatch, dict],
    ) -> Earning:
        """
        Patch the status and/or license type of one earning.

        Raises:
            NotFoundError: If no earning has this id
            pydantic.ValidationError: If the patch names any other field
        """
        if not isinstance(patch, EarningPatch):
            patch = EarningPatch.model_validate(patch)
        changes = patch.model_dump(exclude_none=True)

        earnings = self._repos.earnings.load()
        for position, earning in enumerate(earnings):
            if earning.id == earning_id:
                break
        else:
            raise NotFoundError(f"Earning not found: {earning_id}")

        updated = earning.model_copy(update=changes)
        earnings[position] = updated
        self._repos.earnings.save(earnings)

        self._audit.log_record_changed(
            AuditEventType.EARNING_UPDATED,
            "earning",
            earning_id,
            "Earning patched",
            details={k: str(getattr(v, "value", v)) for k, v in changes.items()},
        )
        self._after_change()
        return updated

    def delete_earning(self, earning_id: str) -> bool:
        earnings = self._repos.earnings.load()
        remaining = [e for e in earnings if e.id != earning_id]
        if len(remaining) == len(earnings):
            return False

        self._repos.earnings.save(remaining)
        self._audit.log_record_changed(
            AuditEventType.EARNING_DELETED, "earning", earning_id, "Earning deleted",
        )
        self._after_change()
        return True

    def clear_earnings(self) -> None:
        self._repos.earnings.clear()
        self._audit.log_record_changed(
            AuditEventType.EARNINGS_CLEARED, "earning", None, "All earnings cleared",
        )
        self._after_change()

    def set_license_type(self, node_id: str, license_type: str) -> int:
        """
        Map a node to a license type and patch its existing earnings.

        Returns:
            Number of earnings whose license type changed
        """
        license_type = license_type.strip()
        if not license_type:
            raise ValueError("license_type must not be empty")

        mapping = self._repos.node_mapping.load()
        mapping[node_id] = license_type
        self._repos.node_mapping.save(mapping)

        earnings = self._repos.earnings.load()
        patched = 0
        for position, earning in enumerate(earnings):
            if earning.node_id == node_id and earning.license_type != license_type:
                earnings[position] = earning.model_copy(update={"license_type": license_type})
                patched += 1
        if patched:
            self._repos.earnings.save(earnings)

        self._audit.log_record_changed(
            AuditEventType.NODE_MAPPING_UPDATED,
            "node",
            node_id,
            f"Node mapped to {license_type}",
            details={"patched_count": patched},
        )
        self._after_change()
        return patched

    # License maintenance

    def add_license(
        self,
        license_id: str,
        status: LicenseStatus = LicenseStatus.AVAILABLE,
        lease_info: Optional[LeaseInfo] = None,
        binding_info: Optional[BindingInfo] = None,
        notes: str = "",
    ) -> License:
        license_ = self._licenses.add_license(license_id, status, lease_info, binding_info, notes)
        self._audit.log_record_changed(
            AuditEventType.LICENSE_ADDED,
            "license",
            license_.license_id,
            f"License added as {license_.status.value}",
        )
        self._after_change()
        return license_

    def update_license(self, license_id: str, updates: dict[str, Any]) -> License:
        license_ = self._licenses.update_license(license_id, updates)
        self._audit.log_record_changed(
            AuditEventType.LICENSE_UPDATED,
            "license",
            license_.license_id,
            "License updated",
            details={"fields": sorted(updates)},
        )
        self._after_change()
        return license_

    def update_binding_status(
        self,
        license_id: str,
        is_bound: bool,
        phone_id: Optional[str] = None,
    ) -> License:
        license_ = self._licenses.update_binding_status(license_id, is_bound, phone_id)
        self._audit.log_record_changed(
            AuditEventType.BINDING_UPDATED,
            "license",
            license_.license_id,
            "License bound" if is_bound else "License unbound",
            details={"downtime_days": license_.binding_info.downtime_days},
        )
        self._after_change()
        return license_

    def delete_license(self, license_id: str) -> bool:
        deleted = self._licenses.delete_license(license_id)
        if deleted:
            self._audit.log_record_changed(
                AuditEventType.LICENSE_DELETED, "license", license_id, "License deleted",
            )
            self._after_change()
        return deleted

    def clear_licenses(self) -> None:
        self._licenses.clear_all()
        self._audit.log_record_changed(
            AuditEventType.LICENSES_CLEARED, "license", None, "All licenses cleared",
        )
        self._after_change()

    # Backup and snapshots

    def export_snapshot(self) -> str:
        return export_snapshot(
            self._repos.earnings.load(),
            self._repos.licenses.load(),
            exported_at=self._clock(),
        )

    def backup_now(self, sink: Optional[BackupSink] = None) -> BackupResult:
        """
        Write a snapshot regardless of the schedule.

        Raises:
            ValueError: If no sink is given and none is configured
        """
        sink = sink or self._backup_sink
        if sink is None:
            raise ValueError("No backup destination configured")
        result = self._scheduler.perform_backup(self.export_snapshot, sink)
        self._audit_backup(result, self._scheduler.state.load_settings().last_backup_change_count)
        return result

    def configure_backup(
        self,
        enabled: Optional[bool] = None,
        frequency: Optional[BackupFrequency] = None,
    ) -> AutoBackupSettings:
        """Change the auto-backup switch and/or frequency."""
        if frequency is not None:
            self._scheduler.update_frequency(frequency)
        if enabled is not None:
            self._scheduler.toggle(enabled)
        settings = self._scheduler.state.load_settings()

        self._audit.log_record_changed(
            AuditEventType.BACKUP_SETTINGS_CHANGED,
            "backup",
            None,
            "Auto-backup settings changed",
            details={"enabled": settings.enabled, "frequency": settings.frequency.value},
        )
        return settings

    def restore_snapshot(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ImportResult, LicenseImportResult]:
        """
        Replace both collections with the contents of a snapshot.

        Records in the snapshot are validated like any import; invalid ones
        are reported and left out. If either collection is non-empty but has
        no valid record, nothing is restored and both results fail.

        Raises:
            FormatError: If the text is not a snapshot
        """
        correlation_id = correlation_id or create_correlation_id()
        earning_candidates, license_entries = parse_snapshot(text)
        license_candidates = [
            _keyed_license(license_id, entry) for license_id, entry in license_entries.items()
        ]

        earnings, earning_issues, invalid_earnings = self._sanitize_earnings(
            earning_candidates, correlation_id, allow_empty=True,
        )
        licenses, license_issues, invalid_licenses = self._sanitize_licenses(
            license_candidates, correlation_id, allow_empty=True,
        )
        earnings_unusable = bool(earning_candidates) and not earnings
        licenses_unusable = bool(license_candidates) and not licenses

        if earnings_unusable or licenses_unusable:
            reason = "no valid earnings" if earnings_unusable else "no valid licenses"
            message = f"Restore aborted: snapshot has {reason}"
            self._audit.log_commit_failed("snapshot", message, correlation_id)
            return (
                _import_failed(
                    message,
                    correlation_id,
                    policy=MergePolicy.REPLACE_ALL.value,
                    parsed_count=len(earning_candidates),
                    valid_count=len(earnings),
                    invalid_count=invalid_earnings,
                    issues=earning_issues,
                ),
                LicenseImportResult(
                    success=False,
                    message=message,
                    correlation_id=correlation_id,
                    policy=MergePolicy.REPLACE_ALL.value,
                    valid_count=len(licenses),
                    invalid_count=invalid_licenses,
                    issues=license_issues,
                ),
            )

        earnings_result = self._commit_earnings(
            earnings, MergePolicy.REPLACE_ALL, correlation_id,
            parsed_count=len(earning_candidates),
            invalid_count=invalid_earnings,
            issues=earning_issues,
        )
        licenses_result = self._commit_licenses(
            licenses, MergePolicy.REPLACE_ALL, correlation_id, invalid_licenses, license_issues,
        )

        self._audit.log_record_changed(
            AuditEventType.SNAPSHOT_RESTORED,
            "snapshot",
            None,
            "Snapshot restored",
            details={
                "earning_count": earnings_result.total_count,
                "license_count": licenses_result.total_count,
            },
            correlation_id=correlation_id,
        )
        return earnings_result, licenses_result

    def _after_change(self, correlation_id: Optional[UUID] = None) -> Optional[BackupResult]:
        """Count one change and run a backup if one is due and a sink is set."""
        change_count = self._scheduler.record_change()
        if self._backup_sink is None:
            return None

        result = self._scheduler.check_and_backup(self.export_snapshot, self._backup_sink)
        if result is not None:
            self._audit_backup(result, change_count, correlation_id)
        return result

    def _audit_backup(
        self,
        result: BackupResult,
        change_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if result.success:
            self._audit.log_backup_completed(result.filename or "", change_count, correlation_id)
        else:
            self._audit.log_backup_failed(result.error or result.message, correlation_id)


def _keyed_license(license_id: str, entry: Any) -> Any:
    """A license entry of a keyed JSON object, with the key as its id."""
    if not isinstance(entry, dict):
        return entry
    return {**entry, "licenseId": license_id}


def create_ledger(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    backup_sink: Optional[BackupSink] = None,
    use_backup_directory: bool = True,
    clock: Clock = utc_now,
) -> NodeLedger:
    """
    Factory function to create the ledger and its components.

    Args:
        settings: Settings to use; the cached environment settings by default
        store: Store to use; built from the storage settings by default
        backup_sink: Destination for automatic backups
        use_backup_directory: Without an explicit sink, write automatic
            backups into the configured backup directory

    Returns:
        A ready NodeLedger
    """
    settings = settings or get_settings()
    store = store or create_store(settings.storage)
    if backup_sink is None and use_backup_directory:
        backup_sink = FileBackupSink(settings.backup.directory)

    return NodeLedger(
        repositories=Repositories(store, settings.storage),
        settings=settings,
        audit_logger=AuditLogger(),
        backup_sink=backup_sink,
        clock=clock,
    )
