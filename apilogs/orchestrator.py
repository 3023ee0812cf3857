"""Completion orchestrator.

Realizes the side effects of a finished call: persist the call summary,
associate the tracked entities, route the record through the channels and
release the tracker entry.

State flow for one correlation id::

    Open -> Completing -> Finalized

Persisting the summary is the only stage that stops the others, because the
associations and emitted records refer to the stored summary. Association
and dispatch failures are logged and isolated from each other.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from .channels import ChannelManager, DispatchReport
from .records import Association, CallSummary, EntityRef, LogRecord
from .tracker import CorrelationTracker

logger = logging.getLogger("apilogs.orchestrator")


class CallLogPersistence(Protocol):
    """Persistence collaborator used by the orchestrator."""

    def upsert_call_summary(self, summary: CallSummary) -> str:
        ...

    def find_existing_entity_ids(self, entity_type: str, ids: Sequence[str]) -> set[str]:
        ...

    def bulk_upsert_associations(self, rows: Sequence[Association]) -> int:
        ...


@dataclass
class CompletionResult:
    """Outcome of finalizing one call.

    Attributes:
        correlation_id: The finalized call
        summary_id: Id of the persisted summary, None if persisting failed
        persisted: Whether the summary was written
        associated: Entities written as associations
        missing: Tracked entities that no longer exist
        errors: Messages for every stage that failed
        dispatch: Per-channel dispatch outcome, None if dispatch never ran
    """

    correlation_id: str
    summary_id: str | None = None
    persisted: bool = False
    associated: list[EntityRef] = field(default_factory=list)
    missing: list[EntityRef] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    dispatch: DispatchReport | None = None

    @property
    def ok(self) -> bool:
        return self.persisted and not self.errors and (self.dispatch is None or self.dispatch.ok)


class CompletionOrchestrator:
    """Finalizes calls. Never raises on collaborator failures."""

    def __init__(
        self,
        store: CallLogPersistence,
        tracker: CorrelationTracker,
        channels: ChannelManager,
    ):
        self.store = store
        self.tracker = tracker
        self.channels = channels

    def complete(self, correlation_id: str, record: LogRecord, final_attempt: bool = True) -> CompletionResult:
        """Finalize the call identified by ``correlation_id``.

        Args:
            correlation_id: Correlation id the entities were tracked under
            record: The completed log record
            final_attempt: When False, a failed summary write leaves the
                tracker entry in place so a retry still sees the entities

        Returns:
            CompletionResult describing every stage
        """
        result = CompletionResult(correlation_id)

        try:
            result.summary_id = self.store.upsert_call_summary(CallSummary.from_record(record))
            result.persisted = True
        except Exception as e:
            logger.error(f"Failed to persist call summary for {correlation_id}: {e}")
            result.errors.append(f"persist: {e}")
            if final_attempt:
                self.tracker.clear(correlation_id)
            return result

        try:
            try:
                self._associate(result)
            except Exception as e:
                logger.error(f"Failed to associate entities for {correlation_id}: {e}")
                result.errors.append(f"associate: {e}")

            try:
                result.dispatch = self.channels.dispatch(record)
                for name, error in result.dispatch.failures.items():
                    result.errors.append(f"dispatch[{name}]: {error.reason}")
            except Exception as e:
                logger.error(f"Failed to dispatch log record for {correlation_id}: {e}")
                result.errors.append(f"dispatch: {e}")
        finally:
            self.tracker.clear(correlation_id)

        return result

    def _associate(self, result: CompletionResult) -> None:
        correlation_id = result.correlation_id

        groups: dict[str, list[EntityRef]] = {}
        for ref in self.tracker.entries_for(correlation_id):
            groups.setdefault(ref.entity_type, []).append(ref)

        if not groups:
            return

        rows: list[Association] = []
        existing_refs: list[EntityRef] = []

        for entity_type, refs in groups.items():
            try:
                existing = self.store.find_existing_entity_ids(
                    entity_type, [ref.entity_id for ref in refs]
                )
            except Exception as e:
                logger.error(f"Entity lookup failed for type '{entity_type}' on {correlation_id}: {e}")
                result.errors.append(f"lookup[{entity_type}]: {e}")
                continue

            for ref in refs:
                if ref.entity_id in existing:
                    rows.append(Association(result.summary_id, ref.entity_type, ref.entity_id))
                    existing_refs.append(ref)
                else:
                    logger.warning(
                        f"Tracked entity {ref.key} no longer exists, "
                        f"skipping association for {correlation_id}"
                    )
                    result.missing.append(ref)

        if not rows:
            return

        try:
            self.store.bulk_upsert_associations(rows)
        except Exception as e:
            logger.error(f"Failed to write {len(rows)} association(s) for {correlation_id}: {e}")
            result.errors.append(f"associate: {e}")
            return

        result.associated = existing_refs
        logger.debug(f"Associated {len(rows)} entit(ies) with {correlation_id}")
