"""Persistence fan-out: write the summary, then its derived records.

The summary is updated in place when the dedup resolver found a match and
inserted otherwise.  Action items and learning modules are created fresh on
every run, one atomic batch per list.  With ``rerun_policy="replace"`` the
matched summary's earlier derived records are deleted once the new
batches are stored, so a failed batch never leaves the summary with none;
the default ``"append"`` keeps them.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

from visitwise.core.dates import to_iso_utc
from visitwise.exceptions import PersistenceFailedError
from visitwise.formatters.summary import render_summary
from visitwise.models import (
    ACTION_ITEMS,
    LEARNING_MODULES,
    SUMMARIES,
    ActionItem,
    LearningModule,
    StructuredResult,
    SummaryRecord,
    utcnow,
)
from visitwise.persistence.protocols import IDocumentStore, StoredDocument

log = logging.getLogger(__name__)

RerunPolicy = Literal["append", "replace"]


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class FanoutResult:
    summary_id: str
    formatted_summary: str
    updated_existing: bool = False
    action_items: list[ActionItem] = field(default_factory=list)
    learning_modules: list[LearningModule] = field(default_factory=list)


class PersistenceFanout:
    def __init__(self, store: IDocumentStore, rerun_policy: RerunPolicy = "append") -> None:
        self._store = store
        self._rerun_policy = rerun_policy

    async def persist(
        self,
        owner_id: str,
        appointment: datetime,
        result: StructuredResult,
        matched_id: Optional[str] = None,
        *,
        source_path: str = "",
        run_id: str = "",
    ) -> FanoutResult:
        """Write the summary and its derived records.

        Raises:
            PersistenceFailedError: Any store write failed.
        """
        formatted = render_summary(result)
        try:
            summary_id, updated = await self._write_summary(
                owner_id, appointment, result, formatted, matched_id,
                source_path=source_path, run_id=run_id,
            )
            earlier: dict[str, list[str]] = {}
            if updated and self._rerun_policy == "replace":
                earlier = await self._derived_ids(owner_id, summary_id)
            action_items = await self._write_action_items(owner_id, summary_id, result)
            modules = await self._write_learning_modules(owner_id, summary_id, result)
        except PersistenceFailedError:
            raise
        except Exception as e:
            log.error(
                "Persistence failed after successful analysis (owner=%s, run=%s): %s",
                owner_id, run_id, e, exc_info=True,
            )
            raise PersistenceFailedError(f"Could not save visit summary: {e}") from e

        if earlier:
            await self._drop_derived(owner_id, summary_id, earlier)

        log.info(
            "%s summary %s with %d action item(s) and %d learning module(s)",
            "Updated" if updated else "Created", summary_id, len(action_items), len(modules),
        )
        return FanoutResult(
            summary_id=summary_id,
            formatted_summary=formatted,
            updated_existing=updated,
            action_items=action_items,
            learning_modules=modules,
        )

    async def _write_summary(
        self,
        owner_id: str,
        appointment: datetime,
        result: StructuredResult,
        formatted: str,
        matched_id: Optional[str],
        *,
        source_path: str,
        run_id: str,
    ) -> tuple[str, bool]:
        now = utcnow()
        if matched_id:
            fields = {
                "appointment_date": to_iso_utc(appointment),
                "maternal_status": result.maternal_status,
                "fetal_status": result.fetal_status,
                "next_steps": list(result.next_steps),
                "formatted_summary": formatted,
                "flags": list(result.flags),
                "source_path": source_path,
                "run_id": run_id,
                "updated_at": to_iso_utc(now),
            }
            if result.provider_name:
                fields["provider_name"] = result.provider_name
            if result.visit_type:
                fields["visit_type"] = result.visit_type
            try:
                await self._store.update(SUMMARIES, owner_id, matched_id, fields)
                return matched_id, True
            except KeyError:
                log.warning("Matched summary %s vanished before update; recreating it", matched_id)

        record = SummaryRecord(
            summary_id=matched_id or _new_id(),
            owner_id=owner_id,
            appointment_date=appointment,
            maternal_status=result.maternal_status,
            fetal_status=result.fetal_status,
            next_steps=list(result.next_steps),
            formatted_summary=formatted,
            flags=list(result.flags),
            provider_name=result.provider_name,
            visit_type=result.visit_type,
            source_path=source_path,
            run_id=run_id,
            created_at=now,
            updated_at=now,
        )
        data = record.model_dump(mode="json")
        data["appointment_date"] = to_iso_utc(appointment)
        await self._store.set(SUMMARIES, owner_id, record.summary_id, data)
        return record.summary_id, False

    async def _write_action_items(
        self,
        owner_id: str,
        summary_id: str,
        result: StructuredResult,
    ) -> list[ActionItem]:
        items = [
            ActionItem(
                item_id=_new_id(),
                owner_id=owner_id,
                summary_id=summary_id,
                title=entry.title,
                description=entry.description,
                category=entry.category,
            )
            for entry in result.action_items
        ]
        if items:
            await self._store.batch_write(
                ACTION_ITEMS,
                owner_id,
                [StoredDocument(doc_id=i.item_id, data=i.model_dump(mode="json")) for i in items],
            )
        return items

    async def _write_learning_modules(
        self,
        owner_id: str,
        summary_id: str,
        result: StructuredResult,
    ) -> list[LearningModule]:
        modules = [
            LearningModule(
                module_id=_new_id(),
                owner_id=owner_id,
                summary_id=summary_id,
                title=entry.title,
                description=entry.description,
                sections=list(entry.sections),
                trimester=entry.trimester,
                week=entry.week,
            )
            for entry in result.learning_modules
        ]
        if modules:
            await self._store.batch_write(
                LEARNING_MODULES,
                owner_id,
                [StoredDocument(doc_id=m.module_id, data=m.model_dump(mode="json")) for m in modules],
            )
        return modules

    async def _derived_ids(self, owner_id: str, summary_id: str) -> dict[str, list[str]]:
        ids: dict[str, list[str]] = {}
        for collection in (ACTION_ITEMS, LEARNING_MODULES):
            existing = await self._store.query(collection, owner_id, {"summary_id": summary_id})
            if existing:
                ids[collection] = [d.doc_id for d in existing]
        return ids

    async def _drop_derived(self, owner_id: str, summary_id: str, earlier: dict[str, list[str]]) -> None:
        """Delete records from earlier runs once the new batches are stored.

        A failure here leaves the earlier records next to the new ones; the
        run itself has already been saved, so it is logged and not raised.
        """
        for collection, doc_ids in earlier.items():
            try:
                await self._store.batch_delete(collection, owner_id, doc_ids)
            except Exception as e:
                log.warning(
                    "Could not remove %d earlier %s for summary %s: %s",
                    len(doc_ids), collection, summary_id, e,
                )
                continue
            log.info("Replaced %d earlier %s for summary %s", len(doc_ids), collection, summary_id)
