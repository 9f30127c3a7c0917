"""Mutation dispatcher — sends one mutation, then re-fetches the whole live list."""

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from jewellery_crm.application.interfaces import RecordStore
from jewellery_crm.application.services.live_list_controller import LiveListController
from jewellery_crm.domain.entities import MutationResult
from jewellery_crm.domain.exceptions import InvalidStatusTransitionError, RemoteStoreError
from jewellery_crm.infrastructure.logging.colored_logger import RefreshLogger, RefreshStage

logger = logging.getLogger(__name__)

plog = RefreshLogger("MutationDispatcher")

# Identifier fields where an empty string from a form means "unassigned".
_NULLABLE_ID_FIELDS = ("assigned_to", "customer_id", "sales_representative")


def clean_payload(payload: Mapping[str, Any], *, drop_none: bool) -> dict[str, Any]:
    """Blank id fields become None; with ``drop_none`` unset values are removed."""
    cleaned: dict[str, Any] = {}
    for key, value in payload.items():
        if key in _NULLABLE_ID_FIELDS and value == "":
            value = None
        if drop_none and value is None and key not in _NULLABLE_ID_FIELDS:
            continue
        cleaned[key] = value
    return cleaned


class MutationDispatcher:
    """Create / update / delete / transition records of one live list.

    Every successful mutation is followed by exactly one full re-fetch of the
    controller; the local list is never patched optimistically. Failures are
    logged and returned as ``MutationResult(success=False)``; the list is left
    untouched and nothing is retried.
    """

    def __init__(self, store: RecordStore, controller: LiveListController):
        self._store = store
        self._controller = controller
        self._spec = controller.spec

    async def create(self, draft: Mapping[str, Any]) -> MutationResult:
        payload = clean_payload(draft, drop_none=True)
        payload.setdefault("status", self._spec.fallback_status)
        return await self._dispatch(
            "create",
            lambda: self._store.create(self._spec.endpoint, payload),
        )

    async def update(self, record_id: str, changes: Mapping[str, Any]) -> MutationResult:
        payload = clean_payload(changes, drop_none=True)
        target = payload.get("status")
        if target is not None:
            failure = self._check_transition(record_id, target)
            if failure is not None:
                return failure
        return await self._dispatch(
            "update",
            lambda: self._store.update(self._spec.endpoint, str(record_id), payload),
            record_id=record_id,
        )

    async def delete(self, record_id: str) -> MutationResult:
        if not self._spec.hard_delete:
            message = f"{self._spec.name} records cannot be deleted"
            logger.warning(message)
            return MutationResult(success=False, message=message)
        return await self._dispatch(
            "delete",
            lambda: self._store.delete(self._spec.endpoint, str(record_id)),
            record_id=record_id,
        )

    async def transition(self, record_id: str, status: str) -> MutationResult:
        failure = self._check_transition(record_id, status)
        if failure is not None:
            return failure
        return await self._dispatch(
            "transition",
            lambda: self._store.transition(self._spec.endpoint, str(record_id), status),
            record_id=record_id,
            status=status,
        )

    async def transition_all(self, from_status: str, to_status: str) -> MutationResult:
        """Move every visible record in ``from_status`` to ``to_status`` (e.g. mark all read).

        Sends one request per record and re-fetches once at the end if any
        of them succeeded.
        """
        if not self._spec.can_transition(from_status, to_status):
            error = InvalidStatusTransitionError(self._spec.name, from_status, to_status)
            logger.warning("Rejected bulk transition: %s", error)
            return MutationResult(success=False, message=str(error))

        targets = [r.id for r in self._controller.records if r.status == from_status]
        plog.step_start(
            RefreshStage.MUTATE,
            f"Bulk {from_status} → {to_status} on {self._spec.name}",
            count=len(targets),
        )
        updated: list[str] = []
        failures: list[str] = []
        for record_id in targets:
            result = await self._send(
                lambda rid=record_id: self._store.transition(self._spec.endpoint, rid, to_status)
            )
            if result.success:
                updated.append(record_id)
            else:
                failures.append(f"{record_id}: {result.message}")

        if updated:
            await self._controller.refresh()
        if failures:
            logger.warning("Bulk transition on %s had %d failure(s)", self._spec.name, len(failures))
        return MutationResult(
            success=not failures,
            data={"updated": updated},
            message="; ".join(failures) or None,
        )

    # ── Internals ────────────────────────────────────────────────────

    def _check_transition(self, record_id: str, target: str) -> MutationResult | None:
        """Reject transitions the collection does not allow from the record's current status.

        A record not present in the local list is passed through; the remote
        store has the final word on it.
        """
        if target not in self._spec.statuses:
            message = f"{self._spec.name}: unknown status '{target}'"
            logger.warning(message)
            return MutationResult(success=False, message=message)

        current = self._controller.find(record_id)
        if current is None or current.status == target:
            return None
        if not self._spec.can_transition(current.status, target):
            error = InvalidStatusTransitionError(self._spec.name, current.status, target)
            logger.warning("Rejected transition for %s: %s", record_id, error)
            return MutationResult(success=False, message=str(error))
        return None

    async def _dispatch(
        self,
        operation: str,
        send: Callable[[], Awaitable[MutationResult]],
        **context: Any,
    ) -> MutationResult:
        plog.step_start(RefreshStage.MUTATE, f"{operation} on {self._spec.name}", **context)
        result = await self._send(send)
        if not result.success:
            plog.step_error(
                RefreshStage.MUTATE,
                f"{operation} on {self._spec.name} failed: {result.message}",
            )
            return result

        plog.step_complete(RefreshStage.MUTATE, f"{operation} on {self._spec.name}")
        await self._controller.refresh()
        return result

    @staticmethod
    async def _send(send: Callable[[], Awaitable[MutationResult]]) -> MutationResult:
        try:
            return await send()
        except RemoteStoreError as e:
            return MutationResult(success=False, message=e.message)
        except httpx.HTTPError as e:
            logger.warning("Mutation request failed: %s", e)
            return MutationResult(success=False, message=str(e) or type(e).__name__)
        except Exception as e:
            logger.exception("Mutation request raised unexpectedly")
            return MutationResult(success=False, message=f"{type(e).__name__}: {e}")
