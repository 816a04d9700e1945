"""Portal notification reconciler.

For each account: log in, read the notifications page, diff it against the
previous snapshot, mark items seen on the portal and push the new ones.

States per account, strictly in order:
  INIT → AUTHENTICATING → FETCHING_NOTIFICATIONS → EXTRACTING → DIFFING
       → (ACKNOWLEDGING →) FORWARDING → DONE
with FAILED reachable from authentication and fetching. A failed pass is
reported, not retried, and leaves the account's snapshot untouched.
"""

import asyncio
from collections.abc import Sequence
from typing import Protocol

from ..config import PortalSite, ReconcilerConfig
from ..errors import (
    AcknowledgmentError,
    AuthError,
    BatchTimeoutError,
    FetchError,
    ReconcileError,
)
from ..logging_config import get_logger
from ..models import (
    Account,
    AccountResult,
    AcknowledgmentReport,
    BatchResult,
    DeliveryCandidate,
    DeliveryResult,
    LocalizedText,
    ObservedItem,
    PassState,
)
from ..portal import DocumentModel, IPortalClient, IPortalSession
from ..push import IPushRelay
from ..tracker import ITracker
from .delta import diff
from .extractor import extract, latest_detail_link, parse_visit_id
from .snapshots import InMemorySnapshotStore, ISnapshotStore

logger = get_logger(__name__)

PUSH_TITLE = "🔬 نتائجك جاهزة!"


def push_body(display_name: str) -> str:
    return f"{display_name} تم الانتهاء من تحاليلكم والنتيجة جاهزة"


def candidate_body(display_name: str) -> LocalizedText:
    return LocalizedText(
        primary=f"{display_name} تم الانتهاء من تحاليلكم والنتيجة",
        fallback=f"{display_name} Your test results are ready",
    )


class IReconciler(Protocol):
    """Checks portal accounts for new notifications."""

    async def reconcile_account(
        self, account: Account, forward: bool = True
    ) -> AccountResult:
        """Run one pass for one account. Never raises for portal failures."""
        ...

    async def run_batch(
        self, accounts: Sequence[Account], forward: bool = True
    ) -> BatchResult:
        """Run one pass per account; one result per account, in order."""
        ...


class _Pass:
    """Mutable progress of one account's pass."""

    def __init__(self, account: Account):
        self.account = account
        self.state = PassState.INIT

    def advance(self, state: PassState) -> None:
        logger.debug(
            "%s: %s -> %s",
            self.account.account_id,
            self.state.value,
            state.value,
            extra={"account_id": self.account.account_id, "state": state.value},
        )
        self.state = state


class Reconciler:
    """Runs reconciliation passes against the portal."""

    def __init__(
        self,
        portal_client: IPortalClient,
        push_relay: IPushRelay,
        snapshots: ISnapshotStore | None = None,
        tracker: ITracker | None = None,
        site: PortalSite | None = None,
        config: ReconcilerConfig | None = None,
    ):
        self._portal = portal_client
        self._push = push_relay
        self._snapshots = snapshots if snapshots is not None else InMemorySnapshotStore()
        self._tracker = tracker
        self._site = site or PortalSite()
        self._config = config or ReconcilerConfig()
        self._account_locks: dict[str, asyncio.Lock] = {}

    @property
    def snapshots(self) -> ISnapshotStore:
        return self._snapshots

    async def run_batch(
        self, accounts: Sequence[Account], forward: bool = True
    ) -> BatchResult:
        """Run one pass per account with bounded concurrency and a batch deadline."""
        logger.info("Checking notifications for %s account(s)", len(accounts))
        semaphore = asyncio.Semaphore(max(1, self._config.max_concurrent_accounts))

        async def guarded(account: Account) -> AccountResult:
            async with semaphore:
                return await self.reconcile_account(account, forward=forward)

        tasks = [asyncio.create_task(guarded(account)) for account in accounts]
        if tasks:
            _, pending = await asyncio.wait(
                tasks, timeout=self._config.batch_timeout_seconds
            )
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        results = []
        for account, task in zip(accounts, tasks):
            if task.cancelled():
                error = BatchTimeoutError("Batch deadline passed before the pass finished")
                logger.error(
                    "%s: %s",
                    account.account_id,
                    error,
                    extra={"account_id": account.account_id},
                )
                results.append(self._failed(account, PassState.FAILED, error))
            elif task.exception() is not None:
                error = task.exception()
                logger.error(
                    "%s: unexpected error: %s",
                    account.account_id,
                    error,
                    exc_info=error,
                    extra={"account_id": account.account_id},
                )
                results.append(self._failed(account, PassState.FAILED, error))
            else:
                results.append(task.result())

        batch = BatchResult(results=results)
        logger.info(
            "Check finished: %s/%s succeeded, %s with new notifications",
            batch.success_count,
            batch.total,
            len(batch.new_notifications),
        )
        return batch

    async def reconcile_account(
        self, account: Account, forward: bool = True
    ) -> AccountResult:
        """Run one pass for one account.

        Passes for the same account never overlap, so each one diffs against
        the snapshot the previous one wrote.
        """
        lock = self._account_locks.setdefault(account.account_id, asyncio.Lock())
        async with lock:
            return await self._reconcile(account, forward)

    async def _reconcile(self, account: Account, forward: bool) -> AccountResult:
        progress = _Pass(account)
        await self._track("reconcile_started", {"account_id": account.account_id})

        try:
            result = await self._run_pass(progress, forward)
        except ReconcileError as e:
            logger.error(
                "%s: pass failed in %s: %s",
                account.account_id,
                progress.state.value,
                e,
                extra={"account_id": account.account_id, "state": progress.state.value},
            )
            failed_in = progress.state
            progress.advance(PassState.FAILED)
            await self._track(
                "reconcile_failed",
                {
                    "account_id": account.account_id,
                    "failed_in": failed_in.value,
                    "error_kind": e.kind,
                    "error": str(e),
                },
            )
            return self._failed(account, PassState.FAILED, e)

        await self._track(
            "reconcile_completed",
            {
                "account_id": account.account_id,
                "items_found": result.items_found,
                "new_items": len(result.new_items),
                "delivered": result.delivered,
            },
        )
        return result

    async def _run_pass(self, progress: _Pass, forward: bool) -> AccountResult:
        account = progress.account

        progress.advance(PassState.AUTHENTICATING)
        session = await self._authenticate(account)

        try:
            progress.advance(PassState.FETCHING_NOTIFICATIONS)
            document = await self._fetch(session, self._site.notifications_url)

            progress.advance(PassState.EXTRACTING)
            items = extract(document, self._site)
            result_url = self._latest_result_url(document, items)

            progress.advance(PassState.DIFFING)
            previous = await self._snapshots.get(account.account_id)
            new_items = diff(previous, items)
            logger.info(
                "%s: %s item(s), %s new",
                account.account_id,
                len(items),
                len(new_items),
                extra={"account_id": account.account_id},
            )

            acknowledgements = None
            if items:
                progress.advance(PassState.ACKNOWLEDGING)
                acknowledgements = await self.acknowledge_items(session, items)
        finally:
            await session.close()

        await self._snapshots.put(account.account_id, items)

        progress.advance(PassState.FORWARDING)
        candidates = [self._candidate(account, item, result_url) for item in new_items]
        deliveries = []
        if candidates and forward:
            deliveries = await self._forward(account, candidates, result_url)

        progress.advance(PassState.DONE)
        return AccountResult(
            account_id=account.account_id,
            display_name=account.display_name,
            success=True,
            state=progress.state,
            items=items,
            new_items=new_items,
            candidates=candidates,
            deliveries=deliveries,
            acknowledgements=acknowledgements,
            result_url=result_url,
        )

    async def _authenticate(self, account: Account) -> IPortalSession:
        try:
            return await asyncio.wait_for(
                self._portal.authenticate(account.credentials),
                timeout=self._config.login_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise AuthError("Timed out logging in") from e
        except ReconcileError:
            raise
        except Exception as e:
            raise AuthError(f"Login failed: {e}") from e

    async def _fetch(self, session: IPortalSession, url: str) -> DocumentModel:
        try:
            return await asyncio.wait_for(
                session.fetch_rendered_page(url),
                timeout=self._config.step_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise FetchError(f"Timed out loading {url}") from e
        except ReconcileError:
            raise
        except Exception as e:
            raise FetchError(f"Failed to load {url}: {e}") from e

    async def acknowledge_items(
        self, session: IPortalSession, items: Sequence[ObservedItem]
    ) -> AcknowledgmentReport:
        """Mark items seen on the portal, best effort.

        Visits the read-all page, then the detail pages of at most
        ``max_acknowledgements`` distinct visits. Each visit is independent;
        failures are recorded in the report and logged.
        """
        report = AcknowledgmentReport()

        await self._visit(session, self._site.read_all_url, report)

        visit_ids: list[str] = []
        for item in items:
            if item.related_visit_id and item.related_visit_id not in visit_ids:
                visit_ids.append(item.related_visit_id)
        visit_ids = visit_ids[: self._config.max_acknowledgements]

        semaphore = asyncio.Semaphore(max(1, self._config.acknowledge_concurrency))

        async def visit_one(visit_id: str) -> None:
            async with semaphore:
                await self._visit(session, self._site.visit_url(visit_id), report)

        await asyncio.gather(*(visit_one(visit_id) for visit_id in visit_ids))
        return report

    async def _visit(
        self, session: IPortalSession, url: str, report: AcknowledgmentReport
    ) -> None:
        report.attempted.append(url)
        try:
            await asyncio.wait_for(
                session.visit(url),
                timeout=self._config.acknowledge_timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = AcknowledgmentError(f"Timed out visiting {url}")
        except AcknowledgmentError as e:
            error = e
        except Exception as e:
            error = AcknowledgmentError(f"Failed to visit {url}: {e}")
        else:
            report.acknowledged.append(url)
            return

        report.errors[url] = str(error)
        logger.warning("Could not mark %s as seen: %s", url, error)

    def _latest_result_url(
        self, document: DocumentModel, items: list[ObservedItem]
    ) -> str | None:
        link = latest_detail_link(document)
        if link:
            return link
        for item in items:
            if item.detail_url:
                return item.detail_url
        return None

    def _candidate(
        self, account: Account, item: ObservedItem, result_url: str | None
    ) -> DeliveryCandidate:
        return DeliveryCandidate(
            item=item,
            result_url=item.detail_url or result_url,
            body=candidate_body(account.display_name),
        )

    async def _forward(
        self,
        account: Account,
        candidates: list[DeliveryCandidate],
        result_url: str | None,
    ) -> list[DeliveryResult]:
        """One push per device token of the account."""
        if not account.push_tokens:
            logger.info(
                "%s: %s new item(s) but no push token",
                account.account_id,
                len(candidates),
                extra={"account_id": account.account_id},
            )
            return []

        url = candidates[0].result_url or result_url
        data = {
            "type": "results_ready",
            "url": url,
            "visitId": parse_visit_id(url),
            "userId": account.account_id,
            "count": len(candidates),
        }

        deliveries = []
        for token in account.push_tokens:
            deliveries.append(
                await self._push.deliver(
                    token, PUSH_TITLE, push_body(account.display_name), data
                )
            )

        await self._track(
            "push_forwarded",
            {
                "account_id": account.account_id,
                "tokens": len(deliveries),
                "delivered": sum(1 for d in deliveries if d.success),
            },
        )
        return deliveries

    def _failed(
        self, account: Account, state: PassState, error: BaseException
    ) -> AccountResult:
        return AccountResult(
            account_id=account.account_id,
            display_name=account.display_name,
            success=False,
            state=state,
            error_kind=getattr(error, "kind", type(error).__name__),
            error=str(error),
        )

    async def _track(self, event_type: str, data: dict) -> None:
        if self._tracker:
            await self._tracker.track(event_type, "reconciler", data)
