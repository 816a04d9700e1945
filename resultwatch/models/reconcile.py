"""Reconciliation pass state and results."""

from dataclasses import dataclass, field
from enum import Enum

from .portal import DeliveryCandidate, ObservedItem


class PassState(str, Enum):
    """Steps of one account's reconciliation pass."""

    INIT = "init"
    AUTHENTICATING = "authenticating"
    FETCHING_NOTIFICATIONS = "fetching_notifications"
    EXTRACTING = "extracting"
    DIFFING = "diffing"
    ACKNOWLEDGING = "acknowledging"
    FORWARDING = "forwarding"
    DONE = "done"
    FAILED = "failed"


@dataclass
class DeliveryResult:
    """Outcome of one push to one device token."""

    token: str
    success: bool
    reason: str | None = None
    ticket: dict | None = None

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "success": self.success,
            "reason": self.reason,
            "ticket": self.ticket,
        }


@dataclass
class AcknowledgmentReport:
    """Which portal pages were visited to mark items seen."""

    attempted: list[str] = field(default_factory=list)
    acknowledged: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)  # url -> error

    def to_dict(self) -> dict:
        return {
            "attempted": len(self.attempted),
            "acknowledged": len(self.acknowledged),
            "errors": dict(self.errors),
        }


@dataclass
class AccountResult:
    """Result of one account's pass, successful or not."""

    account_id: str
    display_name: str
    success: bool
    state: PassState
    error_kind: str | None = None
    error: str | None = None
    items: list[ObservedItem] = field(default_factory=list)
    new_items: list[ObservedItem] = field(default_factory=list)
    candidates: list[DeliveryCandidate] = field(default_factory=list)
    deliveries: list[DeliveryResult] = field(default_factory=list)
    acknowledgements: AcknowledgmentReport | None = None
    result_url: str | None = None

    @property
    def items_found(self) -> int:
        return len(self.items)

    @property
    def is_new(self) -> bool:
        return bool(self.new_items)

    @property
    def delivered(self) -> bool:
        return any(d.success for d in self.deliveries)

    def to_dict(self) -> dict:
        data = {
            "userId": self.account_id,
            "userName": self.display_name,
            "success": self.success,
            "state": self.state.value,
        }
        if not self.success:
            data["errorKind"] = self.error_kind
            data["error"] = self.error
            data["notifications"] = []
            return data

        # New items are reported with their links; otherwise everything seen
        notifications = (
            [c.to_dict() for c in self.candidates]
            if self.candidates
            else [i.to_dict() for i in (self.new_items or self.items)]
        )
        data.update(
            {
                "isNew": self.is_new,
                "totalCount": self.items_found,
                "newCount": len(self.new_items),
                "notifications": notifications,
                "resultsUrl": self.result_url,
                "pushSent": self.delivered,
                "deliveries": [d.to_dict() for d in self.deliveries],
            }
        )
        if self.acknowledgements is not None:
            data["acknowledgements"] = self.acknowledgements.to_dict()
        return data


@dataclass
class BatchResult:
    """One AccountResult per submitted account, in submission order."""

    results: list[AccountResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def new_notifications(self) -> list[AccountResult]:
        return [r for r in self.results if r.success and r.is_new]

    @property
    def pushed_count(self) -> int:
        return sum(1 for r in self.results if r.delivered)
