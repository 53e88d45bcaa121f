"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol


class SubscriberStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


@dataclass
class TransferSpec:
    """One leg of a split: amount moved from the charge to a connected account"""

    destination_account: str
    amount_cents: int

    def to_metadata(self) -> Dict[str, Any]:
        return {"destination_account": self.destination_account, "amount": self.amount_cents}


@dataclass
class SplitPlan:
    """Validated pairing of transfer amounts with destination accounts"""

    transfers: List[TransferSpec] = field(default_factory=list)
    total_transfer_cents: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.transfers


@dataclass
class CreatedTransfer:
    id: str
    amount: int
    destination: str


@dataclass
class TransferFailure:
    destination: str
    amount: int
    error: str


@dataclass
class ChargeResult:
    """Outcome of one charge plus its dependent transfers"""

    payment_intent_id: str
    transfer_group: str
    charge_id: Optional[str]
    transfers_created: List[CreatedTransfer]
    transfer_errors: List[TransferFailure]
    platform_retained_amount_cents: int


@dataclass
class DeferredCharge:
    """Unconfirmed charge handed back to the client for confirmation"""

    client_secret: str
    transfer_group: str
    splits: List[TransferSpec]


@dataclass
class Subscriber:
    """Recurring payer record kept in the user store under an encoded email key"""

    key: str
    email: str
    status: SubscriberStatus
    paid_until: Optional[datetime]
    stripe_customer_id: str = ""
    name: str = ""


@dataclass
class RenewalBatchResult:
    """Summary of one scheduled renewal run"""

    processed_count: int = 0
    errors_count: int = 0
    skipped_count: int = 0

    @property
    def message(self) -> str:
        return f"Renewal check complete. Successes: {self.processed_count}, Failures: {self.errors_count}"


@dataclass
class CustomerLookup:
    """Stripe customer found by email, with the card shown to the user"""

    customer: Dict[str, Any]
    card_last4: Optional[str]


@dataclass
class EnsuredCustomer:
    customer_id: str
    created: bool


class PushSubscriptionStore(Protocol):
    """Durable registry of Web Push subscriptions, keyed by endpoint URL"""

    async def upsert(self, endpoint: str, subscription: Dict[str, Any]) -> None: ...

    async def all(self) -> List[Dict[str, Any]]: ...

    async def remove(self, endpoint: str) -> None: ...


@dataclass
class Payer:
    """Customer and saved card a charge is drawn from"""

    customer_id: str
    payment_method_id: str


@dataclass
class BusinessFailure:
    """Expected negative outcome reported to the caller as success=false, not raised"""

    error: str
