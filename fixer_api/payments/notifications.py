from dataclasses import dataclass, field
from typing import Optional

FUNDING = 'funding'
TRANSFER = 'transfer'
REFUND = 'refund'
ACCOUNT = 'account'

# Payment.type for each money-moving notification kind
PAYMENT_TYPE_FOR_KIND = {
    FUNDING: 'payment',
    TRANSFER: 'transfer',
    REFUND: 'refund',
}


@dataclass
class ProcessorNotification:
    """A processor status change, normalized away from the vendor payload."""
    event_id: str
    kind: str
    status: str  # providers.base SUCCEEDED / FAILED / UNKNOWN
    event_type: str = ''
    transaction_id: Optional[str] = None
    idempotency_key: Optional[str] = None
    account_id: Optional[str] = None
    account_status: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            'event_id': self.event_id,
            'kind': self.kind,
            'status': self.status,
            'event_type': self.event_type,
            'transaction_id': self.transaction_id,
            'idempotency_key': self.idempotency_key,
            'account_id': self.account_id,
            'account_status': self.account_status,
            'metadata': self.metadata,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(**data)
