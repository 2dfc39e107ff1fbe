from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, StrictInt, field_validator


def normalize_payer(payer: str) -> str:
    return payer.strip().upper()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # naive timestamps are taken to be UTC so every key stays comparable
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Transaction(BaseModel):
    payer: str = Field(..., min_length=1)
    points: int
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)

    @field_validator("payer")
    @classmethod
    def _normalize_payer(cls, value: str) -> str:
        value = normalize_payer(value)
        if not value:
            raise ValueError("payer must not be blank")
        return value

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def is_credit(self) -> bool:
        return self.points >= 0


class QueueEntry(BaseModel):
    """Unconsumed balance of one credit, keyed by the credit's timestamp."""

    payer: str
    points: int = Field(..., ge=0)
    timestamp: datetime
    sequence: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "QueueEntry":
        return cls(
            payer=transaction.payer,
            points=transaction.points,
            timestamp=transaction.timestamp,
        )

    def remainder(self, consumed: int) -> "QueueEntry":
        return self.model_copy(update={"points": self.points - consumed})


class AddTransactionRequest(BaseModel):
    payer: str = Field(..., min_length=1, description="Payer name, case-insensitive")
    points: StrictInt = Field(..., description="Positive to credit, negative to debit")
    timestamp: Optional[datetime] = Field(default=None, description="Defaults to time of acceptance")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "payer": "DANNON",
            "points": 1000,
            "timestamp": "2020-11-02T14:00:00Z"
        }
    })

    def to_transaction(self) -> Transaction:
        if self.timestamp is None:
            return Transaction(payer=self.payer, points=self.points)
        return Transaction(payer=self.payer, points=self.points, timestamp=self.timestamp)


class SpendRequest(BaseModel):
    points: StrictInt = Field(..., ge=0, description="Points to spend across payers")

    model_config = ConfigDict(json_schema_extra={
        "example": {"points": 5000}
    })


class ErrorResponse(BaseModel):
    error: str
    detail: str
