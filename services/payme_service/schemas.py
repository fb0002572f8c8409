"""Request params and result models of the Payme merchant API."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, StrictInt


# Request params
class CheckPerformTransactionParams(BaseModel):
    """Params of CheckPerformTransaction."""
    amount: StrictInt
    account: Dict[str, Any]


class CreateTransactionParams(BaseModel):
    """Params of CreateTransaction."""
    id: str = Field(min_length=1)
    time: StrictInt
    amount: StrictInt
    account: Dict[str, Any]


class PerformTransactionParams(BaseModel):
    """Params of PerformTransaction."""
    id: str = Field(min_length=1)


class CancelTransactionParams(BaseModel):
    """Params of CancelTransaction."""
    id: str = Field(min_length=1)
    reason: StrictInt


class CheckTransactionParams(BaseModel):
    """Params of CheckTransaction."""
    id: str = Field(min_length=1)


class GetStatementParams(BaseModel):
    """Params of GetStatement."""
    from_time: StrictInt = Field(alias="from")
    to_time: StrictInt = Field(alias="to")


# Results
class CheckPerformResult(BaseModel):
    """Result of CheckPerformTransaction."""
    allow: bool
    additional: Dict[str, Any] = Field(default_factory=dict)


class CreateTransactionResult(BaseModel):
    """Result of CreateTransaction."""
    create_time: int
    transaction: str
    state: int


class PerformTransactionResult(BaseModel):
    """Result of PerformTransaction."""
    transaction: str
    perform_time: int
    state: int


class CancelTransactionResult(BaseModel):
    """Result of CancelTransaction."""
    transaction: str
    cancel_time: int
    state: int


class CheckTransactionResult(BaseModel):
    """Result of CheckTransaction."""
    create_time: int
    perform_time: int
    cancel_time: int
    transaction: str
    state: int
    reason: Optional[int] = None


class StatementEntry(BaseModel):
    """A single transaction in a GetStatement result."""
    id: str
    time: int
    amount: int
    account: Dict[str, Any]
    create_time: int
    perform_time: int
    cancel_time: int
    transaction: str
    state: int
    reason: Optional[int] = None


class StatementResult(BaseModel):
    """Result of GetStatement."""
    transactions: List[StatementEntry]


class OrderPaymentStatus(BaseModel):
    """Payment status of an order, as shown to its owner."""
    order_id: int
    user_id: Optional[int] = None
    order_status: str
    payment_status: str
    transaction_id: Optional[str] = None
    amount: float
    currency: str
    paid_at: Optional[str] = None
    updated_at: Optional[str] = None
