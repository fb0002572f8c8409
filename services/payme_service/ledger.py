"""
Transaction ledger for Payme payments.

The ledger owns every state transition of a Payme transaction and the
payment fields of the linked order:

    CREATED --perform--> COMPLETED --cancel--> CANCELLED_AFTER_COMPLETE
       |
       +------cancel---> CANCELLED

Each operation runs in a single database transaction with the touched
rows locked (``SELECT ... FOR UPDATE``), so a transition is either fully
applied or not at all. Payme retries aggressively and may deliver the
same call twice at once; repeated calls replay the recorded result
instead of applying the transition again.
"""
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .amounts import AmountConverter
from .errors import (
    CouldNotPerformError,
    InvalidAccountError,
    InvalidAmountError,
    TransactionNotFoundError,
)
from .models import Order, OrderStatus, PaymentStatus, PaymeTransaction, TransactionState
from .schemas import (
    CancelTransactionResult,
    CheckPerformResult,
    CheckTransactionResult,
    CreateTransactionResult,
    OrderPaymentStatus,
    PerformTransactionResult,
)

logger = logging.getLogger(__name__)

# Reads after a lost insert race before giving up on the order
CREATE_ATTEMPTS = 3


def current_millis() -> int:
    """Current Unix time in milliseconds, the unit Payme uses for timestamps."""
    return int(time.time() * 1000)


def parse_order_ref(order_ref: Any) -> int:
    """Turn the account field sent by Payme into an order id."""
    if isinstance(order_ref, bool):
        raise InvalidAccountError(data="order_id")
    if isinstance(order_ref, int):
        return order_ref
    if isinstance(order_ref, str) and order_ref.strip().isdigit():
        return int(order_ref.strip())
    raise InvalidAccountError(data="order_id")


class TransactionLedger:
    """Persistent record of Payme transactions and their order linkage."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        amounts: AmountConverter,
        clock: Callable[[], int] = current_millis,
    ):
        """
        Initialize the ledger.

        Args:
            session_factory: Async session factory for database access
            amounts: Converter used for every amount comparison
            clock: Source of millisecond timestamps for recorded transitions
        """
        self.session_factory = session_factory
        self.amounts = amounts
        self.clock = clock

    async def check_perform_transaction(self, order_ref: Any, amount: int) -> CheckPerformResult:
        """Check whether an order can be paid with the given amount. Never writes."""
        order_id = parse_order_ref(order_ref)

        async with self.session_factory() as session:
            order = await session.get(Order, order_id)
            if order is None:
                raise InvalidAccountError(data="order_id")
            self._ensure_payable(order, amount)

            return CheckPerformResult(
                allow=True,
                additional={
                    "order_id": order.id,
                    "order_status": order.status,
                    "amount": float(self.amounts.from_minor_units(amount)),
                    "currency": order.currency,
                },
            )

    async def create_transaction(
        self,
        order_ref: Any,
        payme_id: str,
        payme_time: int,
        amount: int,
        account: Dict[str, Any],
    ) -> CreateTransactionResult:
        """
        Create the transaction for an order, or replay its creation.

        A second call with the same Payme id returns the original
        ``create_time`` and ``transaction`` with state CREATED, whatever
        happened to the transaction since.
        """
        order_id = parse_order_ref(order_ref)

        for attempt in range(1, CREATE_ATTEMPTS + 1):
            try:
                return await self._create_transaction(
                    order_id, payme_id, payme_time, amount, account
                )
            except IntegrityError:
                # Another delivery inserted first; its row decides the outcome
                logger.warning(
                    f"Concurrent CreateTransaction for order {order_id} "
                    f"(transaction {payme_id}), attempt {attempt}, re-reading"
                )

        # The conflicting row never became visible to the read path
        raise InvalidAccountError(
            "Order is already linked to another transaction", data="order_id"
        )

    async def _create_transaction(
        self,
        order_id: int,
        payme_id: str,
        payme_time: int,
        amount: int,
        account: Dict[str, Any],
    ) -> CreateTransactionResult:
        async with self.session_factory() as session:
            async with session.begin():
                existing = await self._find_transaction(session, payme_id)
                if existing is not None:
                    logger.info(f"Transaction {payme_id} already exists, replaying creation")
                    return self._replay_creation(existing, order_id, amount)

                order = await session.get(Order, order_id, with_for_update=True)
                if order is None:
                    raise InvalidAccountError(data="order_id")
                if order.transaction_id is not None and order.transaction_id != payme_id:
                    raise InvalidAccountError(
                        "Order is already linked to another transaction", data="order_id"
                    )
                self._ensure_payable(order, amount)

                transaction = PaymeTransaction(
                    payme_id=payme_id,
                    order_id=order.id,
                    amount=order.amount,
                    account=account,
                    payme_time=payme_time,
                    create_time=self.clock(),
                    state=TransactionState.CREATED.value,
                )
                session.add(transaction)

                order.transaction_id = payme_id
                order.payment_status = PaymentStatus.PENDING.value
                order.payment_method = "payme"
                order.transaction_created_at = datetime.utcnow()

                # Assigns the internal id; unique constraints fire here on a race
                await session.flush()

                result = CreateTransactionResult(
                    create_time=transaction.create_time,
                    transaction=transaction.transaction,
                    state=TransactionState.CREATED.value,
                )

        logger.info(f"Created transaction {payme_id} for order {order_id}")
        return result

    async def perform_transaction(self, payme_id: str) -> PerformTransactionResult:
        """Complete a created transaction and mark its order paid."""
        async with self.session_factory() as session:
            async with session.begin():
                transaction = await self._get_transaction(session, payme_id)
                state = TransactionState(transaction.state)

                if state is TransactionState.COMPLETED:
                    logger.info(f"Transaction {payme_id} already performed, replaying")
                    return PerformTransactionResult(
                        transaction=transaction.transaction,
                        perform_time=transaction.perform_time,
                        state=state.value,
                    )
                if state.is_cancelled:
                    raise CouldNotPerformError(
                        f"Transaction is cancelled (state {state.value})", data="id"
                    )

                transaction.state = TransactionState.COMPLETED.value
                transaction.perform_time = self.clock()

                order = await session.get(Order, transaction.order_id, with_for_update=True)
                order.status = OrderStatus.ACTIVE.value
                order.payment_status = PaymentStatus.PAID.value
                order.paid_at = datetime.utcnow()

                result = PerformTransactionResult(
                    transaction=transaction.transaction,
                    perform_time=transaction.perform_time,
                    state=TransactionState.COMPLETED.value,
                )

        logger.info(f"Performed transaction {payme_id}, order {order.id} is paid")
        return result

    async def cancel_transaction(self, payme_id: str, reason: int) -> CancelTransactionResult:
        """Cancel a transaction, before or after it was performed."""
        async with self.session_factory() as session:
            async with session.begin():
                transaction = await self._get_transaction(session, payme_id)
                state = TransactionState(transaction.state)

                if state.is_cancelled:
                    logger.info(f"Transaction {payme_id} already cancelled, replaying")
                    return CancelTransactionResult(
                        transaction=transaction.transaction,
                        cancel_time=transaction.cancel_time,
                        state=state.value,
                    )

                if state is TransactionState.COMPLETED:
                    new_state = TransactionState.CANCELLED_AFTER_COMPLETE
                else:
                    new_state = TransactionState.CANCELLED

                transaction.state = new_state.value
                transaction.cancel_time = self.clock()
                transaction.reason = reason

                order = await session.get(Order, transaction.order_id, with_for_update=True)
                order.status = OrderStatus.CANCELLED.value
                order.payment_status = PaymentStatus.FAILED.value

                result = CancelTransactionResult(
                    transaction=transaction.transaction,
                    cancel_time=transaction.cancel_time,
                    state=new_state.value,
                )

        logger.info(
            f"Cancelled transaction {payme_id} (reason {reason}), "
            f"state {state.name} -> {new_state.name}"
        )
        return result

    async def check_transaction(self, payme_id: str) -> CheckTransactionResult:
        """Reconstruct the full transaction record from persisted fields."""
        async with self.session_factory() as session:
            transaction = await self._get_transaction(session, payme_id, lock=False)
            return CheckTransactionResult(
                create_time=transaction.create_time,
                perform_time=transaction.perform_time or 0,
                cancel_time=transaction.cancel_time or 0,
                transaction=transaction.transaction,
                state=transaction.state,
                reason=transaction.reason,
            )

    async def get_order_payment_status(self, order_id: int) -> Optional[OrderPaymentStatus]:
        """Payment fields of an order, or None if the order does not exist."""
        async with self.session_factory() as session:
            order = await session.get(Order, order_id)
            if order is None:
                return None
            return OrderPaymentStatus(
                order_id=order.id,
                user_id=order.user_id,
                order_status=order.status,
                payment_status=order.payment_status,
                transaction_id=order.transaction_id,
                amount=float(order.amount),
                currency=order.currency,
                paid_at=order.paid_at.isoformat() if order.paid_at else None,
                updated_at=order.updated_at.isoformat() if order.updated_at else None,
            )

    def _ensure_payable(self, order: Order, amount: int):
        """Raise unless the order is unpaid and the amount matches it exactly."""
        if order.payment_status == PaymentStatus.PAID.value:
            raise CouldNotPerformError("Order is already paid", data="order_id")

        if amount <= 0:
            raise InvalidAmountError("Amount must be greater than zero", data="amount")

        expected = self.amounts.to_minor_units(order.amount)
        if amount != expected:
            raise InvalidAmountError(
                f"Invalid amount. Expected {expected}, got {amount}", data="amount"
            )

    def _replay_creation(
        self, transaction: PaymeTransaction, order_id: int, amount: int
    ) -> CreateTransactionResult:
        if transaction.order_id != order_id:
            raise InvalidAccountError(
                "Transaction belongs to another order", data="order_id"
            )
        if self.amounts.to_minor_units(transaction.amount) != amount:
            raise InvalidAmountError(
                "Transaction parameters do not match the existing transaction", data="amount"
            )

        return CreateTransactionResult(
            create_time=transaction.create_time,
            transaction=transaction.transaction,
            state=TransactionState.CREATED.value,
        )

    @staticmethod
    async def _find_transaction(
        session: AsyncSession, payme_id: str, lock: bool = True
    ) -> Optional[PaymeTransaction]:
        query = select(PaymeTransaction).where(PaymeTransaction.payme_id == payme_id)
        if lock:
            query = query.with_for_update()
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def _get_transaction(
        self, session: AsyncSession, payme_id: str, lock: bool = True
    ) -> PaymeTransaction:
        transaction = await self._find_transaction(session, payme_id, lock=lock)
        if transaction is None:
            raise TransactionNotFoundError(data="id")
        return transaction
