"""Reconciliation statement export for Payme's GetStatement audit."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from .amounts import AmountConverter
from .models import PaymeTransaction
from .schemas import StatementEntry, StatementResult

logger = logging.getLogger(__name__)


class StatementExporter:
    """Read-only export of transactions created within a time window."""

    def __init__(self, session_factory: async_sessionmaker, amounts: AmountConverter):
        self.session_factory = session_factory
        self.amounts = amounts

    async def get_statement(self, from_time: int, to_time: int) -> StatementResult:
        """
        List transactions whose ``create_time`` lies in ``[from_time, to_time]``.

        Newest first. Amounts are reported in minor units.
        """
        if from_time > to_time:
            return StatementResult(transactions=[])

        async with self.session_factory() as session:
            result = await session.execute(
                select(PaymeTransaction)
                .where(
                    PaymeTransaction.create_time >= from_time,
                    PaymeTransaction.create_time <= to_time,
                )
                .order_by(PaymeTransaction.create_time.desc(), PaymeTransaction.id.desc())
            )
            transactions = result.scalars().all()

        logger.info(f"Statement {from_time}..{to_time}: {len(transactions)} transactions")

        return StatementResult(
            transactions=[
                StatementEntry(
                    id=tx.payme_id,
                    time=tx.payme_time,
                    amount=self.amounts.to_minor_units(tx.amount),
                    account=tx.account,
                    create_time=tx.create_time,
                    perform_time=tx.perform_time or 0,
                    cancel_time=tx.cancel_time or 0,
                    transaction=tx.transaction,
                    state=tx.state,
                    reason=tx.reason,
                )
                for tx in transactions
            ]
        )
