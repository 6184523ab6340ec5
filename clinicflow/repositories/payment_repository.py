"""SQL storage for consultation bills."""

from decimal import Decimal

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.core.exceptions import NotFoundException
from clinicflow.domain.entities import BillingItem, Payment
from clinicflow.domain.statuses import PaymentStatus
from clinicflow.models.payments import payment_items, payments


def _to_entity(row: Row, items: list[BillingItem]) -> Payment:
    return Payment(
        id=row.id,
        patient_id=row.patient_id,
        appointment_id=row.appointment_id,
        total_amount=Decimal(row.total_amount),
        discount=Decimal(row.discount),
        amount_paid=Decimal(row.amount_paid),
        status=PaymentStatus(row.status),
        payment_method=row.payment_method,
        bill_date=row.bill_date,
        items=items,
    )


class SqlPaymentRepository:
    """Payment repository backed by PostgreSQL."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def find_by_appointment_id(self, appointment_id: int) -> Payment | None:
        result = await self.db.execute(
            select(payments).where(payments.c.appointment_id == appointment_id)
        )
        row = result.fetchone()
        if row is None:
            return None
        return _to_entity(row, await self._items(row.id))

    async def create(self, payment: Payment) -> Payment:
        stmt = (
            insert(payments)
            .values(
                patient_id=payment.patient_id,
                appointment_id=payment.appointment_id,
                total_amount=payment.total_amount,
                discount=payment.discount,
                amount_paid=payment.amount_paid,
                status=payment.status.value,
                payment_method=payment.payment_method,
            )
            .returning(payments)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        await self._insert_items(row.id, payment.items)
        return _to_entity(row, list(payment.items))

    async def replace_items(self, payment: Payment) -> Payment:
        """
        Overwrite the bill lines and total of an existing payment.

        Raises:
            NotFoundException: If the payment no longer exists
        """
        stmt = (
            update(payments)
            .where(payments.c.id == payment.id)
            .values(
                total_amount=payment.total_amount,
                discount=payment.discount,
                updated_at=func.now(),
            )
            .returning(payments)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if row is None:
            raise NotFoundException(f"Payment {payment.id} not found")

        await self.db.execute(delete(payment_items).where(payment_items.c.payment_id == payment.id))
        await self._insert_items(payment.id, payment.items)
        return _to_entity(row, list(payment.items))

    async def _items(self, payment_id: int) -> list[BillingItem]:
        result = await self.db.execute(
            select(payment_items)
            .where(payment_items.c.payment_id == payment_id)
            .order_by(payment_items.c.id)
        )
        return [
            BillingItem(
                description=row.description,
                amount=Decimal(row.unit_cost),
                quantity=row.quantity,
            )
            for row in result.fetchall()
        ]

    async def _insert_items(self, payment_id: int, items: list[BillingItem]) -> None:
        if not items:
            return
        await self.db.execute(
            insert(payment_items),
            [
                {
                    "payment_id": payment_id,
                    "description": item.description,
                    "quantity": item.quantity,
                    "unit_cost": item.amount,
                    "total_cost": item.total,
                }
                for item in items
            ],
        )
