from datetime import date
from decimal import Decimal

import pytest
from freezegun import freeze_time

from societyledger.exceptions import (
    AccountNotFound,
    AlreadyReversed,
    BackdatedEntry,
    BillNotFound,
    InvalidAmount,
    ValidationError,
)
from societyledger.models.audit_log import AuditEventType
from societyledger.models.bill import BillInput, BillStatus, ChargeLine
from societyledger.models.ledger import EntryCategory, EntryDirection, PaymentMode
from societyledger.services.events import PAYMENT_RECORDED


@pytest.fixture()
def thousand_bill(services, society, flat):
    [bill] = services.bills.commit(
        society.id, "2025-01", [BillInput(account_id=flat.id, charges=[ChargeLine(name="Maintenance", amount=1000)])]
    )
    return bill


@pytest.fixture()
def two_bills(services, society, billed_flat):
    services.bills.commit(society.id, "2025-02")
    return services.bills.list_account_bills(billed_flat.id)


class TestRecordPayment:
    def test_partial_then_full(self, services, society, flat, thousand_bill):
        entry = services.payments.record_payment(society.id, flat.id, "400", paid_on=date(2025, 1, 5))

        assert entry.direction == EntryDirection.CREDIT
        assert entry.category == EntryCategory.PAYMENT
        assert entry.balance_after == Decimal("600.00")
        bill = services.bills.get_bill(thousand_bill.id)
        assert bill.status == BillStatus.PARTIAL
        assert bill.balance_amount == Decimal("600.00")

        services.payments.record_payment(society.id, flat.id, "600", paid_on=date(2025, 1, 6))

        bill = services.bills.get_bill(thousand_bill.id)
        assert bill.status == BillStatus.PAID
        assert bill.balance_amount == Decimal("0.00")
        assert services.ledger.current_balance(flat.id) == Decimal("0.00")

    def test_oldest_period_settled_first(self, services, society, billed_flat, two_bills):
        entry = services.payments.record_payment(society.id, billed_flat.id, "3000", paid_on=date(2025, 2, 3))

        january, february = services.bills.list_account_bills(billed_flat.id)
        assert january.status == BillStatus.PAID
        assert february.status == BillStatus.PARTIAL
        assert february.amount_paid == Decimal("500.00")
        allocations = services.payments.allocations_for(entry.id)
        assert [(a.bill_id, a.amount) for a in allocations] == [
            (january.id, Decimal("2500.00")),
            (february.id, Decimal("500.00")),
        ]

    def test_targeted_bill(self, services, society, billed_flat, two_bills):
        february = two_bills[1]
        services.payments.record_payment(
            society.id, billed_flat.id, "1000", paid_on=date(2025, 2, 3), bill_id=february.id
        )

        january, february = services.bills.list_account_bills(billed_flat.id)
        assert january.status == BillStatus.UNPAID
        assert february.status == BillStatus.PARTIAL

    def test_overpayment_rejected(self, services, society, billed_flat):
        with pytest.raises(ValidationError, match="exceeds outstanding balance"):
            services.payments.record_payment(society.id, billed_flat.id, "2500.01", paid_on=date(2025, 1, 5))
        assert len(services.ledger.entries_in_range(billed_flat.id)) == 1

    def test_no_balance_rejected(self, services, society, flat):
        with pytest.raises(ValidationError, match="no outstanding balance"):
            services.payments.record_payment(society.id, flat.id, "100", paid_on=date(2025, 1, 5))

    @pytest.mark.parametrize("amount", ["0", "-10"])
    def test_amount_must_be_positive(self, services, society, billed_flat, amount):
        with pytest.raises(InvalidAmount):
            services.payments.record_payment(society.id, billed_flat.id, amount)

    @pytest.mark.parametrize("amount", ["12,00x", "NaN", "Infinity"])
    def test_malformed_amount(self, services, society, billed_flat, amount):
        with pytest.raises(ValidationError):
            services.payments.record_payment(society.id, billed_flat.id, amount)
        assert services.ledger.current_balance(billed_flat.id) == Decimal("2500.00")

    def test_account_of_other_tenant(self, services, billed_flat):
        other = services.tenants.create_tenant("Other CHS")
        with pytest.raises(AccountNotFound):
            services.payments.record_payment(other.id, billed_flat.id, "100", paid_on=date(2025, 1, 5))

    def test_unknown_bill(self, services, society, billed_flat):
        with pytest.raises(BillNotFound):
            services.payments.record_payment(
                society.id, billed_flat.id, "100", paid_on=date(2025, 1, 5), bill_id=9999
            )

    def test_bill_of_other_account(self, services, society, billed_flat):
        other = services.accounts.create_account(society.id, "102", "1000", wing="A")
        [bill] = services.bills.commit(society.id, "2025-02", [BillInput(account_id=other.id, charges=[])])
        with pytest.raises(ValidationError, match="does not belong"):
            services.payments.record_payment(
                society.id, billed_flat.id, "100", paid_on=date(2025, 1, 5), bill_id=bill.id
            )

    def test_backdated_payment(self, services, society, billed_flat):
        with pytest.raises(BackdatedEntry):
            services.payments.record_payment(society.id, billed_flat.id, "100", paid_on=date(2024, 12, 31))

    def test_mode_and_details_stored(self, services, society, billed_flat):
        entry = services.payments.record_payment(
            society.id,
            billed_flat.id,
            "2500",
            paid_on=date(2025, 1, 5),
            mode=PaymentMode.CHEQUE,
            details={"cheque_no": "004512"},
            notes="HDFC",
        )
        stored = services.ledger.latest_entry(billed_flat.id)
        assert stored.id == entry.id
        assert stored.payment_mode == PaymentMode.CHEQUE
        assert stored.payment_details == {"cheque_no": "004512"}
        assert stored.description == "Payment received via Cheque: HDFC"

    def test_audit_and_event(self, services, events, society, billed_flat):
        received = []
        events.subscribe(PAYMENT_RECORDED, lambda name, payload: received.append(payload))

        entry = services.payments.record_payment(society.id, billed_flat.id, "1000", paid_on=date(2025, 1, 5))

        assert received[0]["entry_id"] == entry.id
        assert received[0]["amount"] == "1000.00"
        assert received[0]["balance_after"] == "1500.00"
        [log] = services.audit.list_by_entity("ledger_entry", entry.id)
        assert log.event_type == AuditEventType.PAYMENT_RECORD
        bill = services.bills.list_account_bills(billed_flat.id)[0]
        assert log.metadata == {"allocations": {str(bill.id): "1000.00"}}

    def test_failing_subscriber_does_not_undo_payment(self, services, events, society, billed_flat):
        def boom(name, payload):
            raise RuntimeError("mailer down")

        events.subscribe(PAYMENT_RECORDED, boom)
        services.payments.record_payment(society.id, billed_flat.id, "1000", paid_on=date(2025, 1, 5))
        assert services.ledger.current_balance(billed_flat.id) == Decimal("1500.00")


class TestPaymentReversal:
    def test_reversal_unapplies_allocations(self, services, society, billed_flat):
        payment = services.payments.record_payment(society.id, billed_flat.id, "2500", paid_on=date(2025, 1, 5))
        assert services.bills.list_account_bills(billed_flat.id)[0].status == BillStatus.PAID

        reversal = services.ledger.reverse(payment.id, "cheque bounced", entry_date=date(2025, 1, 9))

        assert reversal.direction == EntryDirection.DEBIT
        assert reversal.category == EntryCategory.PAYMENT
        assert reversal.reversal_of_id == payment.id
        assert reversal.balance_after == Decimal("2500.00")
        bill = services.bills.list_account_bills(billed_flat.id)[0]
        assert bill.status == BillStatus.UNPAID
        assert bill.amount_paid == Decimal("0.00")

    def test_partial_reversal_across_bills(self, services, society, billed_flat, two_bills):
        services.payments.record_payment(society.id, billed_flat.id, "2000", paid_on=date(2025, 2, 2))
        payment = services.payments.record_payment(society.id, billed_flat.id, "1000", paid_on=date(2025, 2, 3))

        services.ledger.reverse(payment.id, entry_date=date(2025, 2, 4))

        january, february = services.bills.list_account_bills(billed_flat.id)
        assert january.status == BillStatus.PARTIAL
        assert january.amount_paid == Decimal("2000.00")
        assert february.status == BillStatus.UNPAID
        assert services.ledger.current_balance(billed_flat.id) == Decimal("3000.00")

    def test_second_reversal_rejected(self, services, society, billed_flat):
        payment = services.payments.record_payment(society.id, billed_flat.id, "500", paid_on=date(2025, 1, 5))
        services.ledger.reverse(payment.id, entry_date=date(2025, 1, 6))
        with pytest.raises(AlreadyReversed):
            services.ledger.reverse(payment.id, entry_date=date(2025, 1, 7))
        assert services.ledger.current_balance(billed_flat.id) == Decimal("2500.00")


class TestDefaultPaymentDate:
    @freeze_time("2025-01-07 06:00:00")
    def test_today_in_tenant_timezone(self, services, society, billed_flat):
        entry = services.payments.record_payment(society.id, billed_flat.id, "500")
        assert entry.entry_date == date(2025, 1, 7)

    @freeze_time("2025-01-07 20:00:00")
    def test_late_evening_utc_is_next_day_in_india(self, services, society, billed_flat):
        entry = services.payments.record_payment(society.id, billed_flat.id, "500")
        assert entry.entry_date == date(2025, 1, 8)
