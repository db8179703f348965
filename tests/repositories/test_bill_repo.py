from datetime import date
from decimal import Decimal

import pytest

from societyledger.exceptions import BillLocked, DuplicatePeriod
from societyledger.models.bill import BillStatus, ChargeLine, PaymentAllocation


class TestBillRepoCRUD:
    def _bill(self, sample_bill, account, **overrides):
        return sample_bill(tenant_id=account.tenant_id, account_id=account.id, **overrides)

    def test_create_and_get(self, bill_repo, account, sample_bill):
        created = bill_repo.create(self._bill(sample_bill, account, previous_balance=Decimal("150.00")))

        assert created.id is not None
        assert created.uuid != ""
        assert created.total_amount == Decimal("2500.00")
        assert created.amount_paid == Decimal("0.00")
        assert created.previous_balance == Decimal("150.00")
        assert created.due_date == date(2025, 1, 10)
        assert created.status == BillStatus.UNPAID
        assert [line.name for line in created.charges] == ["Maintenance", "Sinking Fund"]
        assert created.charges[0].basis == "₹2.00/sq ft × 1000 sq ft"

    def test_get_by_id_not_found(self, bill_repo):
        assert bill_repo.get_by_id(9999) is None

    def test_get_by_uuid(self, bill_repo, account, sample_bill):
        created = bill_repo.create(self._bill(sample_bill, account))
        assert bill_repo.get_by_uuid(created.uuid).id == created.id
        assert bill_repo.get_by_uuid("nonexistent") is None

    def test_duplicate_period(self, bill_repo, account, sample_bill):
        bill_repo.create(self._bill(sample_bill, account))
        with pytest.raises(DuplicatePeriod) as exc_info:
            bill_repo.create(self._bill(sample_bill, account))
        assert exc_info.value.account_ids == [account.id]

    def test_existing_accounts(self, bill_repo, account, sample_bill):
        bill_repo.create(self._bill(sample_bill, account))
        assert bill_repo.existing_accounts(account.tenant_id, "2025-01", [account.id, 999]) == [account.id]
        assert bill_repo.existing_accounts(account.tenant_id, "2025-02", [account.id]) == []
        assert bill_repo.existing_accounts(account.tenant_id, "2025-01", []) == []

    def test_list_by_account_oldest_first(self, bill_repo, account, sample_bill):
        bill_repo.create(self._bill(sample_bill, account, period="2025-03"))
        bill_repo.create(self._bill(sample_bill, account, period="2025-01"))
        bills = bill_repo.list_by_account(account.id)
        assert [b.period for b in bills] == ["2025-01", "2025-03"]
        assert all(len(b.charges) == 2 for b in bills)

    def test_list_by_account_status_filter(self, bill_repo, account, sample_bill):
        paid = bill_repo.create(self._bill(sample_bill, account, period="2025-01"))
        bill_repo.create(self._bill(sample_bill, account, period="2025-02"))
        bill_repo.update_payment(paid.id, paid.total_amount, BillStatus.PAID)

        open_bills = bill_repo.list_by_account(account.id, (BillStatus.UNPAID, BillStatus.PARTIAL))
        assert [b.period for b in open_bills] == ["2025-02"]

    def test_list_by_period(self, bill_repo, account, sample_bill):
        bill_repo.create(self._bill(sample_bill, account))
        assert len(bill_repo.list_by_period(account.tenant_id, "2025-01")) == 1
        assert bill_repo.list_by_period(account.tenant_id, "2025-02") == []


class TestBillRepoUpdates:
    def _create(self, bill_repo, sample_bill, account, **overrides):
        return bill_repo.create(sample_bill(tenant_id=account.tenant_id, account_id=account.id, **overrides))

    def test_update_payment(self, bill_repo, account, sample_bill):
        bill = self._create(bill_repo, sample_bill, account)
        bill_repo.update_payment(bill.id, Decimal("400.00"), BillStatus.PARTIAL)
        fetched = bill_repo.get_by_id(bill.id)

        assert fetched.amount_paid == Decimal("400.00")
        assert fetched.balance_amount == Decimal("2100.00")
        assert fetched.status == BillStatus.PARTIAL

    def test_update_status_conditional(self, bill_repo, account, sample_bill):
        bill = self._create(bill_repo, sample_bill, account)
        assert bill_repo.update_status(bill.id, BillStatus.OVERDUE, expected=BillStatus.PARTIAL) is False
        assert bill_repo.update_status(bill.id, BillStatus.OVERDUE, expected=BillStatus.UNPAID) is True
        assert bill_repo.get_by_id(bill.id).status == BillStatus.OVERDUE

    def test_list_open_past_due(self, bill_repo, account, sample_bill):
        january = self._create(bill_repo, sample_bill, account)
        self._create(bill_repo, sample_bill, account, period="2025-02", due_date=date(2025, 2, 10))
        paid = self._create(bill_repo, sample_bill, account, period="2024-12", due_date=date(2024, 12, 10))
        bill_repo.update_payment(paid.id, paid.total_amount, BillStatus.PAID)

        result = bill_repo.list_open_past_due(date(2025, 1, 11))
        assert [b.id for b in result] == [january.id]
        assert bill_repo.list_open_past_due(date(2025, 1, 11), tenant_id=999) == []

    def test_update_charges(self, bill_repo, account, sample_bill):
        bill = self._create(bill_repo, sample_bill, account)
        revised = bill_repo.update_charges(
            bill.model_copy(
                update={
                    "charges": [ChargeLine(name="Maintenance", amount=Decimal("1800.00"))],
                    "subtotal": Decimal("1800.00"),
                    "total_amount": Decimal("1800.00"),
                    "notes": "area corrected",
                }
            )
        )
        assert revised.total_amount == Decimal("1800.00")
        assert revised.charge_map == {"Maintenance": Decimal("1800.00")}
        assert revised.notes == "area corrected"

    def test_update_charges_on_locked_bill(self, bill_repo, account, sample_bill):
        bill = self._create(bill_repo, sample_bill, account)
        bill_repo.lock_period(account.tenant_id, "2025-01")
        with pytest.raises(BillLocked):
            bill_repo.update_charges(bill.model_copy(update={"charges": []}))
        assert len(bill_repo.get_by_id(bill.id).charges) == 2

    def test_lock_period_counts_newly_locked(self, bill_repo, account, sample_bill):
        self._create(bill_repo, sample_bill, account)
        assert bill_repo.lock_period(account.tenant_id, "2025-01") == 1
        assert bill_repo.lock_period(account.tenant_id, "2025-01") == 0


class TestPaymentAllocationRepo:
    def test_create_and_list(self, allocation_repo, bill_repo, ledger_repo, account, sample_bill, sample_entry):
        bill = bill_repo.create(sample_bill(tenant_id=account.tenant_id, account_id=account.id))
        payment = ledger_repo.insert(sample_entry(tenant_id=account.tenant_id, account_id=account.id))

        created = allocation_repo.create(
            PaymentAllocation(payment_entry_id=payment.id, bill_id=bill.id, amount=Decimal("400.00"))
        )

        assert created.id is not None
        by_payment = allocation_repo.list_by_payment(payment.id)
        assert [(a.bill_id, a.amount) for a in by_payment] == [(bill.id, Decimal("400.00"))]
        assert len(allocation_repo.list_by_bill(bill.id)) == 1
        assert allocation_repo.list_by_payment(9999) == []
