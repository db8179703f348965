from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

from societyledger.models.bill import Bill, BillPreview, BillStatus, ChargeLine, Defaulter
from societyledger.models.tenant import Tenant

TENANT = Tenant(id=1, name="Green Meadows CHS")


def _preview():
    return BillPreview(
        account_id=5,
        account_label="A-101",
        period="2025-01",
        bill_number="INV-2025-01-A-101",
        bill_date=date(2025, 1, 1),
        due_date=date(2025, 1, 10),
        charges=[ChargeLine(name="Maintenance", amount=Decimal("2000.00"))],
        subtotal=Decimal("2000.00"),
    )


def _bill(**overrides):
    defaults = dict(
        id=7,
        tenant_id=1,
        account_id=5,
        period="2025-01",
        charges=[ChargeLine(name="Maintenance", amount=Decimal("2000.00"))],
        subtotal=Decimal("2000.00"),
        total_amount=Decimal("2000.00"),
        due_date=date(2025, 1, 10),
    )
    defaults.update(overrides)
    return Bill(**defaults)


class TestGenerateBillsMenu:
    @patch("societyledger.cli.bill_menu.ask_period")
    def test_cancelled_period(self, mock_period):
        from societyledger.cli.bill_menu import generate_bills_menu

        mock_period.return_value = None
        service = MagicMock()

        assert generate_bills_menu(TENANT, service) == []
        service.preview.assert_not_called()

    @patch("societyledger.cli.bill_menu.questionary")
    @patch("societyledger.cli.bill_menu.ask_period")
    def test_confirmed(self, mock_period, mock_q):
        from societyledger.cli.bill_menu import generate_bills_menu

        mock_period.return_value = "2025-01"
        mock_q.confirm.return_value.ask.return_value = True
        service = MagicMock()
        service.preview.return_value = [_preview()]
        service.commit.return_value = [_bill()]

        result = generate_bills_menu(TENANT, service)

        assert len(result) == 1
        service.commit.assert_called_once_with(1, "2025-01", source="cli")

    @patch("societyledger.cli.bill_menu.questionary")
    @patch("societyledger.cli.bill_menu.ask_period")
    def test_declined(self, mock_period, mock_q):
        from societyledger.cli.bill_menu import generate_bills_menu

        mock_period.return_value = "2025-01"
        mock_q.confirm.return_value.ask.return_value = False
        service = MagicMock()
        service.preview.return_value = [_preview()]

        assert generate_bills_menu(TENANT, service) == []
        service.commit.assert_not_called()

    @patch("societyledger.cli.bill_menu.ask_period")
    def test_no_units(self, mock_period):
        from societyledger.cli.bill_menu import generate_bills_menu

        mock_period.return_value = "2025-01"
        service = MagicMock()
        service.preview.return_value = []

        assert generate_bills_menu(TENANT, service) == []


class TestListBillsMenu:
    @patch("societyledger.cli.bill_menu.ask_period")
    def test_empty(self, mock_period):
        from societyledger.cli.bill_menu import list_bills_menu

        mock_period.return_value = "2025-01"
        service = MagicMock()
        service.list_bills.return_value = []

        list_bills_menu(TENANT, service)
        service.get_bill.assert_not_called()

    @patch("societyledger.cli.bill_menu.questionary")
    @patch("societyledger.cli.bill_menu.ask_period")
    def test_back(self, mock_period, mock_q):
        from societyledger.cli.bill_menu import list_bills_menu

        mock_period.return_value = "2025-01"
        mock_q.select.return_value.ask.return_value = None
        service = MagicMock()
        service.list_bills.return_value = [_bill()]

        list_bills_menu(TENANT, service)
        service.get_bill.assert_not_called()

    @patch("societyledger.cli.bill_menu.questionary")
    @patch("societyledger.cli.bill_menu.ask_period")
    def test_open_locked_bill(self, mock_period, mock_q):
        from societyledger.cli.bill_menu import list_bills_menu

        mock_period.return_value = "2025-01"
        mock_q.select.return_value.ask.return_value = 7
        service = MagicMock()
        service.list_bills.return_value = [_bill()]
        service.get_bill.return_value = _bill(is_locked=True, status=BillStatus.OVERDUE, notes="late")

        list_bills_menu(TENANT, service)
        mock_q.confirm.assert_not_called()


class TestReviseBillMenu:
    @patch("societyledger.cli.bill_menu.questionary")
    @patch("societyledger.cli.bill_menu.ask_amount")
    def test_change_and_add_charge(self, mock_amount, mock_q):
        from societyledger.cli.bill_menu import revise_bill_menu

        mock_amount.side_effect = [Decimal("1800"), Decimal("150")]
        mock_q.confirm.return_value.ask.side_effect = [True, False]
        mock_q.text.return_value.ask.side_effect = ["Plumbing", ""]
        service = MagicMock()
        service.revise_charges.return_value = _bill(total_amount=Decimal("1950.00"))

        revise_bill_menu(_bill(), service)

        bill_id, lines = service.revise_charges.call_args.args
        assert bill_id == 7
        assert [(line.name, line.amount) for line in lines] == [
            ("Maintenance", Decimal("1800")),
            ("Plumbing", Decimal("150")),
        ]


class TestLockAndDefaulters:
    @patch("societyledger.cli.bill_menu.questionary")
    @patch("societyledger.cli.bill_menu.ask_period")
    def test_lock(self, mock_period, mock_q):
        from societyledger.cli.bill_menu import lock_period_menu

        mock_period.return_value = "2025-01"
        mock_q.confirm.return_value.ask.return_value = True
        service = MagicMock()
        service.lock_period.return_value = 3

        lock_period_menu(TENANT, service)
        service.lock_period.assert_called_once_with(1, "2025-01", source="cli")

    @patch("societyledger.cli.bill_menu.ask_int")
    def test_defaulters(self, mock_int):
        from societyledger.cli.bill_menu import defaulters_menu

        mock_int.return_value = 2
        service = MagicMock()
        service.defaulters.return_value = [
            Defaulter(
                account_id=5,
                account_label="A-101",
                open_bills=2,
                total_arrears=Decimal("5000.00"),
                oldest_due_date=date(2025, 1, 10),
            )
        ]

        defaulters_menu(TENANT, service)
        service.defaulters.assert_called_once_with(1, 2)
