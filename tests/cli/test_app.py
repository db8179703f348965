from unittest.mock import MagicMock, patch

from societyledger.exceptions import ValidationError
from societyledger.models.tenant import Tenant


def _tenant():
    return Tenant(id=1, name="Green Meadows CHS")


class TestBuildServices:
    @patch("societyledger.cli.app.build_services")
    def test_delegates(self, mock_build):
        from societyledger.cli.app import _build_services

        assert _build_services() is mock_build.return_value


class TestMainMenu:
    @patch("societyledger.cli.app.select_tenant_menu")
    @patch("societyledger.cli.app._build_services")
    @patch("societyledger.cli.app.questionary")
    def test_no_tenant_selected(self, mock_q, mock_build, mock_select):
        from societyledger.cli.app import main_menu

        mock_select.return_value = None

        main_menu()
        mock_q.select.assert_not_called()

    @patch("societyledger.cli.app.select_tenant_menu")
    @patch("societyledger.cli.app._build_services")
    @patch("societyledger.cli.app.questionary")
    def test_exit(self, mock_q, mock_build, mock_select):
        from societyledger.cli.app import main_menu

        mock_select.return_value = _tenant()
        mock_q.select.return_value.ask.return_value = "Exit"

        main_menu()
        mock_q.select.return_value.ask.assert_called_once()

    @patch("societyledger.cli.app.select_tenant_menu")
    @patch("societyledger.cli.app._build_services")
    @patch("societyledger.cli.app.questionary")
    def test_none_exits(self, mock_q, mock_build, mock_select):
        from societyledger.cli.app import main_menu

        mock_select.return_value = _tenant()
        mock_q.select.return_value.ask.return_value = None

        main_menu()

    @patch("societyledger.cli.app.generate_bills_menu")
    @patch("societyledger.cli.app.select_tenant_menu")
    @patch("societyledger.cli.app._build_services")
    @patch("societyledger.cli.app.questionary")
    def test_generate_bills(self, mock_q, mock_build, mock_select, mock_generate):
        from societyledger.cli.app import main_menu

        tenant = _tenant()
        mock_select.return_value = tenant
        mock_q.select.return_value.ask.side_effect = ["Generate bills", "Exit"]

        main_menu()
        mock_generate.assert_called_once_with(tenant, mock_build.return_value.bills)

    @patch("societyledger.cli.app.record_payment_menu")
    @patch("societyledger.cli.app.select_tenant_menu")
    @patch("societyledger.cli.app._build_services")
    @patch("societyledger.cli.app.questionary")
    def test_record_payment(self, mock_q, mock_build, mock_select, mock_payment):
        from societyledger.cli.app import main_menu

        mock_select.return_value = _tenant()
        mock_q.select.return_value.ask.side_effect = ["Record payment", "Exit"]

        main_menu()
        mock_payment.assert_called_once()

    @patch("societyledger.cli.app.select_tenant_menu")
    @patch("societyledger.cli.app._build_services")
    @patch("societyledger.cli.app.questionary")
    def test_run_interest(self, mock_q, mock_build, mock_select):
        from societyledger.cli.app import main_menu

        services = MagicMock()
        services.interest.accrue_tenant.return_value.succeeded = 2
        mock_build.return_value = services
        mock_select.return_value = _tenant()
        mock_q.select.return_value.ask.side_effect = ["Run interest", "Mark overdue", "Exit"]

        main_menu()
        services.interest.accrue_tenant.assert_called_once_with(1)
        services.overdue.mark_overdue.assert_called_once_with(tenant_id=1)

    @patch("societyledger.cli.app.edit_config_menu")
    @patch("societyledger.cli.app.select_tenant_menu")
    @patch("societyledger.cli.app._build_services")
    @patch("societyledger.cli.app.questionary")
    def test_config_edit_replaces_tenant(self, mock_q, mock_build, mock_select, mock_edit):
        from societyledger.cli.app import main_menu

        updated = Tenant(id=1, name="Renamed CHS", config_version=2)
        mock_select.return_value = _tenant()
        mock_edit.return_value = updated
        mock_q.select.return_value.ask.side_effect = ["Billing config", "Exit"]

        main_menu()
        mock_edit.assert_called_once()
        assert mock_q.select.call_args_list[1].args == ("Renamed CHS",)

    @patch("societyledger.cli.app.select_tenant_menu")
    @patch("societyledger.cli.app._build_services")
    @patch("societyledger.cli.app.questionary")
    def test_switch_society(self, mock_q, mock_build, mock_select):
        from societyledger.cli.app import main_menu

        mock_select.side_effect = [_tenant(), None]
        mock_q.select.return_value.ask.side_effect = ["Switch society"]

        main_menu()
        assert mock_select.call_count == 2

    @patch("societyledger.cli.app.lock_period_menu")
    @patch("societyledger.cli.app.select_tenant_menu")
    @patch("societyledger.cli.app._build_services")
    @patch("societyledger.cli.app.questionary")
    def test_error_keeps_menu_running(self, mock_q, mock_build, mock_select, mock_lock):
        from societyledger.cli.app import main_menu

        mock_select.return_value = _tenant()
        mock_lock.side_effect = ValidationError("bad period")
        mock_q.select.return_value.ask.side_effect = ["Lock period", "Exit"]

        main_menu()
        assert mock_q.select.return_value.ask.call_count == 2
