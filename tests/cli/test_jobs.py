from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from societyledger.cli.jobs import _option, main
from societyledger.models.batch import BatchReport, Outcome


class TestOption:
    def test_present(self):
        assert _option(["interest", "--tenant", "3"], "--tenant") == "3"

    def test_missing_value(self):
        assert _option(["interest", "--tenant"], "--tenant") is None

    def test_absent(self):
        assert _option(["interest"], "--date") is None


@pytest.fixture()
def services():
    with (
        patch("societyledger.cli.jobs.configure_logging"),
        patch("societyledger.cli.jobs.initialize_db"),
        patch("societyledger.cli.jobs.reconfigure"),
        patch("societyledger.cli.jobs.build_services") as mock_build,
    ):
        mock_build.return_value = MagicMock()
        yield mock_build.return_value


class TestMain:
    @pytest.mark.parametrize("argv", [[], ["payroll"]])
    def test_usage(self, argv):
        assert main(argv) == 2

    def test_bad_date(self):
        assert main(["interest", "--date", "25-03-2025"]) == 2

    def test_interest_all_tenants(self, services):
        report = BatchReport(job="interest")
        report.record(1, 10, Outcome.SUCCEEDED, amount=Decimal("330.00"))
        report.record(1, 11, Outcome.SKIPPED, "No outstanding balance")
        services.interest.accrue_all.return_value = report

        assert main(["interest", "--date", "2025-02-22"]) == 0

        services.interest.accrue_all.assert_called_once_with(date(2025, 2, 22))

    def test_interest_one_tenant(self, services):
        services.interest.accrue_tenant.return_value = BatchReport(job="interest")

        assert main(["interest", "--tenant", "3"]) == 0
        services.interest.accrue_tenant.assert_called_once_with(3, None)

    def test_failures_give_exit_code_1(self, services):
        report = BatchReport(job="interest")
        report.record(1, 10, Outcome.FAILED, "BACKDATED_ENTRY: ...")
        services.interest.accrue_all.return_value = report

        assert main(["interest"]) == 1

    def test_overdue(self, services):
        services.overdue.mark_overdue.return_value = 4

        assert main(["overdue", "--tenant", "2"]) == 0
        services.overdue.mark_overdue.assert_called_once_with(None, 2)
