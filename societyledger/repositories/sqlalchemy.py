from __future__ import annotations

import json
from datetime import date, datetime

from sqlalchemy import Connection, text
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import IntegrityError
from ulid import ULID

from societyledger.constants import TENANT_TZ
from societyledger.exceptions import BillLocked, ConcurrentModification, DuplicatePeriod
from societyledger.models.account import Account
from societyledger.models.audit_log import AuditLog
from societyledger.models.bill import Bill, BillStatus, ChargeLine, PaymentAllocation
from societyledger.models.billing_run import BillingRun, RunStatus
from societyledger.models.charge_rule import CalculationType, ChargeRule
from societyledger.models.ledger import EntryCategory, EntryDirection, LedgerEntry, PaymentMode
from societyledger.models.tenant import Tenant, TenantConfig
from societyledger.money import from_paise, to_decimal, to_paise
from societyledger.repositories.base import (
    AccountRepository,
    AuditLogRepository,
    BillingRunRepository,
    BillRepository,
    ChargeRuleRepository,
    LedgerRepository,
    PaymentAllocationRepository,
    TenantRepository,
)


def _now() -> datetime:
    return datetime.now(TENANT_TZ)


def _iso(day: date | None) -> str | None:
    if day is None:
        return None
    return day.isoformat()


def _in_clause(prefix: str, values: list) -> tuple[str, dict]:
    placeholders = ", ".join(f":{prefix}{i}" for i in range(len(values)))
    params = {f"{prefix}{i}": v for i, v in enumerate(values)}
    return placeholders, params


class SQLAlchemyTenantRepository(TenantRepository):
    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    @staticmethod
    def _row_to_tenant(row: RowMapping) -> Tenant:
        return Tenant(
            id=row["id"],
            uuid=row["uuid"],
            name=row["name"],
            config=TenantConfig.model_validate_json(row["config"]),
            config_version=row["config_version"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            deleted_at=row["deleted_at"],
        )

    def create(self, tenant: Tenant) -> Tenant:
        now = _now()
        result = self.conn.execute(
            text(
                "INSERT INTO tenants (uuid, name, config, config_version, created_at, updated_at) "
                "VALUES (:uuid, :name, :config, 1, :created_at, :updated_at)"
            ),
            {
                "uuid": str(ULID()),
                "name": tenant.name,
                "config": tenant.config.model_dump_json(),
                "created_at": now,
                "updated_at": now,
            },
        )
        tenant_id = result.lastrowid
        self.conn.commit()
        created = self.get_by_id(tenant_id)
        if created is None:
            raise RuntimeError(f"Failed to retrieve tenant after create (id={tenant_id})")
        return created

    def get_by_id(self, tenant_id: int) -> Tenant | None:
        row = (
            self.conn.execute(
                text("SELECT * FROM tenants WHERE id = :id AND deleted_at IS NULL"),
                {"id": tenant_id},
            )
            .mappings()
            .fetchone()
        )
        if row is None:
            return None
        return self._row_to_tenant(row)

    def get_by_uuid(self, uuid: str) -> Tenant | None:
        row = (
            self.conn.execute(
                text("SELECT * FROM tenants WHERE uuid = :uuid AND deleted_at IS NULL"),
                {"uuid": uuid},
            )
            .mappings()
            .fetchone()
        )
        if row is None:
            return None
        return self._row_to_tenant(row)

    def list_all(self) -> list[Tenant]:
        rows = (
            self.conn.execute(text("SELECT * FROM tenants WHERE deleted_at IS NULL ORDER BY name"))
            .mappings()
            .fetchall()
        )
        return [self._row_to_tenant(row) for row in rows]

    def update_config(self, tenant_id: int, config: TenantConfig) -> Tenant:
        self.conn.execute(
            text(
                "UPDATE tenants SET config = :config, config_version = config_version + 1, "
                "updated_at = :updated_at WHERE id = :id"
            ),
            {"config": config.model_dump_json(), "updated_at": _now(), "id": tenant_id},
        )
        self.conn.commit()
        result = self.get_by_id(tenant_id)
        if result is None:
            raise RuntimeError(f"Failed to retrieve tenant after update (id={tenant_id})")
        return result


class SQLAlchemyAccountRepository(AccountRepository):
    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    @staticmethod
    def _row_to_account(row: RowMapping) -> Account:
        return Account(
            id=row["id"],
            uuid=row["uuid"],
            tenant_id=row["tenant_id"],
            unit_no=row["unit_no"],
            wing=row["wing"],
            owner_name=row["owner_name"],
            contact=row["contact"],
            area=to_decimal(row["area"]),
            opening_balance=from_paise(row["opening_balance_paise"]),
            ledger_seq=row["ledger_seq"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def create(self, account: Account) -> Account:
        now = _now()
        result = self.conn.execute(
            text(
                "INSERT INTO accounts (uuid, tenant_id, unit_no, wing, owner_name, contact, area, "
                "opening_balance_paise, ledger_seq, created_at, updated_at) "
                "VALUES (:uuid, :tenant_id, :unit_no, :wing, :owner_name, :contact, :area, "
                ":opening_balance_paise, 0, :created_at, :updated_at)"
            ),
            {
                "uuid": str(ULID()),
                "tenant_id": account.tenant_id,
                "unit_no": account.unit_no,
                "wing": account.wing,
                "owner_name": account.owner_name,
                "contact": account.contact,
                "area": str(account.area),
                "opening_balance_paise": to_paise(account.opening_balance),
                "created_at": now,
                "updated_at": now,
            },
        )
        account_id = result.lastrowid
        self.conn.commit()
        created = self.get_by_id(account_id)
        if created is None:
            raise RuntimeError(f"Failed to retrieve account after create (id={account_id})")
        return created

    def get_by_id(self, account_id: int) -> Account | None:
        row = (
            self.conn.execute(text("SELECT * FROM accounts WHERE id = :id"), {"id": account_id})
            .mappings()
            .fetchone()
        )
        if row is None:
            return None
        return self._row_to_account(row)

    def list_by_tenant(self, tenant_id: int) -> list[Account]:
        rows = (
            self.conn.execute(
                text("SELECT * FROM accounts WHERE tenant_id = :tenant_id ORDER BY wing, unit_no"),
                {"tenant_id": tenant_id},
            )
            .mappings()
            .fetchall()
        )
        return [self._row_to_account(row) for row in rows]

    def update(self, account: Account) -> Account:
        if account.id is None:  # pragma: no cover
            raise ValueError("Cannot update account without an id")
        self.conn.execute(
            text(
                "UPDATE accounts SET unit_no = :unit_no, wing = :wing, owner_name = :owner_name, "
                "contact = :contact, area = :area, opening_balance_paise = :opening_balance_paise, "
                "updated_at = :updated_at WHERE id = :id"
            ),
            {
                "unit_no": account.unit_no,
                "wing": account.wing,
                "owner_name": account.owner_name,
                "contact": account.contact,
                "area": str(account.area),
                "opening_balance_paise": to_paise(account.opening_balance),
                "updated_at": _now(),
                "id": account.id,
            },
        )
        self.conn.commit()
        result = self.get_by_id(account.id)
        if result is None:
            raise RuntimeError(f"Failed to retrieve account after update (id={account.id})")
        return result

    def claim_next_seq(self, account_id: int, expected_seq: int) -> bool:
        result = self.conn.execute(
            text(
                "UPDATE accounts SET ledger_seq = ledger_seq + 1 "
                "WHERE id = :id AND ledger_seq = :expected_seq"
            ),
            {"id": account_id, "expected_seq": expected_seq},
        )
        return result.rowcount == 1

    def set_tail(self, account_id: int, entry_id: int) -> None:
        self.conn.execute(
            text("UPDATE accounts SET ledger_tail_id = :entry_id WHERE id = :id"),
            {"entry_id": entry_id, "id": account_id},
        )


class SQLAlchemyChargeRuleRepository(ChargeRuleRepository):
    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    @staticmethod
    def _row_to_rule(row: RowMapping) -> ChargeRule:
        return ChargeRule(
            id=row["id"],
            uuid=row["uuid"],
            tenant_id=row["tenant_id"],
            name=row["name"],
            calculation_type=CalculationType(row["calculation_type"]),
            amount=to_decimal(row["amount"]),
            is_active=bool(row["is_active"]),
            is_deleted=bool(row["is_deleted"]),
            order=row["sort_order"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            deleted_at=row["deleted_at"],
        )

    def create(self, rule: ChargeRule) -> ChargeRule:
        now = _now()
        result = self.conn.execute(
            text(
                "INSERT INTO charge_rules (uuid, tenant_id, name, calculation_type, amount, "
                "is_active, is_deleted, sort_order, created_at, updated_at) "
                "VALUES (:uuid, :tenant_id, :name, :calculation_type, :amount, "
                ":is_active, 0, :sort_order, :created_at, :updated_at)"
            ),
            {
                "uuid": str(ULID()),
                "tenant_id": rule.tenant_id,
                "name": rule.name,
                "calculation_type": rule.calculation_type.value,
                "amount": str(rule.amount),
                "is_active": rule.is_active,
                "sort_order": rule.order,
                "created_at": now,
                "updated_at": now,
            },
        )
        rule_id = result.lastrowid
        self.conn.commit()
        created = self.get_by_id(rule_id)
        if created is None:
            raise RuntimeError(f"Failed to retrieve charge rule after create (id={rule_id})")
        return created

    def get_by_id(self, rule_id: int) -> ChargeRule | None:
        row = (
            self.conn.execute(text("SELECT * FROM charge_rules WHERE id = :id"), {"id": rule_id})
            .mappings()
            .fetchone()
        )
        if row is None:
            return None
        return self._row_to_rule(row)

    def get_by_name(self, tenant_id: int, name: str) -> ChargeRule | None:
        row = (
            self.conn.execute(
                text(
                    "SELECT * FROM charge_rules WHERE tenant_id = :tenant_id "
                    "AND name = :name AND is_deleted = 0"
                ),
                {"tenant_id": tenant_id, "name": name},
            )
            .mappings()
            .fetchone()
        )
        if row is None:
            return None
        return self._row_to_rule(row)

    def list_by_tenant(self, tenant_id: int, include_deleted: bool = False) -> list[ChargeRule]:
        query = "SELECT * FROM charge_rules WHERE tenant_id = :tenant_id"
        if not include_deleted:
            query += " AND is_deleted = 0"
        rows = (
            self.conn.execute(text(query + " ORDER BY sort_order, id"), {"tenant_id": tenant_id})
            .mappings()
            .fetchall()
        )
        return [self._row_to_rule(row) for row in rows]

    def list_active(self, tenant_id: int) -> list[ChargeRule]:
        rows = (
            self.conn.execute(
                text(
                    "SELECT * FROM charge_rules WHERE tenant_id = :tenant_id "
                    "AND is_active = 1 AND is_deleted = 0 ORDER BY sort_order, id"
                ),
                {"tenant_id": tenant_id},
            )
            .mappings()
            .fetchall()
        )
        return [self._row_to_rule(row) for row in rows]

    def count_by_tenant(self, tenant_id: int) -> int:
        return self.conn.execute(
            text("SELECT COUNT(*) FROM charge_rules WHERE tenant_id = :tenant_id"),
            {"tenant_id": tenant_id},
        ).scalar_one()

    def max_order(self, tenant_id: int) -> int | None:
        return self.conn.execute(
            text("SELECT MAX(sort_order) FROM charge_rules WHERE tenant_id = :tenant_id"),
            {"tenant_id": tenant_id},
        ).scalar_one_or_none()

    def update(self, rule: ChargeRule) -> ChargeRule:
        if rule.id is None:  # pragma: no cover
            raise ValueError("Cannot update charge rule without an id")
        self.conn.execute(
            text(
                "UPDATE charge_rules SET name = :name, calculation_type = :calculation_type, "
                "amount = :amount, is_active = :is_active, sort_order = :sort_order, "
                "updated_at = :updated_at WHERE id = :id"
            ),
            {
                "name": rule.name,
                "calculation_type": rule.calculation_type.value,
                "amount": str(rule.amount),
                "is_active": rule.is_active,
                "sort_order": rule.order,
                "updated_at": _now(),
                "id": rule.id,
            },
        )
        self.conn.commit()
        result = self.get_by_id(rule.id)
        if result is None:
            raise RuntimeError(f"Failed to retrieve charge rule after update (id={rule.id})")
        return result

    def archive(self, rule_id: int) -> None:
        now = _now()
        self.conn.execute(
            text(
                "UPDATE charge_rules SET is_deleted = 1, is_active = 0, deleted_at = :deleted_at, "
                "updated_at = :updated_at WHERE id = :id"
            ),
            {"deleted_at": now, "updated_at": now, "id": rule_id},
        )
        self.conn.commit()


class SQLAlchemyLedgerRepository(LedgerRepository):
    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    @staticmethod
    def _row_to_entry(row: RowMapping) -> LedgerEntry:
        details = row["payment_details"]
        if isinstance(details, str):
            details = json.loads(details)
        return LedgerEntry(
            id=row["id"],
            uuid=row["uuid"],
            tenant_id=row["tenant_id"],
            account_id=row["account_id"],
            seq=row["seq"],
            entry_date=row["entry_date"],
            direction=EntryDirection(row["direction"]),
            category=EntryCategory(row["category"]),
            amount=from_paise(row["amount_paise"]),
            balance_after=from_paise(row["balance_after_paise"]),
            description=row["description"],
            bill_id=row["bill_id"],
            period=row["period"],
            payment_mode=PaymentMode(row["payment_mode"]) if row["payment_mode"] else None,
            payment_details=details or {},
            is_reversed=bool(row["is_reversed"]),
            reversal_of_id=row["reversal_of_id"],
            reversed_by_id=row["reversed_by_id"],
            financial_year=row["financial_year"],
            created_by=row["created_by"],
            created_at=row["created_at"],
        )

    def insert(self, entry: LedgerEntry) -> LedgerEntry:
        try:
            result = self.conn.execute(
                text(
                    "INSERT INTO ledger_entries (uuid, tenant_id, account_id, seq, entry_date, direction, "
                    "category, amount_paise, balance_after_paise, description, bill_id, period, "
                    "payment_mode, payment_details, is_reversed, reversal_of_id, financial_year, "
                    "created_by, created_at) "
                    "VALUES (:uuid, :tenant_id, :account_id, :seq, :entry_date, :direction, "
                    ":category, :amount_paise, :balance_after_paise, :description, :bill_id, :period, "
                    ":payment_mode, :payment_details, 0, :reversal_of_id, :financial_year, "
                    ":created_by, :created_at)"
                ),
                {
                    "uuid": str(ULID()),
                    "tenant_id": entry.tenant_id,
                    "account_id": entry.account_id,
                    "seq": entry.seq,
                    "entry_date": _iso(entry.entry_date),
                    "direction": entry.direction.value,
                    "category": entry.category.value,
                    "amount_paise": to_paise(entry.amount),
                    "balance_after_paise": to_paise(entry.balance_after),
                    "description": entry.description,
                    "bill_id": entry.bill_id,
                    "period": entry.period,
                    "payment_mode": entry.payment_mode.value if entry.payment_mode else None,
                    "payment_details": json.dumps(entry.payment_details),
                    "reversal_of_id": entry.reversal_of_id,
                    "financial_year": entry.financial_year,
                    "created_by": entry.created_by,
                    "created_at": _now(),
                },
            )
        except IntegrityError as exc:
            raise ConcurrentModification(
                f"Ledger sequence {entry.seq} already taken for account {entry.account_id}"
            ) from exc
        created = self.get_by_id(result.lastrowid)
        if created is None:
            raise RuntimeError(f"Failed to retrieve ledger entry after insert (id={result.lastrowid})")
        return created

    def get_by_id(self, entry_id: int) -> LedgerEntry | None:
        row = (
            self.conn.execute(text("SELECT * FROM ledger_entries WHERE id = :id"), {"id": entry_id})
            .mappings()
            .fetchone()
        )
        if row is None:
            return None
        return self._row_to_entry(row)

    def latest_entry(self, account_id: int) -> LedgerEntry | None:
        row = (
            self.conn.execute(
                text("SELECT * FROM ledger_entries WHERE account_id = :account_id ORDER BY seq DESC LIMIT 1"),
                {"account_id": account_id},
            )
            .mappings()
            .fetchone()
        )
        if row is None:
            return None
        return self._row_to_entry(row)

    def latest_before(self, account_id: int, before: date) -> LedgerEntry | None:
        row = (
            self.conn.execute(
                text(
                    "SELECT * FROM ledger_entries WHERE account_id = :account_id "
                    "AND entry_date < :before ORDER BY entry_date DESC, seq DESC LIMIT 1"
                ),
                {"account_id": account_id, "before": _iso(before)},
            )
            .mappings()
            .fetchone()
        )
        if row is None:
            return None
        return self._row_to_entry(row)

    def entries_in_range(
        self,
        account_id: int,
        start: date | None = None,
        end: date | None = None,
        category: EntryCategory | None = None,
    ) -> list[LedgerEntry]:
        query = "SELECT * FROM ledger_entries WHERE account_id = :account_id"
        params: dict = {"account_id": account_id}
        if start is not None:
            query += " AND entry_date >= :start"
            params["start"] = _iso(start)
        if end is not None:
            query += " AND entry_date <= :end"
            params["end"] = _iso(end)
        if category is not None:
            query += " AND category = :category"
            params["category"] = category.value
        rows = self.conn.execute(text(query + " ORDER BY entry_date, seq"), params).mappings().fetchall()
        return [self._row_to_entry(row) for row in rows]

    def mark_reversed(self, entry_id: int, reversed_by_id: int) -> bool:
        result = self.conn.execute(
            text(
                "UPDATE ledger_entries SET is_reversed = 1, reversed_by_id = :reversed_by_id "
                "WHERE id = :id AND is_reversed = 0"
            ),
            {"reversed_by_id": reversed_by_id, "id": entry_id},
        )
        return result.rowcount == 1

    def exists_on(self, account_id: int, category: EntryCategory, day: date) -> bool:
        row = self.conn.execute(
            text(
                "SELECT 1 FROM ledger_entries WHERE account_id = :account_id "
                "AND category = :category AND entry_date = :day LIMIT 1"
            ),
            {"account_id": account_id, "category": category.value, "day": _iso(day)},
        ).fetchone()
        return row is not None

    def oldest_open_debit(
        self, account_id: int, category: EntryCategory, direction: EntryDirection = EntryDirection.DEBIT
    ) -> LedgerEntry | None:
        row = (
            self.conn.execute(
                text(
                    "SELECT le.* FROM ledger_entries le LEFT JOIN bills b ON b.id = le.bill_id "
                    "WHERE le.account_id = :account_id AND le.category = :category "
                    "AND le.direction = :direction AND le.is_reversed = 0 AND le.reversal_of_id IS NULL "
                    "AND (b.id IS NULL OR b.status != :paid) "
                    "ORDER BY le.entry_date, le.seq LIMIT 1"
                ),
                {
                    "account_id": account_id,
                    "category": category.value,
                    "direction": direction.value,
                    "paid": BillStatus.PAID.value,
                },
            )
            .mappings()
            .fetchone()
        )
        if row is None:
            return None
        return self._row_to_entry(row)


class SQLAlchemyBillRepository(BillRepository):
    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    @staticmethod
    def _build_bill(row: RowMapping, charge_rows: list[RowMapping]) -> Bill:
        return Bill(
            id=row["id"],
            uuid=row["uuid"],
            tenant_id=row["tenant_id"],
            account_id=row["account_id"],
            period=row["period"],
            charges=[
                ChargeLine(
                    name=charge_row["name"],
                    amount=from_paise(charge_row["amount_paise"]),
                    basis=charge_row["basis"],
                    sort_order=charge_row["sort_order"],
                )
                for charge_row in charge_rows
            ],
            previous_balance=from_paise(row["previous_balance_paise"]),
            interest_amount=from_paise(row["interest_paise"]),
            subtotal=from_paise(row["subtotal_paise"]),
            tax_amount=from_paise(row["tax_paise"]),
            total_amount=from_paise(row["total_paise"]),
            amount_paid=from_paise(row["amount_paid_paise"]),
            due_date=row["due_date"],
            status=BillStatus(row["status"]),
            status_updated_at=row["status_updated_at"],
            is_locked=bool(row["is_locked"]),
            notes=row["notes"],
            generated_at=row["generated_at"],
            generated_by=row["generated_by"],
        )

    def _row_to_bill(self, row: RowMapping) -> Bill:
        charges = (
            self.conn.execute(
                text("SELECT * FROM bill_charges WHERE bill_id = :bill_id ORDER BY sort_order"),
                {"bill_id": row["id"]},
            )
            .mappings()
            .fetchall()
        )
        return self._build_bill(row, list(charges))

    def _build_bills_from_rows(self, rows: list[RowMapping]) -> list[Bill]:
        if not rows:
            return []
        placeholders, params = _in_clause("id", [row["id"] for row in rows])
        all_charges = (
            self.conn.execute(
                text(f"SELECT * FROM bill_charges WHERE bill_id IN ({placeholders}) ORDER BY sort_order"),
                params,
            )
            .mappings()
            .fetchall()
        )
        charges_by_bill: dict[int, list[RowMapping]] = {}
        for charge_row in all_charges:
            charges_by_bill.setdefault(charge_row["bill_id"], []).append(charge_row)
        return [self._build_bill(row, charges_by_bill.get(row["id"], [])) for row in rows]

    def _insert_charges(self, bill_id: int, charges: list[ChargeLine]) -> None:
        for i, line in enumerate(charges):
            self.conn.execute(
                text(
                    "INSERT INTO bill_charges (bill_id, name, amount_paise, basis, sort_order) "
                    "VALUES (:bill_id, :name, :amount_paise, :basis, :sort_order)"
                ),
                {
                    "bill_id": bill_id,
                    "name": line.name,
                    "amount_paise": to_paise(line.amount),
                    "basis": line.basis,
                    "sort_order": i,
                },
            )

    def create(self, bill: Bill) -> Bill:
        now = _now()
        try:
            result = self.conn.execute(
                text(
                    "INSERT INTO bills (uuid, tenant_id, account_id, period, previous_balance_paise, "
                    "interest_paise, subtotal_paise, tax_paise, total_paise, amount_paid_paise, "
                    "balance_paise, due_date, status, status_updated_at, is_locked, notes, "
                    "generated_at, generated_by) "
                    "VALUES (:uuid, :tenant_id, :account_id, :period, :previous_balance_paise, "
                    ":interest_paise, :subtotal_paise, :tax_paise, :total_paise, 0, "
                    ":total_paise, :due_date, :status, :now, 0, :notes, :now, :generated_by)"
                ),
                {
                    "uuid": str(ULID()),
                    "tenant_id": bill.tenant_id,
                    "account_id": bill.account_id,
                    "period": bill.period,
                    "previous_balance_paise": to_paise(bill.previous_balance),
                    "interest_paise": to_paise(bill.interest_amount),
                    "subtotal_paise": to_paise(bill.subtotal),
                    "tax_paise": to_paise(bill.tax_amount),
                    "total_paise": to_paise(bill.total_amount),
                    "due_date": _iso(bill.due_date),
                    "status": bill.status.value,
                    "notes": bill.notes,
                    "now": now,
                    "generated_by": bill.generated_by,
                },
            )
        except IntegrityError as exc:
            raise DuplicatePeriod(bill.period, [bill.account_id]) from exc
        bill_id = result.lastrowid
        self._insert_charges(bill_id, bill.charges)
        created = self.get_by_id(bill_id)
        if created is None:
            raise RuntimeError(f"Failed to retrieve bill after create (id={bill_id})")
        return created

    def get_by_id(self, bill_id: int) -> Bill | None:
        row = self.conn.execute(text("SELECT * FROM bills WHERE id = :id"), {"id": bill_id}).mappings().fetchone()
        if row is None:
            return None
        return self._row_to_bill(row)

    def get_by_uuid(self, uuid: str) -> Bill | None:
        row = (
            self.conn.execute(text("SELECT * FROM bills WHERE uuid = :uuid"), {"uuid": uuid})
            .mappings()
            .fetchone()
        )
        if row is None:
            return None
        return self._row_to_bill(row)

    def existing_accounts(self, tenant_id: int, period: str, account_ids: list[int]) -> list[int]:
        if not account_ids:
            return []
        placeholders, params = _in_clause("acc", account_ids)
        rows = self.conn.execute(
            text(
                f"SELECT account_id FROM bills WHERE tenant_id = :tenant_id AND period = :period "
                f"AND account_id IN ({placeholders}) ORDER BY account_id"
            ),
            {"tenant_id": tenant_id, "period": period, **params},
        ).fetchall()
        return [row[0] for row in rows]

    def list_by_account(self, account_id: int, statuses: tuple[BillStatus, ...] | None = None) -> list[Bill]:
        query = "SELECT * FROM bills WHERE account_id = :account_id"
        params: dict = {"account_id": account_id}
        if statuses:
            placeholders, status_params = _in_clause("st", [s.value for s in statuses])
            query += f" AND status IN ({placeholders})"
            params.update(status_params)
        rows = self.conn.execute(text(query + " ORDER BY period, id"), params).mappings().fetchall()
        return self._build_bills_from_rows(list(rows))

    def list_by_period(self, tenant_id: int, period: str) -> list[Bill]:
        rows = (
            self.conn.execute(
                text("SELECT * FROM bills WHERE tenant_id = :tenant_id AND period = :period ORDER BY account_id"),
                {"tenant_id": tenant_id, "period": period},
            )
            .mappings()
            .fetchall()
        )
        return self._build_bills_from_rows(list(rows))

    def list_open_past_due(self, before: date, tenant_id: int | None = None) -> list[Bill]:
        query = (
            "SELECT * FROM bills WHERE status IN (:unpaid, :partial) "
            "AND due_date < :before AND balance_paise > 0"
        )
        params: dict = {
            "unpaid": BillStatus.UNPAID.value,
            "partial": BillStatus.PARTIAL.value,
            "before": _iso(before),
        }
        if tenant_id is not None:
            query += " AND tenant_id = :tenant_id"
            params["tenant_id"] = tenant_id
        rows = self.conn.execute(text(query + " ORDER BY due_date, id"), params).mappings().fetchall()
        return self._build_bills_from_rows(list(rows))

    def update_payment(self, bill_id: int, amount_paid, status: BillStatus) -> None:
        paid_paise = to_paise(amount_paid)
        self.conn.execute(
            text(
                "UPDATE bills SET amount_paid_paise = :paid, "
                "balance_paise = CASE WHEN total_paise > :paid THEN total_paise - :paid ELSE 0 END, "
                "status = :status, status_updated_at = :now WHERE id = :id"
            ),
            {"paid": paid_paise, "status": status.value, "now": _now(), "id": bill_id},
        )

    def update_status(self, bill_id: int, status: BillStatus, expected: BillStatus) -> bool:
        result = self.conn.execute(
            text(
                "UPDATE bills SET status = :status, status_updated_at = :now "
                "WHERE id = :id AND status = :expected"
            ),
            {"status": status.value, "now": _now(), "id": bill_id, "expected": expected.value},
        )
        return result.rowcount == 1

    def update_charges(self, bill: Bill) -> Bill:
        if bill.id is None:  # pragma: no cover
            raise ValueError("Cannot update bill without an id")
        result = self.conn.execute(
            text(
                "UPDATE bills SET subtotal_paise = :subtotal, tax_paise = :tax, total_paise = :total, "
                "balance_paise = CASE WHEN :total > amount_paid_paise THEN :total - amount_paid_paise ELSE 0 END, "
                "status = :status, status_updated_at = :now, notes = :notes "
                "WHERE id = :id AND is_locked = 0"
            ),
            {
                "subtotal": to_paise(bill.subtotal),
                "tax": to_paise(bill.tax_amount),
                "total": to_paise(bill.total_amount),
                "status": bill.status.value,
                "now": _now(),
                "notes": bill.notes,
                "id": bill.id,
            },
        )
        if result.rowcount == 0:
            raise BillLocked(bill.id)
        self.conn.execute(text("DELETE FROM bill_charges WHERE bill_id = :bill_id"), {"bill_id": bill.id})
        self._insert_charges(bill.id, bill.charges)
        updated = self.get_by_id(bill.id)
        if updated is None:
            raise RuntimeError(f"Failed to retrieve bill after update (id={bill.id})")
        return updated

    def lock_period(self, tenant_id: int, period: str) -> int:
        result = self.conn.execute(
            text("UPDATE bills SET is_locked = 1 WHERE tenant_id = :tenant_id AND period = :period AND is_locked = 0"),
            {"tenant_id": tenant_id, "period": period},
        )
        return result.rowcount


class SQLAlchemyPaymentAllocationRepository(PaymentAllocationRepository):
    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    @staticmethod
    def _row_to_allocation(row: RowMapping) -> PaymentAllocation:
        return PaymentAllocation(
            id=row["id"],
            payment_entry_id=row["payment_entry_id"],
            bill_id=row["bill_id"],
            amount=from_paise(row["amount_paise"]),
            created_at=row["created_at"],
        )

    def create(self, allocation: PaymentAllocation) -> PaymentAllocation:
        result = self.conn.execute(
            text(
                "INSERT INTO payment_allocations (payment_entry_id, bill_id, amount_paise, created_at) "
                "VALUES (:payment_entry_id, :bill_id, :amount_paise, :created_at)"
            ),
            {
                "payment_entry_id": allocation.payment_entry_id,
                "bill_id": allocation.bill_id,
                "amount_paise": to_paise(allocation.amount),
                "created_at": _now(),
            },
        )
        return allocation.model_copy(update={"id": result.lastrowid})

    def list_by_payment(self, payment_entry_id: int) -> list[PaymentAllocation]:
        rows = (
            self.conn.execute(
                text("SELECT * FROM payment_allocations WHERE payment_entry_id = :entry_id ORDER BY id"),
                {"entry_id": payment_entry_id},
            )
            .mappings()
            .fetchall()
        )
        return [self._row_to_allocation(row) for row in rows]

    def list_by_bill(self, bill_id: int) -> list[PaymentAllocation]:
        rows = (
            self.conn.execute(
                text("SELECT * FROM payment_allocations WHERE bill_id = :bill_id ORDER BY id"),
                {"bill_id": bill_id},
            )
            .mappings()
            .fetchall()
        )
        return [self._row_to_allocation(row) for row in rows]


class SQLAlchemyBillingRunRepository(BillingRunRepository):
    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    @staticmethod
    def _row_to_run(row: RowMapping) -> BillingRun:
        return BillingRun(
            id=row["id"],
            tenant_id=row["tenant_id"],
            period=row["period"],
            status=RunStatus(row["status"]),
            started_by=row["started_by"],
            bill_count=row["bill_count"],
            error=row["error"],
            started_at=row["started_at"],
            finished_at=row["finished_at"],
        )

    def start(self, run: BillingRun) -> BillingRun:
        now = _now()
        result = self.conn.execute(
            text(
                "INSERT INTO billing_runs (tenant_id, period, status, started_by, bill_count, error, started_at) "
                "VALUES (:tenant_id, :period, :status, :started_by, 0, '', :started_at)"
            ),
            {
                "tenant_id": run.tenant_id,
                "period": run.period,
                "status": RunStatus.IN_PROGRESS.value,
                "started_by": run.started_by,
                "started_at": now,
            },
        )
        self.conn.commit()
        return run.model_copy(update={"id": result.lastrowid, "status": RunStatus.IN_PROGRESS, "started_at": now})

    def finish(self, run_id: int, status: RunStatus, bill_count: int = 0, error: str = "") -> None:
        self.conn.execute(
            text(
                "UPDATE billing_runs SET status = :status, bill_count = :bill_count, error = :error, "
                "finished_at = :finished_at WHERE id = :id"
            ),
            {"status": status.value, "bill_count": bill_count, "error": error[:500], "finished_at": _now(), "id": run_id},
        )
        self.conn.commit()

    def active_for_tenant(self, tenant_id: int, since: datetime) -> BillingRun | None:
        row = (
            self.conn.execute(
                text(
                    "SELECT * FROM billing_runs WHERE tenant_id = :tenant_id AND status = :status "
                    "AND started_at >= :since ORDER BY started_at DESC LIMIT 1"
                ),
                {"tenant_id": tenant_id, "status": RunStatus.IN_PROGRESS.value, "since": since},
            )
            .mappings()
            .fetchone()
        )
        if row is None:
            return None
        return self._row_to_run(row)


class SQLAlchemyAuditLogRepository(AuditLogRepository):
    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    @staticmethod
    def _row_to_audit_log(row: RowMapping) -> AuditLog:
        previous_state = row["previous_state"]
        if isinstance(previous_state, str):
            previous_state = json.loads(previous_state)
        new_state = row["new_state"]
        if isinstance(new_state, str):
            new_state = json.loads(new_state)
        metadata = row["metadata"]
        if isinstance(metadata, str):
            metadata = json.loads(metadata)

        return AuditLog(
            id=row["id"],
            uuid=row["uuid"],
            tenant_id=row["tenant_id"],
            event_type=row["event_type"],
            actor_id=row["actor_id"],
            source=row["source"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            entity_uuid=row["entity_uuid"],
            previous_state=previous_state,
            new_state=new_state,
            metadata=metadata,
            created_at=row["created_at"],
        )

    def create(self, audit_log: AuditLog) -> AuditLog:
        audit_uuid = str(ULID())
        self.conn.execute(
            text(
                "INSERT INTO audit_logs (uuid, tenant_id, event_type, actor_id, source, entity_type, "
                "entity_id, entity_uuid, previous_state, new_state, metadata, created_at) "
                "VALUES (:uuid, :tenant_id, :event_type, :actor_id, :source, :entity_type, "
                ":entity_id, :entity_uuid, :previous_state, :new_state, :metadata, :created_at)"
            ),
            {
                "uuid": audit_uuid,
                "tenant_id": audit_log.tenant_id,
                "event_type": audit_log.event_type,
                "actor_id": audit_log.actor_id,
                "source": audit_log.source,
                "entity_type": audit_log.entity_type,
                "entity_id": audit_log.entity_id,
                "entity_uuid": audit_log.entity_uuid,
                "previous_state": json.dumps(audit_log.previous_state)
                if audit_log.previous_state is not None
                else None,
                "new_state": json.dumps(audit_log.new_state) if audit_log.new_state is not None else None,
                "metadata": json.dumps(audit_log.metadata),
                "created_at": _now(),
            },
        )
        self.conn.commit()

        row = (
            self.conn.execute(
                text("SELECT * FROM audit_logs WHERE uuid = :uuid"),
                {"uuid": audit_uuid},
            )
            .mappings()
            .fetchone()
        )
        if row is None:
            raise RuntimeError(f"Failed to retrieve audit log after create (uuid={audit_uuid})")
        return self._row_to_audit_log(row)

    def list_by_entity(self, entity_type: str, entity_id: int) -> list[AuditLog]:
        rows = (
            self.conn.execute(
                text(
                    "SELECT * FROM audit_logs "
                    "WHERE entity_type = :entity_type AND entity_id = :entity_id "
                    "ORDER BY created_at DESC, id DESC"
                ),
                {"entity_type": entity_type, "entity_id": entity_id},
            )
            .mappings()
            .fetchall()
        )
        return [self._row_to_audit_log(row) for row in rows]

    def list_by_tenant(self, tenant_id: int, limit: int = 50) -> list[AuditLog]:
        rows = (
            self.conn.execute(
                text(
                    "SELECT * FROM audit_logs WHERE tenant_id = :tenant_id "
                    "ORDER BY created_at DESC, id DESC LIMIT :limit"
                ),
                {"tenant_id": tenant_id, "limit": limit},
            )
            .mappings()
            .fetchall()
        )
        return [self._row_to_audit_log(row) for row in rows]
