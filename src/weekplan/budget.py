"""Personal budget ledger: accounts, categories and transactions."""

from __future__ import annotations

import math
from dataclasses import dataclass, field


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _amount(value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _optional(d: dict, key: str, value: str | None) -> None:
    if value:
        d[key] = value


@dataclass
class Account:
    id: str
    name: str
    initial: float = 0.0

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "initial": self.initial}


@dataclass
class Category:
    """An expense or income category; subcategories carry a parent id."""

    id: str
    name: str
    category_id: str | None = None

    def to_dict(self) -> dict:
        d = {"id": self.id, "name": self.name}
        _optional(d, "categoryId", self.category_id)
        return d


@dataclass
class Entry:
    """An expense or an income transaction against one account."""

    id: str
    account_id: str
    amount: float
    category_id: str | None = None
    subcategory_id: str | None = None
    date: str | None = None
    note: str | None = None

    def to_dict(self) -> dict:
        d = {"id": self.id, "accountId": self.account_id, "amount": self.amount}
        _optional(d, "categoryId", self.category_id)
        _optional(d, "subcategoryId", self.subcategory_id)
        _optional(d, "date", self.date)
        _optional(d, "note", self.note)
        return d


@dataclass
class Transfer:
    id: str
    from_account_id: str
    to_account_id: str
    amount: float
    date: str | None = None
    note: str | None = None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "fromAccountId": self.from_account_id,
            "toAccountId": self.to_account_id,
            "amount": self.amount,
        }
        _optional(d, "date", self.date)
        _optional(d, "note", self.note)
        return d


@dataclass
class Budget:
    accounts: list[Account] = field(default_factory=list)
    expense_categories: list[Category] = field(default_factory=list)
    expense_subcategories: list[Category] = field(default_factory=list)
    income_categories: list[Category] = field(default_factory=list)
    income_subcategories: list[Category] = field(default_factory=list)
    expense_transactions: list[Entry] = field(default_factory=list)
    income_transactions: list[Entry] = field(default_factory=list)
    transfer_transactions: list[Transfer] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "accounts": [a.to_dict() for a in self.accounts],
            "expenseCategories": [c.to_dict() for c in self.expense_categories],
            "expenseSubcategories": [c.to_dict() for c in self.expense_subcategories],
            "incomeCategories": [c.to_dict() for c in self.income_categories],
            "incomeSubcategories": [c.to_dict() for c in self.income_subcategories],
            "expenseTransactions": [e.to_dict() for e in self.expense_transactions],
            "incomeTransactions": [e.to_dict() for e in self.income_transactions],
            "transferTransactions": [t.to_dict() for t in self.transfer_transactions],
        }

    @classmethod
    def from_dict(cls, d: dict | None) -> Budget:
        d = d or {}
        return cls(
            accounts=sanitize_accounts(d.get("accounts") or []),
            expense_categories=sanitize_categories(d.get("expenseCategories") or []),
            expense_subcategories=sanitize_categories(d.get("expenseSubcategories") or []),
            income_categories=sanitize_categories(d.get("incomeCategories") or []),
            income_subcategories=sanitize_categories(d.get("incomeSubcategories") or []),
            expense_transactions=sanitize_entries(d.get("expenseTransactions") or []),
            income_transactions=sanitize_entries(d.get("incomeTransactions") or []),
            transfer_transactions=sanitize_transfers(d.get("transferTransactions") or []),
        )


# ---------------------------------------------------------------------------
# Sanitization (drops rows missing required ids, trims text, zeroes bad amounts)
# ---------------------------------------------------------------------------


def sanitize_accounts(raw: list) -> list[Account]:
    accounts = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        acct_id, name = _text(item.get("id")), _text(item.get("name"))
        if acct_id and name:
            accounts.append(Account(id=acct_id, name=name, initial=_amount(item.get("initial"))))
    return accounts


def sanitize_categories(raw: list) -> list[Category]:
    categories = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        cat_id, name = _text(item.get("id")), _text(item.get("name"))
        if cat_id and name:
            categories.append(
                Category(id=cat_id, name=name, category_id=_text(item.get("categoryId")) or None)
            )
    return categories


def sanitize_entries(raw: list) -> list[Entry]:
    entries = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        entry_id, account_id = _text(item.get("id")), _text(item.get("accountId"))
        if not entry_id or not account_id:
            continue
        entries.append(
            Entry(
                id=entry_id,
                account_id=account_id,
                amount=_amount(item.get("amount")),
                category_id=_text(item.get("categoryId")) or None,
                subcategory_id=_text(item.get("subcategoryId")) or None,
                date=_text(item.get("date")) or None,
                note=_text(item.get("note")) or None,
            )
        )
    return entries


def sanitize_transfers(raw: list) -> list[Transfer]:
    transfers = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        tx_id = _text(item.get("id"))
        src, dst = _text(item.get("fromAccountId")), _text(item.get("toAccountId"))
        if not tx_id or not src or not dst:
            continue
        transfers.append(
            Transfer(
                id=tx_id,
                from_account_id=src,
                to_account_id=dst,
                amount=_amount(item.get("amount")),
                date=_text(item.get("date")) or None,
                note=_text(item.get("note")) or None,
            )
        )
    return transfers


def account_balances(budget: Budget) -> dict[str, float]:
    """Current balance per account id; unknown account ids are ignored."""
    balances = {a.id: a.initial for a in budget.accounts}

    def bump(account_id: str, delta: float) -> None:
        if account_id in balances:
            balances[account_id] += delta

    for e in budget.income_transactions:
        bump(e.account_id, e.amount)
    for e in budget.expense_transactions:
        bump(e.account_id, -e.amount)
    for t in budget.transfer_transactions:
        bump(t.from_account_id, -t.amount)
        bump(t.to_account_id, t.amount)
    return {aid: round(value, 2) for aid, value in balances.items()}
