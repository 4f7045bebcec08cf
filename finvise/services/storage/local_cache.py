"""
Local Key-Value Cache

A single JSON file on the client's disk. Holds the budget set, which has no
remote table, and a write-only mirror of each owner's transactions.

DESIGN DECISION: The transaction mirror is keyed by owner and is never read
back as a source of transactions. The remote store is the only source of
truth for records, so a cached list can never be served to another user.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import pydantic
import structlog

from finvise.config import get_settings
from finvise.models.finance import Budget, Transaction
from finvise.models.summary import BudgetSet


logger = structlog.get_logger(__name__)

CACHE_FILENAME = "finvise_cache.json"
BUDGETS_KEY = "finvise_budgets"
TRANSACTIONS_KEY_PREFIX = "finvise_transactions"


def transactions_key(owner_id: str) -> str:
    return f"{TRANSACTIONS_KEY_PREFIX}:{owner_id}"


class LocalCache:
    """
    JSON-file cache.

    Unreadable or corrupt files are treated as empty; writes replace the file.
    """

    def __init__(self, cache_dir: Optional[str] = None):
        directory = cache_dir or get_settings().app.cache_dir
        self._path = Path(directory) / CACHE_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("cache_unreadable", path=str(self._path), error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.warning("cache_unreadable", path=str(self._path), error="not an object")
            return {}
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get(self, key: str) -> Optional[Any]:
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    # =========================================================================
    # BUDGETS
    # =========================================================================

    def load_budgets(self) -> list[Budget]:
        """
        Budgets saved on this device.

        Invalid entries are dropped, the rest are kept.
        """
        raw = self.get(BUDGETS_KEY)
        if not isinstance(raw, list):
            return []

        budgets = []
        for item in raw:
            try:
                budgets.append(Budget.model_validate(item))
            except pydantic.ValidationError as e:
                logger.warning("cached_budget_skipped", error=str(e))
        return budgets

    def save_budgets(self, budgets: list[Budget]) -> BudgetSet:
        """Replace the cached budget set."""
        budget_set = BudgetSet(
            budgets=budgets,
            saved_at=datetime.now(timezone.utc).isoformat(),
        )
        self.set(
            BUDGETS_KEY,
            [b.model_dump(mode="json") for b in budget_set.budgets],
        )
        return budget_set

    # =========================================================================
    # TRANSACTION MIRROR (write-only)
    # =========================================================================

    def mirror_transactions(self, owner_id: str, transactions: list[Transaction]) -> None:
        self.set(
            transactions_key(owner_id),
            [t.model_dump(mode="json") for t in transactions],
        )

    def clear_owner(self, owner_id: str) -> None:
        data = self._read_all()
        if data.pop(transactions_key(owner_id), None) is not None:
            self._write_all(data)
