"""
LedgerSettings schema.

The runtime settings of the inventory ledger: where the database lives, how
long a transaction may wait on a row lock, which payment methods settle at
checkout, and the prefixes used for generated numbers.  YAML files are
parsed into this type by the loader.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_DATABASE_URL = "sqlite:///inventory_ledger.db"


@dataclass(frozen=True)
class LedgerSettings:
    """
    Validated ledger settings.

    Guarantees:
        - lock_timeout_ms > 0, pool_size > 0, max_overflow >= 0.
        - default_low_stock_threshold >= 0.
        - instant_payment_methods are lower-case.
    """

    database_url: str = DEFAULT_DATABASE_URL
    lock_timeout_ms: int = 5000
    pool_size: int = 20
    max_overflow: int = 10
    echo_sql: bool = False
    instant_payment_methods: frozenset[str] = field(
        default_factory=lambda: frozenset({"cash"})
    )
    invoice_prefix: str = "INV"
    batch_prefix: str = "BATCH"
    default_low_stock_threshold: int = 10

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        if self.lock_timeout_ms <= 0:
            raise ValueError(f"lock_timeout_ms must be positive, got {self.lock_timeout_ms}")
        if self.pool_size <= 0:
            raise ValueError(f"pool_size must be positive, got {self.pool_size}")
        if self.max_overflow < 0:
            raise ValueError(f"max_overflow cannot be negative, got {self.max_overflow}")
        if self.default_low_stock_threshold < 0:
            raise ValueError(
                "default_low_stock_threshold cannot be negative, "
                f"got {self.default_low_stock_threshold}"
            )
        if not self.invoice_prefix or not self.batch_prefix:
            raise ValueError("invoice_prefix and batch_prefix must not be empty")
        object.__setattr__(
            self,
            "instant_payment_methods",
            frozenset(m.lower() for m in self.instant_payment_methods),
        )

    def is_instant_payment(self, payment_method: str) -> bool:
        return payment_method.lower() in self.instant_payment_methods
