"""
Module: inventory_kernel.models.unit
Responsibility: ORM persistence for operating units (shops, bars, kiosks) that
    hold their own inventory and record their own sales.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class OperatingUnit(TrackedBase):
    """An independent selling location.  Referenced by id everywhere else."""

    __tablename__ = "operating_units"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<OperatingUnit {self.name}>"
