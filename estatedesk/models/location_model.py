"""Country / State / City lookup tables used to resolve structured addresses."""
import uuid
from typing import Optional

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from estatedesk.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Country(Base):
    __tablename__ = "countries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(100), index=True)
    code: Mapped[str] = mapped_column(String(3), comment="ISO 3166-1 alpha-2")
    phone_code: Mapped[Optional[str]] = mapped_column(String(10))
    currency_code: Mapped[Optional[str]] = mapped_column(String(3))

    def __repr__(self) -> str:
        return f"<Country(code='{self.code}', name='{self.name}')>"


class State(Base):
    __tablename__ = "states"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(100))
    code: Mapped[Optional[str]] = mapped_column(String(10))
    country_id: Mapped[str] = mapped_column(String(36), ForeignKey("countries.id", ondelete="CASCADE"), index=True)

    def __repr__(self) -> str:
        return f"<State(name='{self.name}', country_id={self.country_id})>"


class City(Base):
    __tablename__ = "cities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(100))
    state_id: Mapped[str] = mapped_column(String(36), ForeignKey("states.id", ondelete="CASCADE"), index=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20))

    def __repr__(self) -> str:
        return f"<City(name='{self.name}', state_id={self.state_id})>"
