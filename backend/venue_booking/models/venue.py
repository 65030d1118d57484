"""
The single shared resource being allocated.

`version` is an optimistic locking counter: every confirm bumps it with a
conditional UPDATE, so two confirms that read the same version cannot both
commit.
"""

from sqlalchemy import Column, Integer, String

from venue_booking.db.base import Base

VENUE_ID = 1


class Venue(Base):
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    version = Column(Integer, nullable=False, default=1, server_default="1")

    def __repr__(self) -> str:
        return f"<Venue(id={self.id}, name={self.name}, version={self.version})>"
