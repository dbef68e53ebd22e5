from sqlalchemy import Column, String, Integer

from carworld.core.database import Base


class Counter(Base):
    """Named monotonic sequence (e.g. "invoice:2025")"""
    __tablename__ = "counters"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<Counter {self.name}={self.value}>"
