from sqlalchemy import Column, Integer, String, DateTime, Float, Text, func

from heritage_lanka.core.db import Base


class Event(Base):
    """Ticketed cultural event; ``ticket_count`` is the number still for sale"""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    venue = Column(String(255), nullable=False)
    event_date = Column(DateTime, nullable=False, index=True)
    ticket_price = Column(Float, nullable=False)
    ticket_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
