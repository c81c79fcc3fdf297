from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from heritage_lanka.models.payment import PaymentStatus


class PaymentRead(BaseModel):
    id: int
    trip_id: Optional[int] = None
    event_id: Optional[int] = None
    traveler_id: int
    amount: float
    currency: str
    status: PaymentStatus
    ticket_quantity: Optional[int] = None
    paid_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CheckoutRead(BaseModel):
    payment: PaymentRead
    checkout_url: str
