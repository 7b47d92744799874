"""
Scheduling Domain

Turns a service's weekly availability plus the provider's existing bookings
into bookable slots, and reserves slots so that a provider is never double
booked.

Structure:
```
marketplace/domain/scheduling/
├── __init__.py
├── schemas.py       # ServiceAvailability, Actor, request/response models
├── availability.py  # Recurrence -> candidate slots (pure)
├── conflicts.py     # Half-open interval overlap checks (pure)
├── repository.py    # Service and booking queries
├── scheduler.py     # BookingScheduler: open slots, reservation, transitions
├── exceptions.py    # Error taxonomy mapped to HTTP statuses
└── router.py        # /bookings endpoints
```

ENDPOINTS:
- GET /bookings/open-slots?serviceId&from&to - Open slots for a service
- POST /bookings - Reserve a slot (pending/pending)
- GET /bookings - Bookings of the calling user or provider
- GET /bookings/{booking_id} - One booking the caller is party to
- PATCH /bookings/{booking_id} - Confirm/reject/complete (provider), cancel (user)

BOOKING LIFECYCLE:
- status: pending -> confirmed -> completed, pending -> cancelled
- provider_status: pending -> confirmed | rejected (rejected forces status=cancelled)
"""

from .router import router

__all__ = ["router"]
