"""
Scheduling Domain

Weekly availability, slot generation, the booking ledger and post-booking forms.

Structure:
- time_calculator.py      # "HH:MM" <-> minutes since midnight
- conflict_guard.py       # Half-open overlap checks against the ledger
- availability_service.py # Slot generation and booking validation
- repository.py           # Database queries
- service.py              # Booking create/reschedule/status, availability writes, forms
- schemas.py              # Request/response models
- router.py               # /bookings endpoints

Reminders for bookings and forms live in services/automation_service.py.
"""
