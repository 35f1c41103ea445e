"""Hostel fee compliance package.

Organized by feature modules (policies, reminders, late_fees, ...) with a thin
Flask controller layer over service/repository layers. Student directory,
academic calendar, payment ledger and fee schedule are read through
repository interfaces only.
"""
