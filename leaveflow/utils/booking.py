"""Human-facing booking references for leave requests."""


def format_booking_ref(leave_id: int, year: int) -> str:
    """LV-<year>-<last six digits of id, zero padded>, e.g. LV-2026-000042."""
    return f"LV-{year}-{leave_id % 1_000_000:06d}"
