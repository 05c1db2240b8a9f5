from datetime import date, time

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

def day_name(value: date) -> str:
    # date.weekday() is 0=Monday..6=Sunday
    return DAY_NAMES[value.weekday()]

def works_on(available_days, value: date) -> bool:
    target = day_name(value).lower()
    return any(str(day or "").strip().lower() == target for day in (available_days or []))

def normalize_time(value: time) -> time:
    # Slots are minute aligned; drop seconds so the unique index compares equal values
    return value.replace(second=0, microsecond=0, tzinfo=None)

def format_time(value: time) -> str:
    return value.strftime("%H:%M")

def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute

def from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)

def format_appointment_number(prefix: str, number: int) -> str:
    return f"{prefix}-{number:06d}"

def append_note(existing, line: str) -> str:
    existing = (existing or "").strip()
    return f"{existing}\n{line}" if existing else line
