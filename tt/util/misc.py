from datetime import datetime, timezone


# Simply returns the current local time as an ISO8601 string with timezone offset.
def now_iso():
    return datetime.now().astimezone().isoformat()

# Current wall-clock time as an aware UTC datetime. This is the default clock for the timer engine.
def utc_now():
    return datetime.now(timezone.utc)

# Parses a server timestamp into an aware UTC datetime. The API sends JS-style ISO strings ("...Z"), and naive
# values are assumed to already be UTC.
def parse_timestamp(value):
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)

# Inverse of parse_timestamp, always emitted with the trailing Z the API uses.
def format_timestamp(value):
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def format_elapsed(seconds):
    """Format elapsed seconds as HH:MM:SS. Negative values clamp to zero."""
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"
