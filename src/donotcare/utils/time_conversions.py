def convert_to_seconds(hours=0, minutes=0, seconds=0):
    """Total seconds for a duration. Raises ValueError on negative parts."""
    if min(hours, minutes, seconds) < 0:
        raise ValueError("Time components cannot be negative.")
    return hours * 3600 + minutes * 60 + seconds


def format_seconds_to_hms(total_seconds):
    """HH:MM:SS, or "-Invalid Time-" for negative input."""
    if total_seconds < 0:
        return "-Invalid Time-"
    minutes, seconds = divmod(int(total_seconds), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}"


def format_elapsed(total_seconds) -> str:
    """MM:SS below one hour, HH:MM:SS from one hour on."""
    total_seconds = max(0, int(total_seconds))
    if total_seconds >= 3600:
        return format_seconds_to_hms(total_seconds)
    return format_countdown(total_seconds)


def format_countdown(total_seconds) -> str:
    # minutes are not wrapped into hours
    minutes, seconds = divmod(max(0, int(total_seconds)), 60)
    return f"{minutes:02}:{seconds:02}"
