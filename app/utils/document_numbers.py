import re

_TRAILING_DIGITS = re.compile(r"(\d+)$")


def next_document_number(last_number: str | None, prefix: str, width: int = 5) -> str:
    """PO-00041 -> PO-00042; anything unparseable restarts the sequence at 1."""
    next_value = 1
    if last_number:
        match = _TRAILING_DIGITS.search(last_number)
        if match:
            next_value = int(match.group(1)) + 1
    return f"{prefix}-{str(next_value).zfill(width)}"
