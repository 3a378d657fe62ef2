"""Free-text grammar rules used by the order dialogue.

Each parser returns ``None`` (or 0 for quantities) when the text does not
match; callers turn that into a corrective re-prompt.
"""

from __future__ import annotations

import re
from enum import Enum

from orderbot.constants import DEFAULT_COUNTRY
from orderbot.store.orders import Address

_FIRST_INTEGER = re.compile(r"(\d+)")
ADDRESS_FIELDS = 4


class ConfirmationChoice(str, Enum):
    CONFIRM = "confirm"
    MODIFY = "modify"
    CANCEL = "cancel"


def extract_quantity(text: str) -> int:
    """First integer in the text ("2 cartons" → 2); 0 when there is none."""
    match = _FIRST_INTEGER.search(text)
    return int(match.group(1)) if match else 0


def parse_address(text: str, country: str = DEFAULT_COUNTRY) -> Address | None:
    """Parse "Street, City, State, Postcode".

    Exactly four comma-separated, non-empty fields are required.
    """
    parts = [part.strip() for part in text.split(",")]
    if len(parts) != ADDRESS_FIELDS or not all(parts):
        return None

    street, city, state, postcode = parts
    return Address(
        street=street,
        city=city,
        state=state,
        postcode=postcode,
        country=country,
    )


def parse_confirmation(text: str) -> ConfirmationChoice | None:
    """Which of confirm / modify / cancel the text asks for, checked in that order."""
    lowered = text.lower()
    for choice in ConfirmationChoice:
        if choice.value in lowered:
            return choice
    return None


def wants_cancel(text: str) -> bool:
    return ConfirmationChoice.CANCEL.value in text.lower()


def wants_saved_address(text: str) -> bool:
    return "saved address" in text.lower()
