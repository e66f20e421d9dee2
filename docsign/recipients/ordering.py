# docsign/recipients/ordering.py

"""
Signing order resolution.

Under sequential signing recipients act one after another in the order given by
their signing_order; recipients without an order come after all ordered ones and
ties are broken by id. Under parallel signing there is no enforced order.

These functions are pure: they work on any objects exposing ``id``,
``signing_order`` and ``signing_status`` and never touch the database.
"""

from typing import Iterable, List, Optional, Sequence, Tuple, TypeVar

from docsign.documents.schemas import SigningOrderMode, SigningStatus

R = TypeVar("R")


def _ordering_key(recipient) -> Tuple[bool, int, int]:
    return (
        recipient.signing_order is None,
        recipient.signing_order if recipient.signing_order is not None else 0,
        recipient.id,
    )


def sort_recipients(recipients: Iterable[R]) -> List[R]:
    """Return recipients in resolved signing order (nulls last, ties by id)."""
    return sorted(recipients, key=_ordering_key)


def _is_sequential(signing_order_mode) -> bool:
    return signing_order_mode in (SigningOrderMode.SEQUENTIAL, SigningOrderMode.SEQUENTIAL.value)


def _position(sorted_recipients: Sequence, recipient_id: int) -> int:
    for index, recipient in enumerate(sorted_recipients):
        if recipient.id == recipient_id:
            return index
    return -1


def next_recipient(
    all_recipients: Iterable[R],
    current_recipient_id: int,
    signing_order_mode,
) -> Optional[R]:
    """
    Recipient who signs after the current one.

    Returns None when the document is not signed sequentially, when the current
    recipient is the last one, or when it is not part of the document.
    """
    if not _is_sequential(signing_order_mode):
        return None

    ordered = sort_recipients(all_recipients)
    index = _position(ordered, current_recipient_id)
    if index == -1 or index == len(ordered) - 1:
        return None
    return ordered[index + 1]


def is_recipients_turn(recipient, all_recipients: Iterable, signing_order_mode) -> bool:
    """
    Whether the recipient may interact with their fields right now.

    Parallel documents are always the recipient's turn. For sequential documents
    every recipient ahead of this one in the resolved order must have signed,
    and a recipient who has signed already had their turn.
    """
    if not _is_sequential(signing_order_mode):
        return True

    ordered = sort_recipients(all_recipients)
    index = _position(ordered, recipient.id)
    if index == -1 or recipient.signing_status == SigningStatus.SIGNED:
        return False

    return all(
        predecessor.signing_status == SigningStatus.SIGNED
        for predecessor in ordered[:index]
    )
