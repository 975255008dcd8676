"""Payload parsing for burner responses.

Two layouts are in use:

- pair list: ``id1=value1;id2=value2;...`` (operating, advanced and settings data)
- indexed list: ``id=value0,value1,...`` (consumption data), producing the ids
  ``id0``, ``id1``, ...
"""

import logging
from typing import NamedTuple

from pelletburner_gateway.core.models import ResponseItem
from pelletburner_gateway.protocol.constants import (
    PAYLOAD_ITEM_SEPARATOR,
    PAYLOAD_LIST_SEPARATOR,
    PAYLOAD_VALUEPAIR_SEPARATOR,
    PayloadFormat,
    RequestCategory,
)

logger = logging.getLogger(__name__)


class ParseResult(NamedTuple):
    """Items parsed from one payload, plus the fields that had to be skipped."""

    items: list[ResponseItem]
    skipped: list[str]

    @property
    def ok(self) -> bool:
        """Whether at least one item was produced."""
        return bool(self.items)


def parse_pair_list(payload: str, group: RequestCategory) -> ParseResult:
    """Parse a ``;``-separated list of ``id=value`` pairs.

    The burner occasionally truncates its last field, so a field without exactly
    one ``=`` is skipped (and reported in ``skipped``) instead of failing the
    whole payload. Empty fields, such as the one after a trailing ``;``, are
    ignored.

    Args:
        payload: Payload text.
        group: Category that produced the payload.

    Returns:
        ParseResult with one item per well-formed pair.
    """
    items: list[ResponseItem] = []
    skipped: list[str] = []

    for field in payload.split(PAYLOAD_ITEM_SEPARATOR):
        if not field:
            continue
        pair = field.split(PAYLOAD_VALUEPAIR_SEPARATOR)
        if len(pair) != 2:
            logger.warning("Skipping malformed field %r in %s payload", field, group.name)
            skipped.append(field)
            continue
        items.append(ResponseItem(group=group, id=pair[0], value=pair[1]))

    return ParseResult(items, skipped)


def parse_indexed_list(payload: str, group: RequestCategory) -> ParseResult:
    """Parse ``id=value0,value1,...`` into items ``id0``, ``id1``, ...

    Returns an empty result when the payload does not split into exactly one
    id and one value list.
    """
    parts = payload.split(PAYLOAD_VALUEPAIR_SEPARATOR)
    if len(parts) != 2:
        logger.debug("Indexed list payload has %d parts, expected 2", len(parts))
        return ParseResult([], [])

    key, remainder = parts
    values = remainder.split(PAYLOAD_LIST_SEPARATOR)
    while values and not values[-1]:
        values.pop()

    items = [ResponseItem(group=group, id=f"{key}{index}", value=value) for index, value in enumerate(values)]
    return ParseResult(items, [])


def parse_payload(payload: str, group: RequestCategory, payload_format: PayloadFormat) -> ParseResult:
    """Parse a payload using the layout its category uses."""
    if payload_format == PayloadFormat.INDEXED_LIST:
        return parse_indexed_list(payload, group)
    return parse_pair_list(payload, group)
