"""Asset tag numbering.

Two paths:

* ``preview_next_tag`` is advisory. It derives the next tag from the
  tags it is given and may be stale by the time an asset is saved.
* ``allocate_tag`` is authoritative. It increments the prefix's
  counter under a row lock and never returns a tag that already exists.
  Categories sharing a prefix share the counter, as does the default
  fallback prefix.
"""

import logging
from collections.abc import Iterable

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from ..models import Asset, TagCounter, TagFormat

logger = logging.getLogger(__name__)


class TagFormatNotConfigured(ValidationError):
    """No tag format exists for the category and no fallback was given."""


class TagAllocationError(Exception):
    """The server-side counter could not produce a tag."""


def format_tag(prefix: str, padding: int, number: int) -> str:
    """Render ``number`` zero-padded to ``padding`` digits.

    Numbers wider than ``padding`` keep their natural width.
    """
    return f"{prefix}{str(number).zfill(padding)}"


def _parse_suffix(tag: str, prefix: str) -> int | None:
    suffix = tag[len(prefix):]
    if not suffix.isascii() or not suffix.isdigit():
        return None
    return int(suffix)


def max_suffix(prefix: str, existing_tags: Iterable[str]) -> int:
    """Largest numeric suffix among tags starting with ``prefix``.

    Tags whose remainder is not a base-10 integer are ignored. Returns 0
    when nothing matches.
    """
    highest = 0
    for tag in existing_tags:
        if not tag or not tag.startswith(prefix):
            continue
        number = _parse_suffix(tag, prefix)
        if number is not None and number > highest:
            highest = number
    return highest


def preview_next_tag(
    prefix: str, padding: int, existing_tags: Iterable[str]
) -> str:
    """Next tag for ``prefix`` given the tags already in use."""
    return format_tag(prefix, padding, max_suffix(prefix, existing_tags) + 1)


def existing_tags_for_prefix(prefix: str) -> list[str]:
    """Asset tags (active or not) that start with ``prefix``."""
    return list(
        Asset.objects.filter(asset_tag__startswith=prefix).values_list(
            "asset_tag", flat=True
        )
    )


def get_tag_format(category) -> TagFormat:
    """Return the tag format configured for ``category``.

    Raises TagFormatNotConfigured when there is none.
    """
    if category is None:
        raise TagFormatNotConfigured("No category selected for tagging.")
    try:
        return TagFormat.objects.get(category=category)
    except TagFormat.DoesNotExist:
        raise TagFormatNotConfigured(
            f"No tag format is configured for category '{category}'."
        ) from None


def resolve_tag_format(
    category, fallback_prefix: str | None = None, fallback_padding: int = 4
) -> TagFormat:
    """Return the category's format, or an unsaved fallback format.

    The fallback is only used when the caller passes ``fallback_prefix``
    explicitly.
    """
    try:
        return get_tag_format(category)
    except TagFormatNotConfigured:
        if not fallback_prefix:
            raise
    return TagFormat(
        prefix=fallback_prefix,
        zero_padding=fallback_padding,
        start_number=1,
        current_number=0,
    )


def preview_tag_for_category(category) -> str | None:
    """Preview the next tag for display; ``None`` means not configured."""
    try:
        tag_format = get_tag_format(category)
    except TagFormatNotConfigured:
        return None
    try:
        existing = existing_tags_for_prefix(tag_format.prefix)
    except DatabaseError:
        logger.exception("Tag preview failed for category %s", category)
        return None
    observed = max_suffix(tag_format.prefix, existing)
    number = max(observed + 1, tag_format.start_number)
    return format_tag(tag_format.prefix, tag_format.zero_padding, number)


def get_next_asset_number(tag_format: TagFormat) -> int:
    """Atomically hand out the next number for ``tag_format``'s prefix.

    The prefix's counter row is locked for the duration of the caller's
    transaction. The number is never below the configured start, never
    at or below either stored counter, and never collides with an
    existing tag for the prefix. ``tag_format`` may be an unsaved
    fallback format.
    """
    try:
        with transaction.atomic():
            counter, _ = TagCounter.objects.select_for_update().get_or_create(
                prefix=tag_format.prefix
            )
            current = tag_format
            if tag_format.pk is not None:
                current = TagFormat.objects.get(pk=tag_format.pk)
            observed = max_suffix(
                current.prefix, existing_tags_for_prefix(current.prefix)
            )
            number = max(
                counter.last_number + 1,
                current.current_number + 1,
                current.start_number,
                observed + 1,
            )
            TagCounter.objects.filter(pk=counter.pk).update(
                last_number=number
            )
            if tag_format.pk is not None:
                TagFormat.objects.filter(pk=tag_format.pk).update(
                    current_number=number
                )
    except (DatabaseError, TagFormat.DoesNotExist) as exc:
        logger.exception(
            "Asset number allocation failed for prefix %s", tag_format.prefix
        )
        raise TagAllocationError(
            f"Could not allocate an asset number for "
            f"'{tag_format.prefix}'."
        ) from exc
    tag_format.current_number = number
    return number


def allocate_tag(
    category, fallback_prefix: str | None = None, fallback_padding: int = 4
) -> str:
    """Authoritative tag for a new asset in ``category``.

    Raises TagFormatNotConfigured or TagAllocationError; callers must not
    create the asset when either is raised.
    """
    tag_format = resolve_tag_format(
        category, fallback_prefix, fallback_padding
    )
    number = get_next_asset_number(tag_format)
    tag = format_tag(tag_format.prefix, tag_format.zero_padding, number)
    logger.info("Allocated asset tag %s", tag)
    return tag
