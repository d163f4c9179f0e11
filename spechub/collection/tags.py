"""
Collection Tag Slugs

Spec Hub tags must be 2-64 characters, lowercase, start with a letter, end
with a letter or digit, and use only letters, digits and hyphens in between.
`validate_tag` repairs any input into that shape instead of rejecting it, and
is idempotent: validate_tag(validate_tag(s)) == validate_tag(s).
"""
from __future__ import annotations

import re
from typing import Iterable, List

MIN_LENGTH = 2
MAX_LENGTH = 64
MAX_TAGS_PER_COLLECTION = 5

TAG_PATTERN = re.compile(r"^[a-z](?:[a-z0-9-]{0,62}[a-z0-9])$")

_INVALID_CHARS = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUNS = re.compile(r"-{2,}")


def is_valid_tag(tag: str) -> bool:
    return bool(TAG_PATTERN.match(tag)) and "--" not in tag


def validate_tag(value: str) -> str:
    """
    Coerce `value` into a valid tag slug.

    Steps: lowercase, invalid characters to hyphens, collapse hyphen runs,
    prefix "tag-" when it does not start with a letter, truncate to 64,
    end with "0" when the last character is a hyphen, pad to 2 characters.
    """
    tag = _INVALID_CHARS.sub("-", value.lower())
    tag = _HYPHEN_RUNS.sub("-", tag)

    if not tag or not ("a" <= tag[0] <= "z"):
        tag = "tag-" + tag.lstrip("-")

    tag = tag[:MAX_LENGTH]
    if tag.endswith("-"):
        tag = tag[:MAX_LENGTH - 1] + "0"
    if len(tag) < MIN_LENGTH:
        tag += "0"
    return tag


def normalize_tags(values: Iterable[str], limit: int = MAX_TAGS_PER_COLLECTION) -> List[str]:
    """Validate, drop duplicates (first wins) and cap at `limit`."""
    tags: List[str] = []
    for value in values:
        tag = validate_tag(value)
        if tag not in tags:
            tags.append(tag)
        if len(tags) == limit:
            break
    return tags
