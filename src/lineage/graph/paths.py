"""PathCodec - Materialized path encoding for content hierarchies.

A path is an ordered, non-empty tuple of labels. The first label belongs
to the family root; each following label belongs to the next node down.
On disk the labels are joined with "." (LTREE-compatible text).

Every prefix relationship in the engine is decided here, label by label.
Two sibling labels such as "yt_ab" and "yt_abc" never contain each other.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable, Optional, Sequence, Tuple

from lineage.errors import InvalidLabelError, ValidationError

if TYPE_CHECKING:
    from lineage.graph.models import ContentItem

LabelPath = Tuple[str, ...]

SEPARATOR = "."
WILDCARD = "*"
DEFAULT_PLATFORM_TAG = "unk"

LABEL_RE = re.compile(r"[A-Za-z0-9]([A-Za-z0-9_]*[A-Za-z0-9])?")
_DISALLOWED_RE = re.compile(r"[^A-Za-z0-9_]")
_REPEATED_UNDERSCORE_RE = re.compile(r"_+")


def _clean(raw: str) -> str:
    cleaned = _DISALLOWED_RE.sub("", raw)
    cleaned = _REPEATED_UNDERSCORE_RE.sub("_", cleaned)
    return cleaned.strip("_")


def platform_tag(platform_id: str | None, default: str = DEFAULT_PLATFORM_TAG) -> str:
    """Derive the label prefix from a platform identifier.

    The tag is the first underscore-separated component, lowercased:
    "youtube_main" -> "youtube". Empty or unusable identifiers map to
    the default tag.
    """
    if not platform_id:
        return default
    head = _clean(platform_id.split("_")[0]).lower()
    return head or default


def sanitize_label(raw_id: str, platform_prefix: str) -> str:
    """Build a path label from a content identifier and a platform tag.

    Characters outside [A-Za-z0-9_] are stripped, runs of underscores are
    collapsed, leading/trailing underscores trimmed, and the lowercased
    platform tag is joined in front with an underscore.

    Args:
        raw_id: Content identifier (any string).
        platform_prefix: Platform tag, e.g. "youtube".

    Returns:
        A label matching LABEL_RE.

    Raises:
        InvalidLabelError: If the identifier sanitizes to nothing.
    """
    body = _clean(raw_id or "")
    if not body:
        raise InvalidLabelError(f"Content id {raw_id!r} produces an empty label")
    prefix = _clean(platform_prefix or "").lower() or DEFAULT_PLATFORM_TAG
    return f"{prefix}_{body}"


def generate_label(content_id: str, platform_id: str | None) -> str:
    """Label for a content item: platform tag plus sanitized content id."""
    return sanitize_label(content_id, platform_tag(platform_id))


def generate_path(content: ContentItem, parent_path: Optional[Sequence[str]] = None) -> LabelPath:
    """Path for a content item placed under `parent_path` (or as a root).

    Deterministic: the same content identity and parent path always
    yield the same path.
    """
    return compose_path(parent_path, generate_label(content.id, content.platform_id))


def compose_path(parent_path: Optional[Sequence[str]], label: str) -> LabelPath:
    """Append a label to a parent path (or start a new root path)."""
    if not validate_label(label):
        raise InvalidLabelError(f"Invalid label: {label!r}")
    if not parent_path:
        return (label,)
    return tuple(parent_path) + (label,)


def validate_label(label: str) -> bool:
    """Check a single label against the label grammar."""
    return isinstance(label, str) and LABEL_RE.fullmatch(label) is not None


def validate_path(candidate: str | Sequence[str] | None) -> bool:
    """Return True iff every label is valid and no segment is empty.

    Accepts either the dot-joined text form or a sequence of labels.
    """
    if not candidate:
        return False
    if isinstance(candidate, str):
        labels: Sequence[str] = candidate.split(SEPARATOR)
    else:
        labels = candidate
    return all(validate_label(label) for label in labels)


def parse_path(text: str) -> LabelPath:
    """Split stored path text into labels.

    Raises:
        ValidationError: If the text is not a valid path.
    """
    if not validate_path(text):
        raise ValidationError(f"Invalid path: {text!r}")
    return tuple(text.split(SEPARATOR))


def format_path(labels: Sequence[str]) -> str:
    """Join labels into the stored text form."""
    return SEPARATOR.join(labels)


def parent_of(path: Sequence[str]) -> Optional[LabelPath]:
    """Return the parent path, or None for a root path."""
    if len(path) <= 1:
        return None
    return tuple(path[:-1])


def is_label_prefix(prefix: Sequence[str], path: Sequence[str]) -> bool:
    """True if `prefix` equals the first len(prefix) labels of `path`.

    A path is a (non-proper) prefix of itself.
    """
    if len(prefix) > len(path):
        return False
    return tuple(path[: len(prefix)]) == tuple(prefix)


def is_descendant(path: Sequence[str], ancestor: Sequence[str]) -> bool:
    """True if `path` lies strictly below `ancestor`."""
    return len(path) > len(ancestor) and is_label_prefix(ancestor, path)


def rebase(path: Sequence[str], old_prefix: Sequence[str], new_prefix: Sequence[str]) -> LabelPath:
    """Replace `old_prefix` at the head of `path` with `new_prefix`.

    Suffix labels are preserved unchanged.

    Raises:
        ValueError: If `old_prefix` is not a label prefix of `path`.
    """
    if not is_label_prefix(old_prefix, path):
        raise ValueError(f"{format_path(old_prefix)} is not a prefix of {format_path(path)}")
    return tuple(new_prefix) + tuple(path[len(old_prefix) :])


def common_prefix(paths: Iterable[Sequence[str]]) -> LabelPath:
    """Longest common label-wise prefix of all paths (empty if none)."""
    items = [tuple(p) for p in paths]
    if not items:
        return ()
    shortest = min(len(p) for p in items)
    result: list[str] = []
    for i in range(shortest):
        label = items[0][i]
        if any(p[i] != label for p in items[1:]):
            break
        result.append(label)
    return tuple(result)


def validate_pattern(pattern: str) -> bool:
    """Check a path pattern: labels or "*" segments, no empty segments."""
    if not pattern:
        return False
    return all(
        segment == WILDCARD or validate_label(segment) for segment in pattern.split(SEPARATOR)
    )


def match_path_pattern(pattern: str, path: Sequence[str]) -> bool:
    """Match a path against a dot-separated pattern.

    "*" matches zero or more whole labels; any other segment must equal
    the label at that position exactly.

    Examples:
        >>> match_path_pattern("yt_r.*", ("yt_r", "tt_a", "tt_b"))
        True
        >>> match_path_pattern("*.tt_b", ("yt_r", "tt_a", "tt_b"))
        True
        >>> match_path_pattern("yt_r.tt_a", ("yt_r", "tt_ab"))
        False
    """
    if not validate_pattern(pattern):
        raise ValidationError(f"Invalid path pattern: {pattern!r}")
    segments = pattern.split(SEPARATOR)
    labels = tuple(path)

    # reachable[j]: pattern prefix consumed so far can end at label index j
    reachable = [False] * (len(labels) + 1)
    reachable[0] = True
    for segment in segments:
        nxt = [False] * (len(labels) + 1)
        if segment == WILDCARD:
            seen = False
            for j in range(len(labels) + 1):
                seen = seen or reachable[j]
                nxt[j] = seen
        else:
            for j in range(len(labels)):
                if reachable[j] and labels[j] == segment:
                    nxt[j + 1] = True
        reachable = nxt
    return reachable[len(labels)]


def literal_prefix(pattern: str) -> LabelPath:
    """Leading labels of a pattern before the first wildcard."""
    labels: list[str] = []
    for segment in pattern.split(SEPARATOR):
        if segment == WILDCARD:
            break
        labels.append(segment)
    return tuple(labels)
