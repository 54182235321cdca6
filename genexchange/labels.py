from typing import Callable, Mapping, Optional

# Placeholder category id the web client stores for free-text entries.
FREE_TEXT_CATEGORY_ID = "00000000-0000-0000-0000-000000000000"

LabelMatcher = Callable[[str, str], bool]


def normalize_text(s: str) -> str:
    return " ".join(s.strip().lower().split())


def resolve_label(
    category_id: Optional[str],
    description: Optional[str],
    categories: Mapping[str, str],
) -> str:
    """Return the comparable label for a stored offering or want.

    Items tied to a known category are labelled by the category name.
    Free-text items (placeholder id, missing or unknown category) are
    their own category: the description is the label.
    """
    if category_id and category_id != FREE_TEXT_CATEGORY_ID:
        name = categories.get(category_id)
        if name and name.strip():
            return name.strip()
    return (description or "").strip()


def exact_match(want_label: str, offering_label: str) -> bool:
    return want_label == offering_label


def normalized_match(want_label: str, offering_label: str) -> bool:
    """Case- and whitespace-insensitive equality for free-text labels."""
    return normalize_text(want_label) == normalize_text(offering_label)


MATCHERS = {
    "exact": exact_match,
    "normalized": normalized_match,
}
