import unicodedata

SUMMARY_LENGTH = 200
ELLIPSIS = "..."


def fold(value: str | None) -> str:
    """
    Return *value* with accents stripped and case folded.

    "Café Crème" and "CAFE CREME" both fold to "cafe creme", which lets a
    plain LIKE match behave like an accent- and case-insensitive collation
    on any database backend.
    """
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def summarize(content: str) -> str:
    """First ``SUMMARY_LENGTH`` characters of *content* followed by the ellipsis marker."""
    return content[:SUMMARY_LENGTH] + ELLIPSIS
