import ulid


def new_id(prefix: str = "") -> str:
    """Sortable identifier: ``prefix`` followed by a lower-case ULID."""
    return prefix + ulid.new().str.lower()
