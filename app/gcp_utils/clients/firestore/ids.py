"""Firestore document id validation."""

MAX_ID_BYTES = 1500


def is_invalid_id(document_id: str) -> bool:
    """Check whether a string cannot be used as a Firestore document id.

    Invalid ids are "." and "..", ids containing "/", ids wrapped in double
    underscores (reserved) and ids longer than 1500 bytes once UTF-8 encoded.
    """
    return (
        document_id in (".", "..")
        or "/" in document_id
        or (document_id.startswith("__") and document_id.endswith("__"))
        or len(document_id.encode("utf-8")) > MAX_ID_BYTES
    )


def is_valid_id(document_id: str) -> bool:
    return not is_invalid_id(document_id)
