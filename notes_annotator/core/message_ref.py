from typing import List, Optional


def parse_message_ref(total_messages: int, ref: Optional[str], ids: Optional[List[str]] = None) -> int:
    """Return the zero-based index of a message reference.
    Supports: None/"last", "first", "N" (1-based), "-N" (from the end), or a message id.
    """
    if total_messages <= 0:
        raise ValueError("No messages in the conversation")
    if ref is None:
        return total_messages - 1

    r = str(ref).strip().lower()
    if r in ("", "last"):
        return total_messages - 1
    if r == "first":
        return 0
    if ids and str(ref).strip() in ids:
        return ids.index(str(ref).strip())
    try:
        n = int(r)
    except ValueError:
        raise ValueError(f"Unknown message reference: {ref}")
    if n < 0:
        if -n > total_messages:
            raise ValueError(f"Message {n} out of range (1-{total_messages})")
        return total_messages + n
    if n < 1 or n > total_messages:
        raise ValueError(f"Message {n} out of range (1-{total_messages})")
    return n - 1
