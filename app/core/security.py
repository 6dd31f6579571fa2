from typing import Optional

from fastapi import Header


def get_actor_id(x_actor_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Opaque identifier of the caller, supplied by the identity provider upstream."""
    if x_actor_id is None:
        return None
    value = x_actor_id.strip()
    return value or None
