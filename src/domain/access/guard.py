from loguru import logger

from src.core.errors import PermissionDenied
from src.domain.access.policy import Actor


def enforce(allowed: bool, actor: Actor, action: str) -> None:
    """Turns a policy decision into a refusal before any mutation is issued.

    Args:
        allowed: Result of a policy predicate.
        actor: The acting user, for the audit line.
        action: Short description of the attempted action.

    Raises:
        PermissionDenied: If ``allowed`` is False.
    """
    if allowed:
        return
    logger.warning(f"Denied '{action}' for user {actor.id} (role={actor.role.value})")
    raise PermissionDenied(f"Permission denied: you cannot {action}.")
