"""Who may change a project."""

from .exceptions import PermissionDeniedError
from .models import Actor, Project


def _identities(actor: Actor) -> set[str]:
    return {
        identity.strip().casefold()
        for identity in (actor.id, actor.email)
        if identity and identity.strip()
    }


def can_mutate(actor: Actor | None, project: Project) -> bool:
    """
    Whether an actor may change a project or its expenses.

    The owner always may; editors are matched case-insensitively against the
    actor's id or email.
    """
    if actor is None:
        return False
    if actor.id == project.owner_id:
        return True
    editors = {editor.casefold() for editor in project.editor_ids}
    return not editors.isdisjoint(_identities(actor))


def require_mutate(actor: Actor | None, project: Project) -> None:
    """Raise PermissionDeniedError unless the actor may change the project."""
    if not can_mutate(actor, project):
        actor_id = actor.id if actor else "anonymous"
        raise PermissionDeniedError(actor_id, project.id)
