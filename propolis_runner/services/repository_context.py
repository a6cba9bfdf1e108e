"""Repository context resolution from inputs and the pipeline environment"""
import json
import logging
from pathlib import Path
from typing import Optional

from ..config import Settings
from ..models.batch_schemas import RepositoryContext

logger = logging.getLogger(__name__)


def read_commit_message(event_path: str) -> Optional[str]:
    """
    Read the head commit message from the pipeline's event payload.

    Args:
        event_path: Path to the event JSON file (may be empty)

    Returns:
        The commit message, or None when the payload is absent or has none
    """
    if not event_path:
        return None
    try:
        event = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read event payload {event_path}: {e}")
        return None

    head_commit = event.get("head_commit") if isinstance(event, dict) else None
    if isinstance(head_commit, dict):
        return head_commit.get("message") or None
    return None


def resolve_repository_context(settings: Settings) -> Optional[RepositoryContext]:
    """
    Build the repository context sent with the trigger call.

    Explicit inputs win; otherwise each field falls back to the pipeline
    environment. Returns None when nothing could be resolved.
    """
    repository_url = None
    if settings.github_repository:
        repository_url = f"{settings.github_server_url.rstrip('/')}/{settings.github_repository}"

    context = RepositoryContext(
        commit_sha=settings.input_commitsha or settings.github_sha or None,
        repository_url=settings.input_repositoryurl or repository_url,
        branch=settings.input_branch or settings.github_head_ref or settings.github_ref_name or None,
        commit_message=settings.input_commitmessage or read_commit_message(settings.github_event_path),
    )
    if context.is_empty():
        return None
    return context
