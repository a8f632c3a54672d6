"""External collaborators: submission directory, admin auth, identity lookup."""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable

import httpx

from judging.errors import DirectoryUnavailableError, NotFoundError
from judging.models import Submission
from judging.store.base import JudgingStore

logger = logging.getLogger(__name__)


def parse_submission(item: dict[str, Any]) -> Submission:
    return Submission(
        submission_id=str(item["submission_id"]),
        title=item.get("title") or "",
        slug=item.get("slug") or "",
        url=item.get("url") or "",
    )


class SubmissionDirectory(ABC):
    """Lists the submissions under judgment in a group. Read-only."""

    @abstractmethod
    def list_submissions(self, group_id: str) -> list[Submission]:
        pass


class StaticSubmissionDirectory(SubmissionDirectory):
    """Directory backed by a fixed mapping of group id -> submissions."""

    def __init__(self, submissions: dict[str, Iterable[Submission]] | None = None):
        self._submissions = {
            group_id: list(items) for group_id, items in (submissions or {}).items()
        }

    @classmethod
    def from_json(cls, path: str | Path) -> "StaticSubmissionDirectory":
        """Load a ``{group_id: [{submission_id, title, slug, url}, ...]}`` file."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls({
            group_id: [parse_submission(item) for item in items]
            for group_id, items in data.items()
        })

    def set_submissions(self, group_id: str, submissions: Iterable[Submission]) -> None:
        self._submissions[group_id] = list(submissions)

    def list_submissions(self, group_id: str) -> list[Submission]:
        return list(self._submissions.get(group_id, []))


class HttpSubmissionDirectory(SubmissionDirectory):
    """Directory fetched from ``GET {base_url}/groups/{group_id}/submissions``.

    The endpoint returns either a JSON list of submissions or an object
    with a ``submissions`` list.
    """

    def __init__(self, base_url: str, timeout: float = 30.0, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return self._client.get(url)
        with httpx.Client(follow_redirects=True, timeout=self.timeout) as client:
            return client.get(url)

    def list_submissions(self, group_id: str) -> list[Submission]:
        url = f"{self.base_url}/groups/{group_id}/submissions"
        try:
            response = self._get(url)
            if response.status_code == 404:
                raise NotFoundError(f"Submission directory has no group {group_id}")
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("Submission directory returned %s for %s", e.response.status_code, url)
            raise DirectoryUnavailableError(
                f"HTTP error fetching submissions: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            logger.warning("Submission directory unreachable at %s: %s", url, e)
            raise DirectoryUnavailableError(f"Error fetching submissions: {e}") from e
        except ValueError as e:
            raise DirectoryUnavailableError(f"Malformed submissions response: {e}") from e

        items = payload.get("submissions", []) if isinstance(payload, dict) else payload
        try:
            return [parse_submission(item) for item in items]
        except (KeyError, TypeError, AttributeError) as e:
            raise DirectoryUnavailableError(f"Malformed submission entry: {e}") from e


class AdminAuth(ABC):
    """Answers whether a caller holds the admin role."""

    @abstractmethod
    def is_admin(self, caller_id: str) -> bool:
        pass


class StaticAdminAuth(AdminAuth):
    def __init__(self, admin_ids: Iterable[str] = ()):
        self.admin_ids = frozenset(admin_ids)

    def is_admin(self, caller_id: str) -> bool:
        return caller_id in self.admin_ids


class IdentityLookup(ABC):
    """Resolves user ids to display names."""

    @abstractmethod
    def get_display_name(self, user_id: str) -> str:
        pass


class StoreIdentityLookup(IdentityLookup):
    """Display names of judges as registered in the store.

    Unknown ids fall back to the id itself, so an export never fails
    just because a judge record was removed.
    """

    def __init__(self, store: JudgingStore):
        self.store = store

    def get_display_name(self, user_id: str) -> str:
        judge = self.store.get_judge(user_id)
        return judge.name if judge else user_id
