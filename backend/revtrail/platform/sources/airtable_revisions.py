"""AirtableRevisionFetcher - reads row activities from the internal web endpoint.

The endpoint is the one the web client calls when the record panel opens:
``GET /v0.3/row/{record_id}/readRowActivitiesAndComments``. It is only reachable
with a browser session, so every call carries the stored cookies and
browser-shaped headers and goes through the shared dispatcher.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx

from revtrail.core.config import settings
from revtrail.core.credential_store import CredentialStore
from revtrail.core.exceptions import CredentialsExpiredException
from revtrail.core.logging import ContextualLogger
from revtrail.core.logging import logger as default_logger
from revtrail.platform.http_client.dispatcher import RateLimitedDispatcher
from revtrail.platform.http_client.headers import random_client_id, row_activity_headers
from revtrail.platform.parsers.diff_parser import DiffParser, sort_events
from revtrail.schemas.change_event import ChangeEvent
from revtrail.schemas.raw_activity import ActivityUser, RawActivity


def _parse_time(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _build_user(raw: Optional[Dict[str, Any]]) -> Optional[ActivityUser]:
    if not isinstance(raw, dict):
        return None
    return ActivityUser(id=raw.get("id"), name=raw.get("name"), email=raw.get("email"))


def extract_activities(payload: Dict[str, Any]) -> Tuple[List[RawActivity], Optional[Any]]:
    """Pull activities and the next-page offset out of a response body.

    Understands the current ``data.rowActivityInfoById`` shape and the older
    top-level ``activities`` list.
    """
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("rowActivityInfoById"), dict):
        users = data.get("rowActivityOrCommentUserObjById") or {}
        activities = []
        for activity_id, info in data["rowActivityInfoById"].items():
            info = info or {}
            user_id = info.get("originatingUserId")
            activities.append(
                RawActivity(
                    id=activity_id,
                    created_time=_parse_time(info.get("createdTime")),
                    originating_user_id=user_id,
                    group_type=info.get("groupType"),
                    diff_row_html=info.get("diffRowHtml"),
                    user=_build_user(users.get(user_id)) if user_id else None,
                )
            )
        return activities, data.get("offsetV2")

    if isinstance(payload.get("activities"), list):
        activities = []
        for info in payload["activities"]:
            if not isinstance(info, dict):
                continue
            activities.append(
                RawActivity(
                    id=info.get("id"),
                    created_time=_parse_time(info.get("createdTime")),
                    originating_user_id=info.get("originatingUserId"),
                    group_type=info.get("groupType"),
                    diff_row_html=info.get("diffRowHtml") or info.get("htmlContent"),
                    user=_build_user(info.get("user")),
                )
            )
        return activities, None

    return [], None


class AirtableRevisionFetcher:
    """Fetches and parses the revision history of single records."""

    def __init__(
        self,
        dispatcher: RateLimitedDispatcher,
        store: CredentialStore,
        parser: Optional[DiffParser] = None,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the fetcher.

        Args:
            dispatcher: Shared dispatcher for the internal endpoint
            store: Credential store, told when the platform rejects the session
            parser: Diff parser
            page_size: Activities requested per page
            max_pages: Pages followed per record
            logger: Contextual logger
        """
        self._dispatcher = dispatcher
        self._store = store
        self._parser = parser or DiffParser()
        self.page_size = page_size or settings.REVISION_PAGE_SIZE
        self.max_pages = max_pages or settings.REVISION_MAX_PAGES
        self._logger = logger or default_logger.with_context(component="revision_fetcher")

    def _url(self, record_id: str) -> str:
        return f"{settings.AIRTABLE_BASE_URL}/v0.3/row/{record_id}/readRowActivitiesAndComments"

    def _params(self, offset: Optional[Any]) -> Dict[str, str]:
        return {
            "stringifiedObjectParams": json.dumps(
                {
                    "limit": self.page_size,
                    "offsetV2": offset,
                    "shouldReturnDeserializedActivityItems": True,
                    "shouldIncludeRowActivityOrCommentUserObjById": True,
                }
            ),
            "requestId": random_client_id("req"),
            "secretSocketId": random_client_id("soc"),
        }

    async def fetch_activities(
        self, base_id: str, table_id: str, record_id: str, credential: str
    ) -> Optional[List[RawActivity]]:
        """Fetch raw activities, following pagination up to ``max_pages``.

        Returns:
            Activities in response order, or None when the record has no history (404)

        Raises:
            CredentialsExpiredException: The platform rejected the session (401/403)
            httpx.HTTPStatusError: 429 after every retry, or any other error status
            httpx.HTTPError: Transport failure
        """
        activities: List[RawActivity] = []
        offset: Optional[Any] = None
        for page in range(self.max_pages):
            response = await self._dispatcher.get(
                self._url(record_id),
                params=self._params(offset),
                headers=row_activity_headers(credential, base_id, table_id),
                timeout=settings.REVISION_REQUEST_TIMEOUT_SECONDS,
            )

            if response.status_code == 404:
                if page == 0:
                    self._logger.debug(f"[Fetcher] No revision history for {record_id} (404)")
                    return None
                break
            if response.status_code in (401, 403):
                self._logger.warning(
                    f"[Fetcher] Session rejected ({response.status_code}) fetching {record_id}"
                )
                await self._store.mark_invalid(credential)
                raise CredentialsExpiredException(response.status_code, record_id=record_id)
            response.raise_for_status()

            page_activities, offset = extract_activities(response.json())
            activities.extend(page_activities)
            if not offset or not page_activities:
                break
        return activities

    async def fetch(
        self, base_id: str, table_id: str, record_id: str, credential: str
    ) -> List[ChangeEvent]:
        """Fetch a record's activities and parse them into change events.

        An empty list means the record has no tracked changes, including the 404 case.
        """
        activities = await self.fetch_activities(base_id, table_id, record_id, credential)
        if not activities:
            return []
        events = sort_events(self._parser.parse_many(activities, record_id))
        self._logger.debug(
            f"[Fetcher] {record_id}: {len(activities)} activities, {len(events)} tracked changes"
        )
        return events
