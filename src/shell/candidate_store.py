"""Candidate Store - Imperative Shell.

Reads the data the feed and nearby searches work on from Firestore:
recent posts, a user's follow set, and user locations. All reads raise
SourceUnavailable on failure; nothing here invents data.

Document structure:
    posts/{post_id}:
        {"author_id", "created_at", "location": {"latitude", "longitude"} | None,
         "like_count", "comment_count", "share_count", "tags": [...]}
    follows/{id}:
        {"follower_id", "following_id"}
    user_locations/{user_id}:
        {"latitude", "longitude", "address", "updated_at"}
"""

import logging
from datetime import datetime
from typing import Any

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from src.core.geo import BoundingBox, Coordinate
from src.core.geofence import LocatedEntity
from src.core.ranking import CandidateItem
from src.shell.firestore_client import (
    FirestoreClient,
    as_utc,
    coordinate_from_doc,
    translate_errors,
    utcnow,
)


logger = logging.getLogger(__name__)


def _int_field(data: dict[str, Any], name: str) -> int:
    try:
        return max(0, int(data.get(name) or 0))
    except (TypeError, ValueError):
        return 0


def item_from_doc(doc_id: str, data: dict[str, Any]) -> CandidateItem | None:
    """Parse a post document, or None if it has no usable timestamp/author."""
    created_at = as_utc(data.get("created_at"))
    author_id = data.get("author_id")
    if created_at is None or not author_id:
        return None

    return CandidateItem(
        id=doc_id,
        author_id=author_id,
        created_at=created_at,
        coordinate=coordinate_from_doc(data.get("location")),
        like_count=_int_field(data, "like_count"),
        comment_count=_int_field(data, "comment_count"),
        share_count=_int_field(data, "share_count"),
        tags=tuple(str(t) for t in data.get("tags") or ()),
    )


class FirestoreCandidateStore:
    """Read-side access to posts, follows and user locations."""

    def __init__(self, firestore_client: FirestoreClient) -> None:
        self.firestore = firestore_client
        self.settings = firestore_client.settings

    def fetch_recent_items(self, since: datetime, limit: int) -> list[CandidateItem]:
        """Fetch a bounded window of posts created at or after since.

        This method performs database I/O.

        Args:
            since: Oldest creation time to include
            limit: Maximum posts to read

        Returns:
            Parsed posts, newest first (malformed documents are skipped)

        Raises:
            SourceUnavailable: If the read fails
        """
        logger.info("Fetching up to %d posts since %s", limit, since.isoformat())

        query = (
            self.firestore.collection(self.settings.posts_collection)
            .where(filter=FieldFilter("created_at", ">=", since))
            .order_by("created_at", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )

        items = []
        skipped = 0
        with translate_errors("fetch recent posts"):
            for doc in query.stream():
                item = item_from_doc(doc.id, doc.to_dict() or {})
                if item is None:
                    skipped += 1
                    continue
                items.append(item)

        if skipped:
            logger.warning("Skipped %d malformed post documents", skipped)

        logger.info("Fetched %d candidate posts", len(items))
        return items

    def fetch_following_ids(self, user_id: str) -> frozenset[str]:
        """Fetch the IDs of users that user_id follows.

        Raises:
            SourceUnavailable: If the read fails
        """
        query = (
            self.firestore.collection(self.settings.follows_collection)
            .where(filter=FieldFilter("follower_id", "==", user_id))
        )

        with translate_errors("fetch follow set"):
            following = frozenset(
                data["following_id"]
                for data in (doc.to_dict() or {} for doc in query.stream())
                if data.get("following_id")
            )

        logger.info("User %s follows %d users", user_id, len(following))
        return following

    def get_user_location(self, user_id: str) -> Coordinate | None:
        """Fetch a user's last known location, None if never reported.

        Raises:
            SourceUnavailable: If the read fails
        """
        with translate_errors("fetch user location"):
            doc = self.firestore.collection(self.settings.locations_collection).document(user_id).get()

        if not doc.exists:
            return None
        return coordinate_from_doc(doc.to_dict())

    def upsert_user_location(
        self,
        user_id: str,
        coordinate: Coordinate,
        address: str | None = None,
    ) -> None:
        """Store a user's current location (one document per user).

        Raises:
            SourceUnavailable: If the write fails
        """
        logger.info("Updating location for user %s", user_id)

        with translate_errors("update user location"):
            self.firestore.collection(self.settings.locations_collection).document(user_id).set({
                "user_id": user_id,
                "latitude": coordinate.latitude,
                "longitude": coordinate.longitude,
                "address": address,
                "updated_at": utcnow(),
            })

    def fetch_located_users(self, box: BoundingBox) -> list[LocatedEntity]:
        """Fetch users whose location falls inside a bounding box.

        Firestore allows range filters on one field, so the query bounds
        latitude and longitude is checked here. Exact radius membership
        is left to the geofence matcher.

        Raises:
            SourceUnavailable: If the read fails
        """
        query = (
            self.firestore.collection(self.settings.locations_collection)
            .where(filter=FieldFilter("latitude", ">=", box.min_latitude))
            .where(filter=FieldFilter("latitude", "<=", box.max_latitude))
        )

        users = []
        with translate_errors("fetch located users"):
            for doc in query.stream():
                coordinate = coordinate_from_doc(doc.to_dict())
                if coordinate is None or not box.contains(coordinate):
                    continue
                users.append(LocatedEntity(id=doc.id, coordinate=coordinate))

        logger.info("Fetched %d users in latitude band", len(users))
        return users
