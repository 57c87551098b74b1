"""Engagement Store - Imperative Shell.

Like state and post ownership lookups in Firestore. The like row and
the post's like_count change in one transaction.

Document structure:
    post_likes/{post_id}_{user_id}:
        {"post_id", "user_id", "created_at"}
"""

import logging
from typing import Any

from src.core.engagement import LikeState, apply_like
from src.core.errors import NotFound
from src.shell.firestore_client import FirestoreClient, translate_errors, utcnow


logger = logging.getLogger(__name__)


class FirestoreEngagementStore:
    """Like state and post author lookup."""

    def __init__(self, firestore_client: FirestoreClient) -> None:
        self.firestore = firestore_client
        self.settings = firestore_client.settings

    def _post_ref(self, post_id: str) -> Any:
        return self.firestore.collection(self.settings.posts_collection).document(post_id)

    def get_post_author(self, post_id: str) -> str:
        """Fetch a post's author ID.

        Raises:
            NotFound: If the post does not exist
            SourceUnavailable: If the read fails
        """
        with translate_errors("fetch post"):
            snapshot = self._post_ref(post_id).get()

        if not snapshot.exists:
            raise NotFound(f"Post {post_id} not found")
        return (snapshot.to_dict() or {}).get("author_id", "")

    def set_like(self, post_id: str, user_id: str, liked: bool) -> tuple[LikeState, str]:
        """Set whether a user likes a post.

        Nothing is written if the post is already in the requested
        state, so a retried request leaves the count unchanged.

        Returns:
            (resulting like state, post author ID)

        Raises:
            NotFound: If the post does not exist
            SourceUnavailable: If the transaction fails
        """
        post_ref = self._post_ref(post_id)
        like_ref = (
            self.firestore.collection(self.settings.likes_collection)
            .document(f"{post_id}_{user_id}")
        )

        def _set(transaction: Any) -> tuple[LikeState, str]:
            post = post_ref.get(transaction=transaction)
            if not post.exists:
                raise NotFound(f"Post {post_id} not found")
            like = like_ref.get(transaction=transaction)

            data = post.to_dict() or {}
            result = apply_like(post_id, user_id, like.exists, int(data.get("like_count") or 0), liked)

            if result.changed:
                if result.liked:
                    transaction.set(like_ref, {"post_id": post_id, "user_id": user_id, "created_at": utcnow()})
                else:
                    transaction.delete(like_ref)
                transaction.update(post_ref, {"like_count": result.like_count})
            return result, data.get("author_id", "")

        with translate_errors("set like"):
            result, author_id = self.firestore.run_transaction(_set)

        logger.info(
            "User %s %s post %s (count=%d, changed=%s)",
            user_id, "likes" if result.liked else "does not like", post_id,
            result.like_count, result.changed,
        )
        return result, author_id
