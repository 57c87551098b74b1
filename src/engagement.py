"""Engagement Service - Likes, comments, messages and friend requests that notify another user."""

import logging
from dataclasses import dataclass

from src.core.engagement import (
    LikeState,
    should_notify_owner,
    validate_comment,
    validate_direct,
    validate_message,
)
from src.core.notifications import comment_event, friend_request_event, like_event, message_event
from src.notification_fanout import EmitResult, NotificationFanout
from src.shell.engagement_store import FirestoreEngagementStore


logger = logging.getLogger(__name__)


@dataclass
class LikeOutcome:
    """Like state plus the owner notification, if one was sent."""
    result: LikeState
    notification: EmitResult | None = None


class EngagementService:
    """Applies post engagement and notifies the user on the receiving end."""

    def __init__(self, store: FirestoreEngagementStore, fanout: NotificationFanout) -> None:
        self.store = store
        self.fanout = fanout

    def set_like(
        self,
        post_id: str,
        user_id: str,
        liked: bool = True,
        user_name: str | None = None,
    ) -> LikeOutcome:
        """Set a user's like and return the authoritative state.

        Repeating a request is a no-op. The owner is notified only when a
        like is newly added, and never for their own posts.

        Raises:
            NotFound: If the post does not exist
            SourceUnavailable: If the store transaction fails
        """
        result, owner_id = self.store.set_like(post_id, user_id, liked)

        if not (result.changed and result.liked) or not should_notify_owner(owner_id, user_id):
            return LikeOutcome(result=result)

        summary = self.fanout.emit_many([like_event(owner_id, user_id, post_id, user_name)])
        return LikeOutcome(result=result, notification=summary.results[0])

    def notify_comment(
        self,
        post_id: str,
        commenter_id: str,
        text: str,
        commenter_name: str | None = None,
    ) -> EmitResult | None:
        """Notify a post's owner about a new comment.

        Returns:
            The emit result, or None if the commenter owns the post

        Raises:
            InvalidInput: If the comment is empty or too long
            NotFound: If the post does not exist
        """
        validate_comment(text)
        owner_id = self.store.get_post_author(post_id)

        if not should_notify_owner(owner_id, commenter_id):
            return None

        return self.fanout.emit(comment_event(owner_id, commenter_id, post_id, text, commenter_name))

    def notify_message(
        self,
        message_id: str,
        sender_id: str,
        recipient_id: str,
        text: str,
        sender_name: str | None = None,
    ) -> EmitResult:
        """Notify the recipient of a direct message.

        Re-sending for the same message ID is reported as a duplicate.

        Raises:
            InvalidInput: On an empty or overlong message, or a message to oneself
            SourceUnavailable: If the notification could not be stored
        """
        validate_direct(sender_id, recipient_id)
        validate_message(text)
        return self.fanout.emit(message_event(recipient_id, sender_id, message_id, text, sender_name))

    def notify_friend_request(
        self,
        request_id: str,
        sender_id: str,
        recipient_id: str,
        sender_name: str | None = None,
    ) -> EmitResult:
        """Notify the recipient of a friend request.

        Raises:
            InvalidInput: If the request is addressed to the sender
            SourceUnavailable: If the notification could not be stored
        """
        validate_direct(sender_id, recipient_id)
        return self.fanout.emit(friend_request_event(recipient_id, sender_id, request_id, sender_name))
