"""Post engagement and direct interaction rules - Pure functions.

Likes are set, not flipped: the caller states whether the user likes the
post, and a repeated request finds the state already applied and changes
nothing. The result is always the authoritative state after the call.
"""

from dataclasses import dataclass

from src.core.errors import InvalidInput


MAX_COMMENT_LENGTH = 1000
MAX_MESSAGE_LENGTH = 2000


@dataclass(frozen=True)
class LikeState:
    """Authoritative like state after a request.

    Attributes:
        post_id: Post the request was for
        user_id: User who made the request
        liked: True if the user now likes the post
        like_count: Post like count after the request
        changed: False if the requested state was already in place
    """
    post_id: str
    user_id: str
    liked: bool
    like_count: int
    changed: bool = False


def apply_like(
    post_id: str,
    user_id: str,
    currently_liked: bool,
    like_count: int,
    liked: bool,
) -> LikeState:
    """Compute the state after setting a user's like to `liked`.

    Pure function. The count never goes below zero.
    """
    like_count = max(0, like_count)
    if currently_liked == liked:
        return LikeState(post_id, user_id, liked=liked, like_count=like_count)
    if liked:
        return LikeState(post_id, user_id, liked=True, like_count=like_count + 1, changed=True)
    return LikeState(post_id, user_id, liked=False, like_count=max(0, like_count - 1), changed=True)


def should_notify_owner(owner_id: str | None, actor_id: str) -> bool:
    """Owners are not notified about their own activity."""
    return bool(owner_id) and owner_id != actor_id


def validate_comment(text: str) -> None:
    if not text or not text.strip():
        raise InvalidInput("Comment text is required")
    if len(text) > MAX_COMMENT_LENGTH:
        raise InvalidInput(f"Comment longer than {MAX_COMMENT_LENGTH} characters")


def validate_direct(sender_id: str, recipient_id: str) -> None:
    """Direct messages and friend requests go to someone else."""
    if not recipient_id:
        raise InvalidInput("Recipient is required")
    if sender_id == recipient_id:
        raise InvalidInput("Cannot send to yourself")


def validate_message(text: str) -> None:
    if not text or not text.strip():
        raise InvalidInput("Message text is required")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise InvalidInput(f"Message longer than {MAX_MESSAGE_LENGTH} characters")
