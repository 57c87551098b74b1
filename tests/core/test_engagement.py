"""Unit tests for post engagement and direct interaction rules."""

import pytest

from src.core.engagement import (
    apply_like,
    should_notify_owner,
    validate_comment,
    validate_direct,
    validate_message,
)
from src.core.errors import InvalidInput


class TestApplyLike:
    """Tests for apply_like()."""

    def test_like(self):
        result = apply_like("p1", "u1", currently_liked=False, like_count=4, liked=True)
        assert (result.liked, result.like_count, result.changed) == (True, 5, True)

    def test_unlike(self):
        result = apply_like("p1", "u1", currently_liked=True, like_count=5, liked=False)
        assert (result.liked, result.like_count, result.changed) == (False, 4, True)

    def test_repeated_like_is_no_op(self):
        first = apply_like("p1", "u1", False, 3, liked=True)
        second = apply_like("p1", "u1", first.liked, first.like_count, liked=True)

        assert (second.liked, second.like_count) == (True, 4)
        assert second.changed is False

    def test_unlike_when_not_liked_is_no_op(self):
        result = apply_like("p1", "u1", currently_liked=False, like_count=3, liked=False)
        assert (result.liked, result.like_count, result.changed) == (False, 3, False)

    def test_count_never_negative(self):
        assert apply_like("p1", "u1", True, 0, liked=False).like_count == 0


class TestShouldNotifyOwner:
    """Tests for should_notify_owner()."""

    def test_other_user(self):
        assert should_notify_owner("owner", "fan") is True

    def test_self(self):
        assert should_notify_owner("owner", "owner") is False

    def test_unknown_owner(self):
        assert should_notify_owner(None, "fan") is False


class TestValidateComment:
    """Tests for validate_comment()."""

    def test_valid(self):
        validate_comment("Nice!")

    @pytest.mark.parametrize("text", ["", "   ", "x" * 1001])
    def test_invalid(self, text):
        with pytest.raises(InvalidInput):
            validate_comment(text)


class TestDirectInteractions:
    """Tests for validate_direct() and validate_message()."""

    def test_valid(self):
        validate_direct("alice", "bob")
        validate_message("Are you home?")

    @pytest.mark.parametrize("recipient", ["", "alice"])
    def test_invalid_recipient(self, recipient):
        with pytest.raises(InvalidInput):
            validate_direct("alice", recipient)

    @pytest.mark.parametrize("text", ["", " ", "x" * 2001])
    def test_invalid_message(self, text):
        with pytest.raises(InvalidInput):
            validate_message(text)
