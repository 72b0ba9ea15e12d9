"""Exceptions raised by the profile-view engine."""


class ProfileViewError(Exception):
    """Base class for all profile-view errors."""


class UnhandledCallTreeFilterError(ProfileViewError):
    """A call-tree filter that is neither a prefix nor a postfix filter."""

    def __init__(self, call_tree_filter):
        super().__init__(f"unhandled call tree filter: {call_tree_filter!r}")
        self.call_tree_filter = call_tree_filter


class ProfileFormatError(ProfileViewError):
    """The profile document does not have the expected columnar layout."""
