"""Domain exceptions raised by service functions.

Rule violations raise ``ValueError`` (routers answer 400). Missing rows and
permission failures use the subclasses below, which the global handlers map
to 404 and 403.
"""


class NotFoundError(LookupError):
    """A referenced row does not exist."""


class ForbiddenError(PermissionError):
    """The caller may not perform this action."""
