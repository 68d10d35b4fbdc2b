from __future__ import annotations


class RatingError(Exception):
    pass


class ValidationError(RatingError):
    """Malformed or out-of-window cycle identifier."""


class NotFoundError(RatingError):
    """No applicable rating template for a department/position pair."""

    def __init__(
        self,
        message: str = "no applicable template",
        *,
        department: str | None = None,
        position: str | None = None,
        template_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.department = department
        self.position = position
        self.template_id = template_id
