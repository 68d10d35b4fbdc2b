from __future__ import annotations

from dataclasses import dataclass

from peer_rating.errors import NotFoundError
from peer_rating.repositories.rating_template_repository import (
    RatingTemplateRecord,
    RatingTemplateRepository,
)
from peer_rating.services.org_identity import OrgIdentityResolver


@dataclass(frozen=True)
class TemplateLookup:
    """Outcome of a template lookup: exactly one of ``template``/``error`` is set."""

    template: RatingTemplateRecord | None = None
    error: NotFoundError | None = None

    @property
    def found(self) -> bool:
        return self.template is not None

    def unwrap(self) -> RatingTemplateRecord:
        if self.template is None:
            raise self.error or NotFoundError()
        return self.template


class TemplateResolver:
    def __init__(
        self,
        templates: RatingTemplateRepository,
        identity: OrgIdentityResolver,
    ) -> None:
        self._templates = templates
        self._identity = identity

    async def resolve(self, department: str, position: str) -> TemplateLookup:
        departments, positions = await self._identity.candidates(department, position)
        template = await self._templates.find_latest_active(
            departments=sorted(departments),
            positions=sorted(positions),
        )
        if template is None:
            return TemplateLookup(
                error=NotFoundError(department=department, position=position)
            )
        return TemplateLookup(template=template)

    async def resolve_strict(self, department: str, position: str) -> RatingTemplateRecord:
        lookup = await self.resolve(department, position)
        return lookup.unwrap()

    async def get_strict(self, template_id: str) -> RatingTemplateRecord:
        template = await self._templates.get_template(template_id)
        if template is None:
            raise NotFoundError(
                f"rating template {template_id} not found", template_id=template_id
            )
        return template
