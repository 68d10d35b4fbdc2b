from __future__ import annotations

from dataclasses import dataclass

from peer_rating.clients.leancloud import LeanCloudClient
from peer_rating.config import Settings, load_settings
from peer_rating.repositories.org_directory_repository import OrgDirectoryRepository
from peer_rating.repositories.rating_instance_repository import RatingInstanceRepository
from peer_rating.repositories.rating_response_repository import RatingResponseRepository
from peer_rating.repositories.rating_template_repository import RatingTemplateRepository
from peer_rating.repositories.work_item_repository import WorkItemRepository
from peer_rating.services.collaboration import CollaborationResolver
from peer_rating.services.cycle_window import CycleWindowValidator
from peer_rating.services.org_identity import OrgIdentityResolver
from peer_rating.services.pending import PendingRatingsResolver
from peer_rating.services.session_assembler import SessionAssembler
from peer_rating.services.statistics import StatisticsAggregator
from peer_rating.services.submission import SubmissionCoordinator
from peer_rating.services.template_resolver import TemplateResolver


@dataclass(frozen=True)
class Repositories:
    work_items: WorkItemRepository
    directory: OrgDirectoryRepository
    templates: RatingTemplateRepository
    instances: RatingInstanceRepository
    responses: RatingResponseRepository

    @classmethod
    def from_client(cls, client: LeanCloudClient) -> "Repositories":
        return cls(
            work_items=WorkItemRepository(client),
            directory=OrgDirectoryRepository(client),
            templates=RatingTemplateRepository(client),
            instances=RatingInstanceRepository(client),
            responses=RatingResponseRepository(client),
        )


@dataclass(frozen=True)
class RatingEngine:
    validator: CycleWindowValidator
    collaboration: CollaborationResolver
    templates: TemplateResolver
    sessions: SessionAssembler
    submissions: SubmissionCoordinator
    statistics: StatisticsAggregator
    pending: PendingRatingsResolver


def build_engine(
    repos: Repositories,
    *,
    validator: CycleWindowValidator | None = None,
    max_concurrency: int = 8,
) -> RatingEngine:
    validator = validator or CycleWindowValidator()
    identity = OrgIdentityResolver(repos.directory)
    collaboration = CollaborationResolver(
        repos.work_items, repos.directory, identity, validator
    )
    templates = TemplateResolver(repos.templates, identity)
    return RatingEngine(
        validator=validator,
        collaboration=collaboration,
        templates=templates,
        sessions=SessionAssembler(
            collaboration,
            templates,
            repos.instances,
            repos.responses,
            validator,
            max_concurrency=max_concurrency,
        ),
        submissions=SubmissionCoordinator(
            templates,
            repos.instances,
            repos.responses,
            validator,
            max_concurrency=max_concurrency,
        ),
        statistics=StatisticsAggregator(
            repos.instances, repos.responses, repos.directory, identity, validator
        ),
        pending=PendingRatingsResolver(collaboration, repos.instances, repos.directory),
    )


def build_engine_from_settings(
    client: LeanCloudClient, settings: Settings | None = None
) -> RatingEngine:
    settings = settings or load_settings()
    return build_engine(
        Repositories.from_client(client),
        max_concurrency=settings.rating_max_concurrency,
    )
