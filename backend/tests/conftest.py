from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio

from peer_rating.clients.leancloud import LeanCloudClient
from peer_rating.repositories.org_directory_repository import (
    OrgUnitRecord,
    UserProfileRecord,
)
from peer_rating.repositories.rating_instance_repository import RatingInstanceRecord
from peer_rating.repositories.rating_response_repository import RatingResponseRecord
from peer_rating.repositories.rating_template_repository import (
    RatingField,
    RatingTemplateRecord,
)
from peer_rating.repositories.work_item_repository import (
    WorkItemAssigneeRecord,
    WorkItemRecord,
)
from peer_rating.services.cycle_window import CycleWindowValidator
from peer_rating.services.rating_engine import Repositories, build_engine

FIXED_NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def required_env(monkeypatch):
    monkeypatch.setenv("LEAN_APP_ID", "app")
    monkeypatch.setenv("LEAN_APP_KEY", "key")
    monkeypatch.setenv("LEAN_MASTER_KEY", "master")
    monkeypatch.setenv("LEAN_SERVER_URL", "https://api.leancloud.cn")
    monkeypatch.setenv("ADMIN_ACCESS_TOKEN", "admin-token")


class FakeWorkItems:
    def __init__(self) -> None:
        self.items: list[WorkItemRecord] = []
        self.assignees: list[WorkItemAssigneeRecord] = []

    def add(
        self,
        item_id: str,
        *,
        requester_id: str,
        assignee_id: str | None,
        completed_at: str,
        status: str = "completed",
        extra_assignees: list[tuple[str, str | None]] | None = None,
    ) -> None:
        self.items.append(
            WorkItemRecord(
                id=item_id,
                created_by=requester_id,
                assignee_id=assignee_id,
                status=status,
                completed_at=completed_at,
            )
        )
        for user_id, user_position in extra_assignees or []:
            self.assignees.append(
                WorkItemAssigneeRecord(
                    requirement_id=item_id, user_id=user_id, user_position=user_position
                )
            )

    async def list_completed_by_requester(self, requester_id, *, start, end):
        return [
            item
            for item in self.items
            if item.created_by == requester_id
            and item.status == "completed"
            and item.completed_at is not None
            and start <= item.completed_at < end
        ]

    async def list_assignees(self, requirement_ids):
        return [row for row in self.assignees if row.requirement_id in requirement_ids]


class FakeDirectory:
    def __init__(self) -> None:
        self.users: dict[str, UserProfileRecord] = {}
        self.departments: list[OrgUnitRecord] = []
        self.positions: list[OrgUnitRecord] = []

    def add_user(self, user_id: str, **fields) -> None:
        defaults = {
            "full_name": None,
            "title": None,
            "department": None,
            "position": None,
            "department_code": None,
            "position_code": None,
        }
        self.users[user_id] = UserProfileRecord(id=user_id, **{**defaults, **fields})

    async def get_users(self, user_ids):
        return [self.users[user_id] for user_id in user_ids if user_id in self.users]

    async def list_user_ids_by_org(self, *, department=None, position=None):
        matched = set()
        for user in self.users.values():
            if department and department not in {user.department, user.department_code}:
                continue
            if position and position not in {user.position, user.position_code}:
                continue
            matched.add(user.id)
        return matched

    async def departments_by_names(self, names):
        return [unit for unit in self.departments if unit.name in names]

    async def positions_by_names(self, names):
        return [unit for unit in self.positions if unit.name in names]

    async def positions_by_codes(self, codes):
        return [unit for unit in self.positions if unit.code in codes]

    async def find_department(self, value):
        return _find_unit(self.departments, value)

    async def find_position(self, value):
        return _find_unit(self.positions, value)


def _find_unit(units: list[OrgUnitRecord], value: str) -> OrgUnitRecord | None:
    for unit in units:
        if value in {unit.code, unit.name}:
            return unit
    return None


class FakeTemplates:
    def __init__(self) -> None:
        self.templates: list[RatingTemplateRecord] = []

    def add(
        self,
        template_id: str,
        *,
        department: str,
        position: str,
        version: int = 1,
        is_active: bool = True,
        field_ids: tuple[str, ...] = ("F1",),
    ) -> RatingTemplateRecord:
        template = RatingTemplateRecord(
            id=template_id,
            name=f"{department}/{position} v{version}",
            department=department,
            position=position,
            version=version,
            is_active=is_active,
            fields=[
                RatingField(id=field_id, type="rating", label=field_id, order=index)
                for index, field_id in enumerate(field_ids)
            ],
        )
        self.templates.append(template)
        return template

    async def find_latest_active(self, *, departments, positions):
        matches = [
            item
            for item in self.templates
            if item.is_active and item.department in departments and item.position in positions
        ]
        if not matches:
            return None
        return max(matches, key=lambda item: item.version)

    async def get_template(self, template_id):
        for item in self.templates:
            if item.id == template_id:
                return item
        return None


class FakeInstances:
    def __init__(self) -> None:
        self.rows: dict[tuple[str, str, str], RatingInstanceRecord] = {}
        self.fail_for: set[str] = set()
        self._ids = itertools.count(1)

    async def find_by_natural_key(self, *, requester_id, executor_id, cycle_month):
        return self.rows.get((requester_id, executor_id, cycle_month))

    async def list_for_executor(self, executor_id, cycle_month):
        return [
            row
            for row in self.rows.values()
            if row.executor_id == executor_id and row.cycle_month == cycle_month
        ]

    async def list_for_requester(self, requester_id, cycle_month):
        return [
            row
            for row in self.rows.values()
            if row.requester_id == requester_id and row.cycle_month == cycle_month
        ]

    async def list_for_cycles(self, cycle_months):
        return [row for row in self.rows.values() if row.cycle_month in cycle_months]

    async def upsert(self, *, requester_id, executor_id, cycle_month, template_id, submitted_at):
        if executor_id in self.fail_for:
            raise RuntimeError(f"store rejected executor {executor_id}")
        key = (requester_id, executor_id, cycle_month)
        existing = self.rows.get(key)
        if existing:
            row = replace(
                existing,
                template_id=template_id,
                submitted_at=submitted_at,
                updated_at=submitted_at,
            )
        else:
            row = RatingInstanceRecord(
                id=f"inst-{next(self._ids)}",
                requester_id=requester_id,
                executor_id=executor_id,
                cycle_month=cycle_month,
                template_id=template_id,
                submitted_at=submitted_at,
                updated_at=submitted_at,
            )
        self.rows[key] = row
        return row


class FakeResponses:
    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], RatingResponseRecord] = {}
        self._ids = itertools.count(1)

    def add(self, instance_id: str, field_id: str, value_score=None, value_text=None) -> None:
        self.rows[(instance_id, field_id)] = RatingResponseRecord(
            id=f"resp-{next(self._ids)}",
            instance_id=instance_id,
            field_id=field_id,
            value_score=value_score,
            value_text=value_text,
        )

    async def list_for_instance(self, instance_id):
        return [row for row in self.rows.values() if row.instance_id == instance_id]

    async def list_for_instances(self, instance_ids):
        return [row for row in self.rows.values() if row.instance_id in instance_ids]

    async def upsert(self, *, instance_id, field_id, value_score, value_text):
        existing = self.rows.get((instance_id, field_id))
        if existing:
            row = replace(existing, value_score=value_score, value_text=value_text)
        else:
            row = RatingResponseRecord(
                id=f"resp-{next(self._ids)}",
                instance_id=instance_id,
                field_id=field_id,
                value_score=value_score,
                value_text=value_text,
            )
        self.rows[(instance_id, field_id)] = row
        return row


@dataclass
class FakeStore:
    work_items: FakeWorkItems
    directory: FakeDirectory
    templates: FakeTemplates
    instances: FakeInstances
    responses: FakeResponses

    def repositories(self) -> Repositories:
        return Repositories(
            work_items=self.work_items,
            directory=self.directory,
            templates=self.templates,
            instances=self.instances,
            responses=self.responses,
        )


@pytest.fixture
def validator():
    return CycleWindowValidator(clock=lambda: FIXED_NOW)


@pytest.fixture
def store():
    return FakeStore(
        work_items=FakeWorkItems(),
        directory=FakeDirectory(),
        templates=FakeTemplates(),
        instances=FakeInstances(),
        responses=FakeResponses(),
    )


@pytest.fixture
def engine(store, validator):
    return build_engine(store.repositories(), validator=validator)


@pytest_asyncio.fixture
async def leancloud_client():
    async def handler(request):
        return httpx.Response(200, json={"ok": True})

    transport = httpx.MockTransport(handler)
    client = LeanCloudClient(
        app_id="app",
        app_key="key",
        master_key="master",
        server_url="https://api.leancloud.cn",
        transport=transport,
    )
    yield client
    await client.close()
