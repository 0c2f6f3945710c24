"""
Shared fixtures: in-memory database, cache store and a seeded "team" group type.
"""
from types import SimpleNamespace

import pytest

from app.core.cache import MemoryCacheBackend
from app.core.database.base import Base
from app.core.database.engine import build_engine, build_sessionmaker, import_models
from app.features.groups.models import Group, GroupMembership, GroupRole, GroupType, RoleScope
from app.features.groups.store import load_group
from app.features.group_permissions.models import GroupPermission
from app.features.users.models import User


PLATFORM_PERMISSIONS = {
    "team-anonymous": ["view"],
    "team-outsider": ["view", "request membership"],
    "team-editor-sync": ["edit"],
    "team-member": ["view", "comment"],
    "team-admin": ["view", "comment", "edit", "view group permissions"],
    "team-empty": [],
}


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    async with build_sessionmaker(engine)() as session:
        yield session


@pytest.fixture
def cache():
    return MemoryCacheBackend()


def _team_type() -> GroupType:
    return GroupType(
        id="team",
        label="Team",
        roles=[
            GroupRole(id="team-anonymous", label="Anonymous", scope=RoleScope.ANONYMOUS),
            GroupRole(id="team-outsider", label="Outsider", scope=RoleScope.OUTSIDER),
            GroupRole(id="team-editor-sync", label="Editor", scope=RoleScope.OUTSIDER, global_role="editor"),
            GroupRole(id="team-member", label="Member", scope=RoleScope.MEMBER),
            GroupRole(id="team-admin", label="Admin", scope=RoleScope.MEMBER),
        ],
    )


def _project_type() -> GroupType:
    return GroupType(
        id="project",
        label="Project",
        roles=[
            GroupRole(id="project-outsider", label="Outsider", scope=RoleScope.OUTSIDER),
            GroupRole(id="project-editor-sync", label="Editor", scope=RoleScope.OUTSIDER, global_role="editor"),
        ],
    )


@pytest.fixture
async def seeded(db):
    """
    Team groups "Platform" (with overrides) and "Quiet" (without), plus
    alice (member), bob (team admin), carol (outsider) and root (site admin).
    """
    team, project = _team_type(), _project_type()
    db.add_all([team, project])

    alice = User(appwrite_id="aw-alice", email="alice@example.com", name="Alice", is_admin=False)
    bob = User(appwrite_id="aw-bob", email="bob@example.com", name="Bob", is_admin=False)
    carol = User(appwrite_id="aw-carol", email="carol@example.com", name="Carol", is_admin=False)
    root = User(appwrite_id="aw-root", email="root@example.com", name="Root", is_admin=True)
    db.add_all([alice, bob, carol, root])
    await db.flush()

    roles = {role.id: role for role in team.roles}
    platform = Group(
        label="Platform",
        group_type_id="team",
        memberships=[
            GroupMembership(user_id=alice.id, roles=[roles["team-member"]]),
            GroupMembership(user_id=bob.id, roles=[roles["team-member"], roles["team-admin"]]),
        ],
    )
    quiet = Group(
        label="Quiet",
        group_type_id="team",
        memberships=[GroupMembership(user_id=alice.id, roles=[roles["team-admin"]])],
    )
    db.add_all([platform, quiet])
    await db.flush()

    override = GroupPermission(group_id=platform.id, permissions=dict(PLATFORM_PERMISSIONS))
    db.add(override)
    await db.commit()

    ids = SimpleNamespace(platform=platform.id, quiet=quiet.id, override=override.id)
    db.expunge_all()

    return SimpleNamespace(
        platform=await load_group(db, ids.platform),
        quiet=await load_group(db, ids.quiet),
        override_id=ids.override,
        alice=alice,
        bob=bob,
        carol=carol,
        root=root,
    )
