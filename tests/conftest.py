"""
Shared pytest fixtures for team calendar tests.

Two teams are seeded:
- team 5 "Chemistry": users 10 (Ada Lovelace, user), 11 (Alan Turing, user),
  20 (Grace Hopper, admin), 1 (Root Admin, sysadmin); items 100
  (Microscope), 101 (Centrifuge); experiment 500 (Kinetics study)
- team 6 "Physics": users 30 (Rosalind Franklin, admin), 31 (Niels Bohr,
  user); item 200 (Reactor); experiment 600 (Fusion test)
"""

import pytest
import pytest_asyncio

from team_calendar.core.database import Database
from team_calendar.core.models import Actor, Role
from team_calendar.scheduler import Scheduler


TEAMS = [
    {"id": 5, "name": "Chemistry"},
    {"id": 6, "name": "Physics"},
]

USERS = [
    {"userid": 1, "team": 5, "firstname": "Root", "lastname": "Admin", "usergroup": Role.SYSADMIN},
    {"userid": 10, "team": 5, "firstname": "Ada", "lastname": "Lovelace", "usergroup": Role.USER},
    {"userid": 11, "team": 5, "firstname": "Alan", "lastname": "Turing", "usergroup": Role.USER},
    {"userid": 20, "team": 5, "firstname": "Grace", "lastname": "Hopper", "usergroup": Role.ADMIN},
    {"userid": 30, "team": 6, "firstname": "Rosalind", "lastname": "Franklin", "usergroup": Role.ADMIN},
    {"userid": 31, "team": 6, "firstname": "Niels", "lastname": "Bohr", "usergroup": Role.USER},
]

ITEMS = [
    {"id": 100, "team": 5, "title": "Microscope"},
    {"id": 101, "team": 5, "title": "Centrifuge"},
    {"id": 200, "team": 6, "title": "Reactor"},
]

EXPERIMENTS = [
    {"id": 500, "team": 5, "userid": 10, "title": "Kinetics study"},
    {"id": 600, "team": 6, "userid": 31, "title": "Fusion test"},
]


async def seed_database(db: Database) -> None:
    """Insert the teams, users, items and experiments above"""
    for team in TEAMS:
        await db.create_team(team)
    for user in USERS:
        await db.create_user({**user, "usergroup": int(user["usergroup"])})
    for item in ITEMS:
        await db.create_item(item)
    for experiment in EXPERIMENTS:
        await db.create_experiment(experiment)


def make_actor(userid: int) -> Actor:
    user = next(u for u in USERS if u["userid"] == userid)
    return Actor(user_id=userid, team_id=user["team"], role_rank=int(user["usergroup"]))


@pytest_asyncio.fixture
async def db(tmp_path):
    """Connected, seeded database in a temporary directory"""
    database = Database(str(tmp_path / "calendar.db"))
    await database.connect()
    await seed_database(database)
    yield database
    await database.close()


@pytest.fixture
def scheduler(db):
    """Scheduler with team-scoped lookups and overlaps allowed"""
    return Scheduler(db, scope_lookup_by_team=True, reject_overlaps=False)


@pytest.fixture
def ada():
    return make_actor(10)


@pytest.fixture
def alan():
    return make_actor(11)


@pytest.fixture
def grace():
    return make_actor(20)


@pytest.fixture
def root_admin():
    return make_actor(1)


@pytest.fixture
def rosalind():
    return make_actor(30)


@pytest.fixture
def niels():
    return make_actor(31)
