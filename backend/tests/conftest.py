import os
import warnings
from dataclasses import dataclass
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

# Set environment variables BEFORE importing app modules
os.environ["POSTGRES_DSN"] = "sqlite+aiosqlite:///file:giftcircle_tests?mode=memory&cache=shared&uri=true"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-32-chars-minimum!!"

warnings.filterwarnings("ignore", category=DeprecationWarning)

from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.security import create_access_token
from app.db.session import Base, get_db
from app.main import app
from app.models.models import (
    Friendship,
    FriendshipStatusEnum,
    PrivacyLevelEnum,
    User,
    Wishlist,
    WishlistItem,
    WishlistSelectedFriend,
)


def pytest_configure(config):
    warnings.filterwarnings("ignore", category=DeprecationWarning)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@dataclass
class Seeder:
    """Writes fixture rows through a plain synchronous session."""

    sync_engine: object

    def _add(self, row):
        with Session(self.sync_engine, expire_on_commit=False) as session:
            session.add(row)
            session.commit()
            return row

    def user(self, name: str | None = None) -> User:
        return self._add(User(email=f"user-{uuid4().hex[:8]}@example.com", display_name=name))

    def friends(self, a: User, b: User, status: str = FriendshipStatusEnum.ACCEPTED.value) -> Friendship:
        return self._add(Friendship(requester_id=a.id, addressee_id=b.id, status=status))

    def wishlist(
        self,
        owner: User,
        name: str = "Birthday",
        privacy: str = PrivacyLevelEnum.FRIENDS.value,
        selected: list[User] | None = None,
    ) -> Wishlist:
        wishlist = self._add(Wishlist(owner_id=owner.id, name=name, privacy=privacy))
        for friend in selected or []:
            self._add(WishlistSelectedFriend(wishlist_id=wishlist.id, friend_id=friend.id))
        return wishlist

    def item(self, wishlist: Wishlist, title: str = "Espresso machine", **kwargs) -> WishlistItem:
        return self._add(WishlistItem(wishlist_id=wishlist.id, title=title, **kwargs))


@pytest.fixture(autouse=True)
def database(tmp_path):
    db_path = tmp_path / "giftcircle-test.db"
    from app.models import models as models_module
    _ = models_module
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    async_session = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with async_session() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield {"sync_engine": sync_engine, "session_factory": async_session}
    app.dependency_overrides.clear()
    engine.sync_engine.dispose()
    sync_engine.dispose()


@pytest.fixture
def seed(database) -> Seeder:
    return Seeder(database["sync_engine"])


@pytest.fixture
def session_factory(database):
    return database["session_factory"]


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest.fixture
def headers():
    return auth_headers


@dataclass
class Circle:
    owner: User
    bob: User
    carol: User
    dave: User
    wishlist: Wishlist
    item: WishlistItem


@pytest.fixture
def circle(seed):
    """Owner A with friends B, C and D, and a friends-only wishlist holding one item."""
    owner = seed.user("Alice")
    bob = seed.user("Bob")
    carol = seed.user("Carol")
    dave = seed.user("Dave")
    for friend in (bob, carol, dave):
        seed.friends(owner, friend)
    seed.friends(bob, carol)
    wishlist = seed.wishlist(owner)
    item = seed.item(wishlist)
    return Circle(owner=owner, bob=bob, carol=carol, dave=dave, wishlist=wishlist, item=item)
