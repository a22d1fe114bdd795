import os
from datetime import date
from typing import AsyncGenerator, Dict

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.models import AcademicYear, Pupil, Term
from app.db.session import Base, get_db
from app.main import app
from tests.factories import make_token


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; overrides the FastAPI session dependency."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture()
async def school(db_session: AsyncSession) -> Dict:
    """One academic year with three terms and a boarding girl in P4 registered before it began."""
    year = AcademicYear(name="2025", start_date=date(2025, 1, 6), end_date=date(2025, 12, 5), is_current=True)
    db_session.add(year)
    await db_session.flush()
    terms = [
        Term(academic_year_id=year.id, name="Term 1", ordinal=1, start_date=date(2025, 1, 6), end_date=date(2025, 4, 4)),
        Term(academic_year_id=year.id, name="Term 2", ordinal=2, start_date=date(2025, 5, 5), end_date=date(2025, 8, 1)),
        Term(academic_year_id=year.id, name="Term 3", ordinal=3, start_date=date(2025, 9, 1), end_date=date(2025, 12, 5)),
    ]
    pupil = Pupil(
        full_name="Amina Wanjiru",
        gender="Female",
        class_id="P4",
        section="Boarding",
        registration_date=date(2024, 1, 10),
    )
    db_session.add_all(terms + [pupil])
    await db_session.commit()
    return {"year": year, "terms": terms, "pupil": pupil}
