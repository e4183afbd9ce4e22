"""
School Ledger - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator, Callable
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from faker import Faker

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['LOG_FILE'] = ''
os.environ['SCHOOL_TIMEZONE'] = 'UTC'

from school_ledger.main import app
from school_ledger.core.database import Base, get_db, init_engine, get_session_local, close_db
from school_ledger.core.security import get_password_hash, create_access_token
from school_ledger.models import LibraryBook, SchoolClass, Student, User, UserRole
from school_ledger.schemas.library import BookCreate
from school_ledger.schemas.school import ClassCreate, StudentCreate
from school_ledger.services.class_service import class_service
from school_ledger.services.library_service import library_service
from school_ledger.services.student_service import student_service

fake = Faker()


def token_headers(user: User) -> dict:
    """Bearer headers for ``user``"""
    token = create_access_token({'sub': str(user.id), 'role': user.role.value})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test"""
    engine = init_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with get_session_local()() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await close_db()


@pytest.fixture
def session_factory(db_session: AsyncSession) -> async_sessionmaker:
    """Factory for extra sessions on the same database (concurrent writers)"""
    return get_session_local()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    """Create a user with the given role"""
    async def _make(role: UserRole = UserRole.ADMIN, password: str = 'password123', is_active: bool = True) -> User:
        user = User(
            email=fake.unique.email().lower(),
            name=fake.name(),
            hashed_password=get_password_hash(password),
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def headers_for() -> Callable:
    """Bearer headers for any user"""
    return token_headers


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return token_headers(admin_user)


@pytest.fixture
async def school_class(db_session: AsyncSession) -> SchoolClass:
    return await class_service.create_class(
        db_session, ClassCreate(name='10', section='A', academic_year='2024-2025')
    )


@pytest.fixture
def make_student(db_session: AsyncSession, school_class: SchoolClass) -> Callable:
    """Enrol a student (and its login account) in ``school_class``"""
    async def _make(admission_no: str = None) -> Student:
        return await student_service.create_student(
            db_session,
            StudentCreate(
                name=fake.name(),
                email=fake.unique.email().lower(),
                password='password123',
                admission_no=admission_no or fake.unique.bothify('ADM-#####'),
                class_id=school_class.id,
            ),
        )

    return _make


@pytest.fixture
async def student(make_student) -> Student:
    return await make_student()


@pytest.fixture
def make_book(db_session: AsyncSession) -> Callable:
    async def _make(total_copies: int = 1) -> LibraryBook:
        return await library_service.create_book(
            db_session,
            BookCreate(
                title=fake.sentence(nb_words=3),
                author=fake.name(),
                isbn=fake.unique.isbn13(),
                category='Fiction',
                total_copies=total_copies,
            ),
        )

    return _make
