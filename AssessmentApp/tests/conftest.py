import pytest
from django.core.cache import cache
from model_bakery import baker
from rest_framework.test import APIClient

from AssessmentApp.core.choices import UserRole, PartLabel
from AssessmentApp.domain.services import content_service, module_service, session_service

PASSWORD = "pass12345"


@pytest.fixture(autouse=True)
def clear_throttle_cache():
    cache.clear()
    yield
    cache.clear()


def make_user(role: str, email: str):
    user = baker.make("users.User", email=email, username=email, role=role, full_name=email.split("@")[0])
    user.set_password(PASSWORD)
    user.save()
    return user


def client_for(user) -> APIClient:
    """API client carrying a live session cookie for ``user``."""
    client = APIClient()
    session = session_service.create_session(user)
    client.cookies["session"] = session.pk
    return client


@pytest.fixture
def admin(db):
    return make_user(UserRole.ADMIN, "admin@example.com")


@pytest.fixture
def instructor(db):
    return make_user(UserRole.INSTRUCTOR, "instructor@example.com")


@pytest.fixture
def other_instructor(db):
    return make_user(UserRole.INSTRUCTOR, "instructor2@example.com")


@pytest.fixture
def student(db):
    return make_user(UserRole.STUDENT, "student@example.com")


@pytest.fixture
def other_student(db):
    return make_user(UserRole.STUDENT, "student2@example.com")


@pytest.fixture
def draft_module(admin, instructor):
    module = module_service.create_module(admin, {"title": "Contract Law", "description": "Scenarios"})
    module_service.assign_instructor(admin, module, instructor.pk)
    return module


@pytest.fixture
def authored_module(draft_module, instructor):
    """Draft module with one question, Part A and one sub-question worth 10 marks."""
    question = content_service.create_question(instructor, draft_module, "Q1", "A buys a horse from B.")
    part = content_service.upsert_part(instructor, question, PartLabel.A)
    content_service.create_sub_question(instructor, part, "Is there a contract?", 10)
    return draft_module


@pytest.fixture
def published_module(authored_module, admin, instructor, student):
    module_service.mark_ready(instructor, authored_module)
    module = module_service.publish(admin, authored_module)
    module_service.enroll_student(admin, module, student.pk)
    return module


@pytest.fixture
def sub_question(published_module):
    from AssessmentApp.content.models import SubQuestion
    return SubQuestion.objects.get(part__question__module=published_module)


@pytest.fixture
def login(db):
    return client_for


@pytest.fixture
def anon_client():
    return APIClient()


@pytest.fixture
def password():
    return PASSWORD
