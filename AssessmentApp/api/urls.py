from django.urls import path, include
from rest_framework_nested import routers
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from AssessmentApp.api import schema  # noqa: F401  registers the cookie auth scheme
from AssessmentApp.api.views import (
    LoginView,
    LogoutView,
    MeView,
    HealthView,
    AnswerView,
    UserViewSet,
    ModuleViewSet,
    QuestionViewSet,
    PartViewSet,
    SubQuestionViewSet,
    ArtefactViewSet,
    SubmissionViewSet,
    GradeViewSet,
    StudentModuleViewSet,
    StudentQuestionViewSet,
    InstructorModuleViewSet,
    InstructorSubmissionViewSet,
)

router = routers.SimpleRouter(trailing_slash=False)
router.register(r"users", UserViewSet, basename="user")
router.register(r"modules", ModuleViewSet, basename="module")
router.register(r"questions", QuestionViewSet, basename="question")
router.register(r"parts", PartViewSet, basename="part")
router.register(r"sub-questions", SubQuestionViewSet, basename="sub-question")
router.register(r"artefacts", ArtefactViewSet, basename="artefact")
router.register(r"submissions", SubmissionViewSet, basename="submission")
router.register(r"grades", GradeViewSet, basename="grade")
router.register(r"student/modules", StudentModuleViewSet, basename="student-module")
router.register(r"instructor/modules", InstructorModuleViewSet, basename="instructor-module")

student_router = routers.NestedSimpleRouter(router, r"student/modules", lookup="module", trailing_slash=False)
student_router.register(r"questions", StudentQuestionViewSet, basename="student-module-questions")

instructor_router = routers.NestedSimpleRouter(router, r"instructor/modules", lookup="module", trailing_slash=False)
instructor_router.register(r"submissions", InstructorSubmissionViewSet, basename="instructor-module-submissions")

urlpatterns = [
    path("schema", SpectacularAPIView.as_view(), name="schema"),
    path("docs", SpectacularSwaggerView.as_view(url_name="schema"), name="docs"),
    path("login", LoginView.as_view(), name="login"),
    path("logout", LogoutView.as_view(), name="logout"),
    path("me", MeView.as_view(), name="me"),
    path("health", HealthView.as_view(), name="health"),
    path("answers", AnswerView.as_view(), name="answers"),
    path("", include(router.urls)),
    path("", include(student_router.urls)),
    path("", include(instructor_router.urls)),
]
