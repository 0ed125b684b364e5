"""REST API views for auth, users, modules, content, answers, submissions, grades and artefacts."""

from django.conf import settings
from django.contrib.auth import get_user_model
from django.http import StreamingHttpResponse
from django.shortcuts import get_object_or_404

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiResponse,
    OpenApiParameter,
)

from AssessmentApp.api.mixins import PaginationMixin
from AssessmentApp.api.throttles import LoginRateThrottle
from AssessmentApp.assessments.models import Submission
from AssessmentApp.content.models import Question, Part, SubQuestion, Artefact
from AssessmentApp.core.access import (
    can_view_submission, ensure_assigned, ensure_enrolled, is_admin, is_assigned_instructor,
)
from AssessmentApp.core.permissions import (
    IsAdmin,
    IsInstructor,
    IsStudent,
    IsInstructorOrAdmin,
    IsAssignedInstructorOrAdmin,
    CanViewModule,
)
from AssessmentApp.domain.services import (
    content_service,
    grading_service,
    module_service,
    session_service,
    storage_service,
    submission_service,
    user_service,
)
from AssessmentApp.modules.models import Module
from AssessmentApp.api.serializers import (
    LoginSerializer,
    UserSerializer,
    UserWriteSerializer,
    UserUpdateSerializer,
    ModuleWriteSerializer,
    ModuleSerializer,
    ModuleWithCountsSerializer,
    ModuleAdminDetailSerializer,
    ModuleStudentDetailSerializer,
    EnrollSerializer,
    AssignInstructorSerializer,
    ModuleRefSerializer,
    QuestionSerializer,
    QuestionTreeSerializer,
    QuestionCreateSerializer,
    QuestionUpdateSerializer,
    PartSerializer,
    PartCreateSerializer,
    PartUpdateSerializer,
    SubQuestionSerializer,
    SubQuestionCreateSerializer,
    SubQuestionUpdateSerializer,
    ArtefactSerializer,
    ArtefactCreateSerializer,
    SubmissionSerializer,
    SubmissionListSerializer,
    SubmissionDetailSerializer,
    AnswerWriteSerializer,
    AnswerSerializer,
    GradeWriteSerializer,
    GradeSerializer,
    FinaliseSerializer,
)

AUTH_RESPONSES = {
    401: OpenApiResponse(description="Authentication required."),
    403: OpenApiResponse(description="Forbidden"),
    404: OpenApiResponse(description="Not Found"),
}

VALIDATION_RESPONSE = {
    400: OpenApiResponse(description="Validation failed."),
}

User = get_user_model()


def tree_questions(module: Module):
    return (
        Question.objects.filter(module=module)
        .prefetch_related("parts__sub_questions", "artefacts")
        .order_by("order_index", "id")
    )


def _int_param(name: str, value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError({name: "A valid integer is required."})


# ---------- Auth ----------
@extend_schema(
    tags=["Auth"],
    request=LoginSerializer,
    responses={200: UserSerializer, 401: OpenApiResponse(description="Invalid credentials"), **VALIDATION_RESPONSE},
    description="Verify credentials and set the httpOnly `session` cookie.",
)
class LoginView(APIView):
    """Credential login; opens a session and sets the cookie."""
    permission_classes = [AllowAny]
    throttle_classes = [LoginRateThrottle]

    def post(self, request: Request) -> Response:
        ser = LoginSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        session = session_service.login(ser.validated_data["email"], ser.validated_data["password"])
        response = Response(UserSerializer(session.user).data)
        response.set_cookie(
            settings.ASSESSMENT_SESSION_COOKIE,
            session.pk,
            max_age=int(session_service.session_ttl().total_seconds()),
            path="/",
            secure=not settings.DEBUG,
            httponly=True,
            samesite="Strict",
        )
        return response


@extend_schema(tags=["Auth"], request=None, responses={200: OpenApiResponse(description="Logged out")})
class LogoutView(APIView):
    """Delete the current session (if any) and clear the cookie."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request: Request) -> Response:
        session_service.destroy(request.COOKIES.get(settings.ASSESSMENT_SESSION_COOKIE))
        response = Response({"success": True})
        response.delete_cookie(settings.ASSESSMENT_SESSION_COOKIE, path="/", samesite="Strict")
        return response


@extend_schema(tags=["Auth"], responses={200: UserSerializer, **AUTH_RESPONSES})
class MeView(APIView):
    """Current user profile."""

    def get(self, request: Request) -> Response:
        return Response(UserSerializer(request.user).data)


@extend_schema(tags=["Health"], responses={200: OpenApiResponse(description="Service is up")})
class HealthView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request: Request) -> Response:
        return Response({"status": "ok"})


# ---------- Users ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Users"],
        parameters=[OpenApiParameter("role", str, OpenApiParameter.QUERY, required=False)],
        responses={200: UserSerializer(many=True), **AUTH_RESPONSES},
    ),
    create=extend_schema(
        tags=["Users"],
        request=UserWriteSerializer,
        responses={201: UserSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    retrieve=extend_schema(tags=["Users"], responses={200: UserSerializer, **AUTH_RESPONSES}),
    partial_update=extend_schema(
        tags=["Users"],
        request=UserUpdateSerializer,
        responses={200: UserSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    destroy=extend_schema(
        tags=["Users"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
    ),
)
class UserViewSet(PaginationMixin, viewsets.GenericViewSet):
    """Account administration (admin only)."""
    queryset = User.objects.all().order_by("id")
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated, IsAdmin]
    lookup_value_regex = r"\d+"

    def list(self, request: Request) -> Response:
        qs = self.get_queryset()
        role = request.query_params.get("role")
        if role:
            qs = qs.filter(role=role)
        return self.paginate_and_respond(qs, UserSerializer)

    def create(self, request: Request) -> Response:
        ser = UserWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = user_service.create_user(request.user, **ser.validated_data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request: Request, pk: int | None = None) -> Response:
        return Response(UserSerializer(self.get_object()).data)

    def partial_update(self, request: Request, pk: int | None = None) -> Response:
        user = self.get_object()
        ser = UserUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        user = user_service.update_user(request.user, user, ser.validated_data)
        return Response(UserSerializer(user).data)

    def destroy(self, request: Request, pk: int | None = None) -> Response:
        user_service.delete_user(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------- Modules ----------
@extend_schema_view(
    list=extend_schema(tags=["Modules"], responses={200: ModuleSerializer(many=True), **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Modules"],
        request=ModuleWriteSerializer,
        responses={201: ModuleSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin"]}},
    ),
    retrieve=extend_schema(
        tags=["Modules"],
        responses={200: ModuleAdminDetailSerializer, **AUTH_RESPONSES},
        description="Shape depends on role: admin full detail, assigned instructor detail with "
                    "submission counts, enrolled student published module with questions.",
    ),
    partial_update=extend_schema(
        tags=["Modules"],
        request=ModuleWriteSerializer,
        responses={200: ModuleSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin"]}},
    ),
    destroy=extend_schema(
        tags=["Modules"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["admin"], "state": "draft, no enrollments"}},
    ),
    ready=extend_schema(
        tags=["Module lifecycle"],
        request=None,
        responses={200: ModuleSerializer, **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["instructor"], "relationship": "assigned"}},
    ),
    publish=extend_schema(
        tags=["Module lifecycle"],
        request=None,
        responses={200: ModuleSerializer, **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["admin"]}},
    ),
    archive=extend_schema(
        tags=["Module lifecycle"],
        request=None,
        responses={200: ModuleSerializer, **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["admin"]}},
    ),
    enroll=extend_schema(
        tags=["Membership"],
        request=EnrollSerializer,
        responses={201: OpenApiResponse(description="Enrolled"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin"]}},
    ),
    assign_instructor=extend_schema(
        tags=["Membership"],
        request=AssignInstructorSerializer,
        responses={201: OpenApiResponse(description="Assigned"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin"]}},
    ),
    questions=extend_schema(
        tags=["Content"],
        responses={200: QuestionTreeSerializer(many=True), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["instructor", "admin"], "relationship": "assigned"}},
    ),
)
class ModuleViewSet(PaginationMixin, viewsets.GenericViewSet):
    """Module administration, lifecycle transitions and membership."""
    queryset = Module.objects.all()
    serializer_class = ModuleSerializer
    permission_classes = [IsAuthenticated, IsAdmin]
    lookup_value_regex = r"\d+"
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_permissions(self) -> list:
        if self.action == "retrieve":
            return [IsAuthenticated(), CanViewModule()]
        if self.action == "ready":
            return [IsAuthenticated(), IsInstructor()]
        if self.action == "questions":
            return [IsAuthenticated(), IsInstructorOrAdmin(), IsAssignedInstructorOrAdmin()]
        return [IsAuthenticated(), IsAdmin()]

    def list(self, request: Request) -> Response:
        return self.paginate_and_respond(self.get_queryset(), ModuleSerializer)

    def create(self, request: Request) -> Response:
        ser = ModuleWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        module = module_service.create_module(request.user, ser.validated_data)
        return Response(ModuleSerializer(module).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request: Request, pk: int | None = None) -> Response:
        module = self.get_object()
        if is_admin(request.user):
            return Response(ModuleAdminDetailSerializer(module).data)
        if is_assigned_instructor(request.user, module):
            return Response(ModuleWithCountsSerializer(module).data)
        module = Module.objects.prefetch_related("questions").get(pk=module.pk)
        return Response(ModuleStudentDetailSerializer(module).data)

    def partial_update(self, request: Request, pk: int | None = None) -> Response:
        module = self.get_object()
        ser = ModuleWriteSerializer(module, data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        module = module_service.update_module(request.user, module, ser.validated_data)
        return Response(ModuleSerializer(module).data)

    def destroy(self, request: Request, pk: int | None = None) -> Response:
        module_service.delete_module(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["patch"])
    def ready(self, request: Request, pk: int | None = None) -> Response:
        """Mark a draft module ready for publishing."""
        module = module_service.mark_ready(request.user, self.get_object())
        return Response(ModuleSerializer(module).data)

    @action(detail=True, methods=["patch"])
    def publish(self, request: Request, pk: int | None = None) -> Response:
        module = module_service.publish(request.user, self.get_object())
        return Response(ModuleSerializer(module).data)

    @action(detail=True, methods=["patch"])
    def archive(self, request: Request, pk: int | None = None) -> Response:
        module = module_service.archive(request.user, self.get_object())
        return Response(ModuleSerializer(module).data)

    @action(detail=True, methods=["post"])
    def enroll(self, request: Request, pk: int | None = None) -> Response:
        """Enroll a student in the module."""
        module = self.get_object()
        ser = EnrollSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        enrollment = module_service.enroll_student(request.user, module, ser.validated_data["student_id"])
        return Response(
            {"module_id": enrollment.module_id, "student_id": enrollment.student_id},
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["post"], url_path="instructor")
    def assign_instructor(self, request: Request, pk: int | None = None) -> Response:
        """Assign an instructor to the module."""
        module = self.get_object()
        ser = AssignInstructorSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        assignment = module_service.assign_instructor(request.user, module, ser.validated_data["instructor_id"])
        return Response(
            {"module_id": assignment.module_id, "instructor_id": assignment.instructor_id},
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["get"])
    def questions(self, request: Request, pk: int | None = None) -> Response:
        """Full content tree of the module."""
        module = self.get_object()
        return Response(QuestionTreeSerializer(tree_questions(module), many=True).data)


# ---------- Content ----------
CONTENT_PERMISSIONS = {"x-permissions": {"required_roles": ["instructor"], "relationship": "assigned", "state": "draft"}}


@extend_schema_view(
    create=extend_schema(
        tags=["Content"],
        request=QuestionCreateSerializer,
        responses={201: QuestionSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=CONTENT_PERMISSIONS,
    ),
    retrieve=extend_schema(tags=["Content"], responses={200: QuestionTreeSerializer, **AUTH_RESPONSES}),
    partial_update=extend_schema(
        tags=["Content"],
        request=QuestionUpdateSerializer,
        responses={200: QuestionSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=CONTENT_PERMISSIONS,
    ),
    update=extend_schema(
        tags=["Content"],
        request=QuestionUpdateSerializer,
        responses={200: QuestionSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=CONTENT_PERMISSIONS,
    ),
    destroy=extend_schema(
        tags=["Content"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions=CONTENT_PERMISSIONS,
    ),
)
class QuestionViewSet(viewsets.GenericViewSet):
    """Question authoring; deleting a question removes its whole subtree."""
    queryset = Question.objects.select_related("module")
    serializer_class = QuestionSerializer
    permission_classes = [IsAuthenticated, IsInstructor]
    lookup_value_regex = r"\d+"

    def get_permissions(self) -> list:
        if self.action == "retrieve":
            return [IsAuthenticated(), IsInstructorOrAdmin(), IsAssignedInstructorOrAdmin()]
        return super().get_permissions()

    def create(self, request: Request) -> Response:
        ser = QuestionCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        module = get_object_or_404(Module, pk=data.pop("module_id"))
        question = content_service.create_question(request.user, module, **data)
        return Response(QuestionSerializer(question).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request: Request, pk: int | None = None) -> Response:
        question = self.get_object()
        question = tree_questions(question.module).get(pk=question.pk)
        return Response(QuestionTreeSerializer(question).data)

    def update(self, request: Request, pk: int | None = None) -> Response:
        question = self.get_object()
        ser = QuestionUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        question = content_service.update_question(request.user, question, ser.validated_data)
        return Response(QuestionSerializer(question).data)

    def partial_update(self, request: Request, pk: int | None = None) -> Response:
        return self.update(request, pk)

    def destroy(self, request: Request, pk: int | None = None) -> Response:
        content_service.delete_question(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    create=extend_schema(
        tags=["Content"],
        request=PartCreateSerializer,
        responses={201: PartSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        description="Create a part; an existing (question, label) pair is returned instead of failing.",
        extensions=CONTENT_PERMISSIONS,
    ),
    partial_update=extend_schema(
        tags=["Content"],
        request=PartUpdateSerializer,
        responses={200: PartSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=CONTENT_PERMISSIONS,
    ),
    destroy=extend_schema(
        tags=["Content"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions=CONTENT_PERMISSIONS,
    ),
)
class PartViewSet(viewsets.GenericViewSet):
    queryset = Part.objects.select_related("question__module")
    serializer_class = PartSerializer
    permission_classes = [IsAuthenticated, IsInstructor]
    lookup_value_regex = r"\d+"
    http_method_names = ["post", "patch", "delete", "options"]

    def create(self, request: Request) -> Response:
        ser = PartCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        question = get_object_or_404(Question.objects.select_related("module"), pk=ser.validated_data["question_id"])
        part = content_service.upsert_part(request.user, question, ser.validated_data["label"])
        return Response(PartSerializer(part).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request: Request, pk: int | None = None) -> Response:
        part = self.get_object()
        ser = PartUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        part = content_service.relabel_part(request.user, part, ser.validated_data["label"])
        return Response(PartSerializer(part).data)

    def destroy(self, request: Request, pk: int | None = None) -> Response:
        content_service.delete_part(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    create=extend_schema(
        tags=["Content"],
        request=SubQuestionCreateSerializer,
        responses={201: SubQuestionSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=CONTENT_PERMISSIONS,
    ),
    partial_update=extend_schema(
        tags=["Content"],
        request=SubQuestionUpdateSerializer,
        responses={200: SubQuestionSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=CONTENT_PERMISSIONS,
    ),
    destroy=extend_schema(
        tags=["Content"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions=CONTENT_PERMISSIONS,
    ),
)
class SubQuestionViewSet(viewsets.GenericViewSet):
    queryset = SubQuestion.objects.select_related("part__question__module")
    serializer_class = SubQuestionSerializer
    permission_classes = [IsAuthenticated, IsInstructor]
    lookup_value_regex = r"\d+"
    http_method_names = ["post", "patch", "delete", "options"]

    def create(self, request: Request) -> Response:
        ser = SubQuestionCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        part = get_object_or_404(Part.objects.select_related("question__module"), pk=data.pop("part_id"))
        sub_question = content_service.create_sub_question(request.user, part, **data)
        return Response(SubQuestionSerializer(sub_question).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request: Request, pk: int | None = None) -> Response:
        sub_question = self.get_object()
        ser = SubQuestionUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        sub_question = content_service.update_sub_question(request.user, sub_question, ser.validated_data)
        return Response(SubQuestionSerializer(sub_question).data)

    def destroy(self, request: Request, pk: int | None = None) -> Response:
        content_service.delete_sub_question(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    create=extend_schema(
        tags=["Artefacts"],
        request=ArtefactCreateSerializer,
        responses={201: ArtefactSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=CONTENT_PERMISSIONS,
    ),
    destroy=extend_schema(
        tags=["Artefacts"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions=CONTENT_PERMISSIONS,
    ),
    download=extend_schema(
        tags=["Artefacts"],
        responses={
            (200, "application/octet-stream"): OpenApiResponse(description="File bytes"),
            503: OpenApiResponse(description="Storage not configured"),
            **AUTH_RESPONSES,
        },
    ),
)
class ArtefactViewSet(viewsets.GenericViewSet):
    """Artefact links and the signed object-storage download proxy."""
    queryset = Artefact.objects.select_related("question__module")
    serializer_class = ArtefactSerializer
    permission_classes = [IsAuthenticated, IsInstructor]
    lookup_value_regex = r"\d+"
    http_method_names = ["get", "post", "delete", "options"]

    def get_permissions(self) -> list:
        if self.action == "download":
            return [IsAuthenticated()]
        return super().get_permissions()

    def create(self, request: Request) -> Response:
        ser = ArtefactCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        question = get_object_or_404(Question.objects.select_related("module"), pk=data.pop("question_id"))
        artefact = content_service.add_artefact(request.user, question, data)
        return Response(ArtefactSerializer(artefact).data, status=status.HTTP_201_CREATED)

    def destroy(self, request: Request, pk: int | None = None) -> Response:
        content_service.delete_artefact(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"])
    def download(self, request: Request, pk: int | None = None) -> StreamingHttpResponse:
        """Stream the artefact bytes from object storage."""
        download = storage_service.open_download(request.user, self.get_object())
        response = StreamingHttpResponse(download.chunks, content_type=download.content_type)
        response["Content-Disposition"] = f'attachment; filename="{download.filename}"'
        return response


# ---------- Answers ----------
@extend_schema(tags=["Answers"])
class AnswerView(APIView):
    """Students save answers (draft only) and read them back, with grades once submitted."""
    permission_classes = [IsAuthenticated, IsStudent]

    @extend_schema(
        parameters=[
            OpenApiParameter("question_id", int, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("module_id", int, OpenApiParameter.QUERY, required=False),
        ],
        responses={200: OpenApiResponse(description="{submission_id, status, answers}"), **AUTH_RESPONSES},
    )
    def get(self, request: Request) -> Response:
        question_id = request.query_params.get("question_id")
        module_id = request.query_params.get("module_id")
        question = None
        if question_id:
            question = get_object_or_404(Question.objects.select_related("module"), pk=_int_param("question_id", question_id))
            module = question.module
        elif module_id:
            module = get_object_or_404(Module, pk=_int_param("module_id", module_id))
        else:
            raise ValidationError("question_id or module_id is required")
        return Response(submission_service.answers_view(request.user, module, question))

    @extend_schema(
        request=AnswerWriteSerializer,
        responses={200: AnswerSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    )
    def post(self, request: Request) -> Response:
        ser = AnswerWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        sub_question = get_object_or_404(
            SubQuestion.objects.select_related("part__question__module"),
            pk=ser.validated_data["sub_question_id"],
        )
        answer = submission_service.save_answer(request.user, sub_question, ser.validated_data["answer_text"])
        return Response(AnswerSerializer(answer).data)


# ---------- Submissions ----------
@extend_schema_view(
    retrieve=extend_schema(tags=["Submissions"], responses={200: SubmissionDetailSerializer, **AUTH_RESPONSES}),
    start=extend_schema(
        tags=["Submissions"],
        request=ModuleRefSerializer,
        responses={201: SubmissionSerializer, 200: SubmissionSerializer, **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["student"], "relationship": "enrolled"}},
    ),
    submit=extend_schema(
        tags=["Submissions"],
        request=ModuleRefSerializer,
        responses={200: SubmissionSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    ),
    submission_status=extend_schema(
        tags=["Submissions"],
        parameters=[OpenApiParameter("module_id", int, OpenApiParameter.QUERY, required=True)],
        responses={200: OpenApiResponse(description="{status}"), **AUTH_RESPONSES},
    ),
)
class SubmissionViewSet(viewsets.GenericViewSet):
    """Student submission lifecycle plus single-submission reads."""
    queryset = Submission.objects.select_related("module", "student")
    serializer_class = SubmissionSerializer
    permission_classes = [IsAuthenticated, IsStudent]
    lookup_value_regex = r"\d+"

    def get_permissions(self) -> list:
        if self.action == "retrieve":
            return [IsAuthenticated()]
        return super().get_permissions()

    def get_object(self) -> Submission:
        """Submissions outside the caller's visibility are reported as missing."""
        submission = super().get_object()
        if not can_view_submission(self.request.user, submission):
            raise NotFound()
        return submission

    def retrieve(self, request: Request, pk: int | None = None) -> Response:
        return Response(SubmissionDetailSerializer(self.get_object()).data)

    def _module_from_body(self, request: Request) -> Module:
        ser = ModuleRefSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return get_object_or_404(Module, pk=ser.validated_data["module_id"])

    @action(detail=False, methods=["post"])
    def start(self, request: Request) -> Response:
        """Open the draft submission for a module (idempotent)."""
        module = self._module_from_body(request)
        submission, created = submission_service.start(request.user, module)
        return Response(
            SubmissionSerializer(submission).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @action(detail=False, methods=["post"])
    def submit(self, request: Request) -> Response:
        """Submit the student's draft; answers are frozen afterwards."""
        module = self._module_from_body(request)
        submission = submission_service.submit(request.user, module)
        return Response(SubmissionSerializer(submission).data)

    @action(detail=False, methods=["get"], url_path="status")
    def submission_status(self, request: Request) -> Response:
        module_id = request.query_params.get("module_id")
        if not module_id:
            raise ValidationError({"module_id": "This field is required."})
        module = get_object_or_404(Module, pk=_int_param("module_id", module_id))
        return Response({"status": submission_service.current_status(request.user, module)})


# ---------- Grades ----------
@extend_schema_view(
    create=extend_schema(
        tags=["Grades"],
        request=GradeWriteSerializer,
        responses={200: GradeSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["instructor", "admin"], "relationship": "assigned"}},
    ),
    finalise=extend_schema(
        tags=["Grades"],
        request=FinaliseSerializer,
        responses={200: SubmissionSerializer, **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["instructor", "admin"], "relationship": "assigned"}},
    ),
)
class GradeViewSet(viewsets.GenericViewSet):
    """Per-sub-question grading and submission finalisation."""
    queryset = Submission.objects.select_related("module")
    serializer_class = GradeSerializer
    permission_classes = [IsAuthenticated, IsInstructorOrAdmin]

    def create(self, request: Request) -> Response:
        ser = GradeWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        submission = get_object_or_404(self.get_queryset(), pk=data["submission_id"])
        grade = grading_service.record_grade(
            request.user, submission, data["sub_question_id"], data["score"], data.get("feedback", "")
        )
        submission.refresh_from_db(fields=["status"])
        payload = GradeSerializer(grade).data
        payload["submission_status"] = submission.status
        return Response(payload)

    @action(detail=False, methods=["post"])
    def finalise(self, request: Request) -> Response:
        """Lock a graded submission's grades."""
        ser = FinaliseSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        submission = get_object_or_404(self.get_queryset(), pk=ser.validated_data["submission_id"])
        submission = grading_service.finalise(request.user, submission)
        return Response(SubmissionSerializer(submission).data)


# ---------- Student views ----------
@extend_schema_view(
    list=extend_schema(tags=["Student"], responses={200: ModuleSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Student"], responses={200: ModuleStudentDetailSerializer, **AUTH_RESPONSES}),
    progress=extend_schema(
        tags=["Student"],
        responses={200: OpenApiResponse(description="{total, answered, percentage}"), **AUTH_RESPONSES},
    ),
)
class StudentModuleViewSet(PaginationMixin, viewsets.GenericViewSet):
    """Published modules the student is enrolled in."""
    queryset = Module.objects.all()
    serializer_class = ModuleSerializer
    permission_classes = [IsAuthenticated, IsStudent]
    lookup_value_regex = r"\d+"

    def list(self, request: Request) -> Response:
        qs = Module.objects.published().enrolled(request.user)
        return self.paginate_and_respond(qs, ModuleSerializer)

    def retrieve(self, request: Request, pk: int | None = None) -> Response:
        module = self.get_object()
        ensure_enrolled(request.user, module)
        module = Module.objects.prefetch_related("questions").get(pk=module.pk)
        return Response(ModuleStudentDetailSerializer(module).data)

    @action(detail=True, methods=["get"])
    def progress(self, request: Request, pk: int | None = None) -> Response:
        return Response(submission_service.progress(request.user, self.get_object()))


@extend_schema_view(
    list=extend_schema(tags=["Student"], responses={200: QuestionSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Student"], responses={200: QuestionTreeSerializer, **AUTH_RESPONSES}),
)
class StudentQuestionViewSet(viewsets.GenericViewSet):
    """Questions of a published module for an enrolled student."""
    serializer_class = QuestionTreeSerializer
    permission_classes = [IsAuthenticated, IsStudent]
    lookup_value_regex = r"\d+"

    def _module(self) -> Module:
        module = get_object_or_404(Module, pk=self.kwargs["module_pk"])
        ensure_enrolled(self.request.user, module)
        return module

    def get_queryset(self):
        return tree_questions(self._module())

    def list(self, request: Request, module_pk: int | None = None) -> Response:
        return Response(QuestionSerializer(self.get_queryset(), many=True).data)

    def retrieve(self, request: Request, module_pk: int | None = None, pk: int | None = None) -> Response:
        return Response(QuestionTreeSerializer(self.get_object()).data)


# ---------- Instructor views ----------
@extend_schema_view(
    list=extend_schema(tags=["Instructor"], responses={200: ModuleSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Instructor"], responses={200: ModuleWithCountsSerializer, **AUTH_RESPONSES}),
)
class InstructorModuleViewSet(PaginationMixin, viewsets.GenericViewSet):
    """Modules the instructor is assigned to (admins see all)."""
    queryset = Module.objects.all()
    serializer_class = ModuleWithCountsSerializer
    permission_classes = [IsAuthenticated, IsInstructorOrAdmin]
    lookup_value_regex = r"\d+"

    def list(self, request: Request) -> Response:
        qs = Module.objects.visible_to(request.user)
        return self.paginate_and_respond(qs, ModuleSerializer)

    def retrieve(self, request: Request, pk: int | None = None) -> Response:
        module = self.get_object()
        ensure_assigned(request.user, module)
        return Response(ModuleWithCountsSerializer(module).data)


@extend_schema_view(
    list=extend_schema(tags=["Instructor"], responses={200: SubmissionListSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Instructor"], responses={200: SubmissionDetailSerializer, **AUTH_RESPONSES}),
)
class InstructorSubmissionViewSet(PaginationMixin, viewsets.GenericViewSet):
    """Submitted work for a module; drafts stay private to the student."""
    serializer_class = SubmissionListSerializer
    permission_classes = [IsAuthenticated, IsInstructorOrAdmin]
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        module = get_object_or_404(Module, pk=self.kwargs["module_pk"])
        ensure_assigned(self.request.user, module)
        return (
            Submission.objects.filter(module=module)
            .visible_to_instructors()
            .select_related("module", "student")
            .order_by("-submitted_at", "-id")
        )

    def list(self, request: Request, module_pk: int | None = None) -> Response:
        return self.paginate_and_respond(self.get_queryset(), SubmissionListSerializer)

    def retrieve(self, request: Request, module_pk: int | None = None, pk: int | None = None) -> Response:
        return Response(SubmissionDetailSerializer(self.get_object()).data)
