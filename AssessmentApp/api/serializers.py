"""Serializers for auth, users, modules, content, submissions, answers and grades."""

from rest_framework import serializers
from django.contrib.auth import get_user_model

from AssessmentApp.modules.models import Module
from AssessmentApp.content.models import Question, Part, SubQuestion, Artefact
from AssessmentApp.assessments.models import Submission, Answer, Grade
from AssessmentApp.core.choices import UserRole, PartLabel
from AssessmentApp.core.validators import validate_storage_key, validate_mime_type, validate_artefact_url
from AssessmentApp.domain import lifecycle

User = get_user_model()


# ---------- Auth & users ----------
class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class UserSerializer(serializers.ModelSerializer):
    """Public, safe representation of a user."""

    class Meta:
        model = User
        fields = ["id", "email", "full_name", "role", "created_at"]


class UserBriefSerializer(serializers.ModelSerializer):

    class Meta:
        model = User
        fields = ["id", "email", "full_name"]


class UserWriteSerializer(serializers.Serializer):
    """Admin payload for creating or editing an account."""
    email = serializers.EmailField()
    full_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    role = serializers.ChoiceField(
        choices=UserRole.choices,
        error_messages={"invalid_choice": "Role must be 'student', 'instructor', or 'admin'"},
    )
    password = serializers.CharField(write_only=True, min_length=8, trim_whitespace=False)


class UserUpdateSerializer(UserWriteSerializer):
    email = serializers.EmailField(required=False)
    full_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    role = serializers.ChoiceField(
        choices=UserRole.choices,
        required=False,
        error_messages={"invalid_choice": "Role must be 'student', 'instructor', or 'admin'"},
    )
    password = serializers.CharField(write_only=True, min_length=8, required=False, trim_whitespace=False)


# ---------- Modules ----------
class ModuleWriteSerializer(serializers.ModelSerializer):
    """Serializer for creating/updating module metadata."""

    class Meta:
        model = Module
        fields = ["title", "description", "submission_start", "submission_end"]
        extra_kwargs = {
            "title": {"help_text": "Module title."},
            "submission_start": {"help_text": "Optional start of the submission window (stored, not enforced)."},
            "submission_end": {"help_text": "Optional end of the submission window (stored, not enforced)."},
        }


class ModuleSerializer(serializers.ModelSerializer):
    """Serializer for reading module details."""

    class Meta:
        model = Module
        fields = [
            "id", "title", "description", "status", "ready_for_publish",
            "created_at", "updated_at", "published_at", "submission_start", "submission_end",
        ]


class ModuleWithCountsSerializer(ModuleSerializer):
    """Module plus the number of submissions in each lifecycle state."""
    submission_counts = serializers.SerializerMethodField()

    class Meta(ModuleSerializer.Meta):
        fields = ModuleSerializer.Meta.fields + ["submission_counts"]

    def get_submission_counts(self, obj: Module) -> dict[str, int]:
        return obj.submissions.status_counts()


class ModuleAdminDetailSerializer(ModuleWithCountsSerializer):
    """Full admin view: members and submission counts."""
    instructors = serializers.SerializerMethodField()
    students = serializers.SerializerMethodField()

    class Meta(ModuleWithCountsSerializer.Meta):
        fields = ModuleWithCountsSerializer.Meta.fields + ["instructors", "students"]

    def get_instructors(self, obj: Module) -> list[dict]:
        users = User.objects.filter(module_assignments__module=obj).order_by("id")
        return UserBriefSerializer(users, many=True).data

    def get_students(self, obj: Module) -> list[dict]:
        users = User.objects.filter(module_enrollments__module=obj).order_by("id")
        return UserBriefSerializer(users, many=True).data


class EnrollSerializer(serializers.Serializer):
    student_id = serializers.IntegerField()


class AssignInstructorSerializer(serializers.Serializer):
    instructor_id = serializers.IntegerField()


class ModuleRefSerializer(serializers.Serializer):
    module_id = serializers.IntegerField()


# ---------- Content ----------
class ArtefactSerializer(serializers.ModelSerializer):

    class Meta:
        model = Artefact
        fields = ["id", "question_id", "filename", "file_type", "url", "uploaded_by_id", "created_at"]


class ArtefactCreateSerializer(serializers.Serializer):
    question_id = serializers.IntegerField()
    filename = serializers.CharField(max_length=255)
    file_type = serializers.CharField(max_length=255, required=False, allow_blank=True, default="",
                                      validators=[validate_mime_type])
    storage_key = serializers.CharField(max_length=1024, validators=[validate_storage_key])
    url = serializers.CharField(max_length=1024, required=False, allow_blank=True, default="",
                                validators=[validate_artefact_url])


class SubQuestionSerializer(serializers.ModelSerializer):

    class Meta:
        model = SubQuestion
        fields = ["id", "part_id", "prompt", "max_marks", "order_index"]


class SubQuestionCreateSerializer(serializers.Serializer):
    part_id = serializers.IntegerField()
    prompt = serializers.CharField()
    max_marks = serializers.IntegerField(min_value=1)
    order_index = serializers.IntegerField(min_value=1, required=False)


class SubQuestionUpdateSerializer(serializers.Serializer):
    prompt = serializers.CharField(required=False)
    max_marks = serializers.IntegerField(min_value=1, required=False)
    order_index = serializers.IntegerField(min_value=1, required=False)


class PartSerializer(serializers.ModelSerializer):

    class Meta:
        model = Part
        fields = ["id", "question_id", "label"]


class PartTreeSerializer(PartSerializer):
    sub_questions = SubQuestionSerializer(many=True, read_only=True)

    class Meta(PartSerializer.Meta):
        fields = PartSerializer.Meta.fields + ["sub_questions"]


class PartCreateSerializer(serializers.Serializer):
    question_id = serializers.IntegerField()
    label = serializers.ChoiceField(choices=PartLabel.choices)


class PartUpdateSerializer(serializers.Serializer):
    label = serializers.ChoiceField(choices=PartLabel.choices)


class QuestionSerializer(serializers.ModelSerializer):

    class Meta:
        model = Question
        fields = ["id", "module_id", "title", "scenario_text", "order_index", "created_at", "updated_at"]


class QuestionTreeSerializer(QuestionSerializer):
    """Question with parts -> sub-questions and artefact links."""
    parts = PartTreeSerializer(many=True, read_only=True)
    artefacts = ArtefactSerializer(many=True, read_only=True)

    class Meta(QuestionSerializer.Meta):
        fields = QuestionSerializer.Meta.fields + ["parts", "artefacts"]


class QuestionCreateSerializer(serializers.Serializer):
    module_id = serializers.IntegerField()
    title = serializers.CharField(max_length=255)
    scenario_text = serializers.CharField()
    order_index = serializers.IntegerField(min_value=1, required=False)


class QuestionUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    scenario_text = serializers.CharField(required=False)
    order_index = serializers.IntegerField(min_value=1, required=False)


class ModuleStudentDetailSerializer(ModuleSerializer):
    """Student view of a published module with its ordered questions."""
    questions = QuestionSerializer(many=True, read_only=True)

    class Meta(ModuleSerializer.Meta):
        fields = ModuleSerializer.Meta.fields + ["questions"]


# ---------- Submissions, answers, grades ----------
class SubmissionSerializer(serializers.ModelSerializer):

    class Meta:
        model = Submission
        fields = [
            "id", "module_id", "student_id", "status",
            "created_at", "submitted_at", "graded_at", "finalised_at",
        ]


class SubmissionListSerializer(SubmissionSerializer):
    """Instructor list row: submission plus who it belongs to."""
    student = UserBriefSerializer(read_only=True)

    class Meta(SubmissionSerializer.Meta):
        fields = SubmissionSerializer.Meta.fields + ["student"]


class SubmissionDetailSerializer(SubmissionListSerializer):
    """Submission with the module's full content tree and the student's answers.

    Each sub-question carries ``submission_answer_id`` and ``answer_text``;
    ``grade`` is included once the submission has left draft (null until graded).
    """
    module_title = serializers.CharField(source="module.title", read_only=True)
    questions = serializers.SerializerMethodField()

    class Meta(SubmissionListSerializer.Meta):
        fields = SubmissionListSerializer.Meta.fields + ["module_title", "questions"]

    def get_questions(self, obj: Submission) -> list[dict]:
        answers = {a.sub_question_id: a for a in obj.answers.select_related("grade")}
        show_grades = lifecycle.grades_visible(obj.status)
        questions = (
            Question.objects.filter(module_id=obj.module_id)
            .prefetch_related("parts__sub_questions")
            .order_by("order_index", "id")
        )
        result = []
        for question in questions:
            parts = []
            for part in question.parts.all():
                sub_questions = []
                for sq in part.sub_questions.all():
                    answer = answers.get(sq.id)
                    row = {
                        "id": sq.id,
                        "prompt": sq.prompt,
                        "max_marks": sq.max_marks,
                        "order_index": sq.order_index,
                        "submission_answer_id": answer.id if answer else None,
                        "answer_text": answer.answer_text if answer else None,
                    }
                    if show_grades:
                        grade = getattr(answer, "grade", None) if answer else None
                        row["grade"] = (
                            {"marks_awarded": grade.marks_awarded, "feedback": grade.feedback}
                            if grade else None
                        )
                    sub_questions.append(row)
                parts.append({"id": part.id, "label": part.label, "sub_questions": sub_questions})
            result.append({
                "id": question.id,
                "title": question.title,
                "scenario_text": question.scenario_text,
                "order_index": question.order_index,
                "parts": parts,
            })
        return result


class AnswerWriteSerializer(serializers.Serializer):
    sub_question_id = serializers.IntegerField()
    answer_text = serializers.CharField(allow_blank=True, trim_whitespace=False)


class AnswerSerializer(serializers.ModelSerializer):

    class Meta:
        model = Answer
        fields = ["id", "submission_id", "sub_question_id", "answer_text", "updated_at"]


class GradeWriteSerializer(serializers.Serializer):
    submission_id = serializers.IntegerField()
    sub_question_id = serializers.IntegerField()
    score = serializers.DecimalField(
        max_digits=7,
        decimal_places=2,
        min_value=0,
        error_messages={"min_value": "Score must be a non-negative number"},
    )
    feedback = serializers.CharField(required=False, allow_blank=True, default="")


class GradeSerializer(serializers.ModelSerializer):
    submission_answer_id = serializers.IntegerField(source="answer_id", read_only=True)

    class Meta:
        model = Grade
        fields = ["id", "submission_answer_id", "instructor_id", "marks_awarded", "feedback", "updated_at"]


class FinaliseSerializer(serializers.Serializer):
    submission_id = serializers.IntegerField()
