from rest_framework import generics, permissions, status, views
from rest_framework.response import Response

from cores.permissions import IsTrainee

from .models import Attempt
from .serializers import (
    AttemptDetailSerializer,
    AttemptResultSerializer,
    AttemptSerializer,
    ExamSubmitSerializer,
)
from .services import latest_attempt, submit_exam


class SubmitExamView(views.APIView):
    """
    Trainee submits answers. Grading happens immediately.
    Payload: { "answers": [{"questionId": "1", "answer": "B", "timeSpent": 30}], "autoSubmit": false }
    """
    permission_classes = [permissions.IsAuthenticated, IsTrainee]

    def post(self, request, exam_id):
        serializer = ExamSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        attempt, certificate = submit_exam(
            exam_id,
            request.user,
            serializer.validated_data['answers'],
            auto_submit=serializer.validated_data['autoSubmit'],
            request=request,
        )
        data = AttemptResultSerializer(attempt, context={'certificate': certificate}).data
        return Response({'attempt': data}, status=status.HTTP_201_CREATED)


class ExamResultsView(views.APIView):
    """The caller's most recent attempt at an exam, with the answer breakdown."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, exam_id):
        attempt = latest_attempt(exam_id, request.user)
        return Response(AttemptDetailSerializer(attempt).data)


class StudentExamAttemptsView(generics.ListAPIView):
    """List all attempts for the logged-in user."""
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = AttemptSerializer

    def get_queryset(self):
        return Attempt.objects.filter(user=self.request.user).select_related('exam')
