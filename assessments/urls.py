from django.urls import path
from .views import ExamResultsView, StudentExamAttemptsView, SubmitExamView

urlpatterns = [
    # Trainee exam flow
    path('exams/attempts/', StudentExamAttemptsView.as_view(), name='exam-attempts'),
    path('exams/<int:exam_id>/submit/', SubmitExamView.as_view(), name='exam-submit'),
    path('exams/<int:exam_id>/results/', ExamResultsView.as_view(), name='exam-results'),
]
