from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import CourseViewSet, ModuleVersionListCreateView, TagViewSet, TrainingProgramViewSet

router = DefaultRouter()
router.register(r'courses', CourseViewSet, basename='courses')
router.register(r'tags', TagViewSet, basename='tags')
router.register(r'training-programs', TrainingProgramViewSet, basename='training-programs')

urlpatterns = [
    path('modules/<int:module_id>/versions/', ModuleVersionListCreateView.as_view(), name='module-versions'),
    path('', include(router.urls)),
]
