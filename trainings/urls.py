from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import TrainingSessionViewSet

router = DefaultRouter()
router.register(r'sessions', TrainingSessionViewSet, basename='sessions')

urlpatterns = [
    path('', include(router.urls)),
]
