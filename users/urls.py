from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    CustomLoginView,
    LogoutView,
    SessionView,
    UserViewSet,
    UserProfileView
)

# Create a router for ViewSets
router = DefaultRouter()
router.register(r'users', UserViewSet, basename='users')

urlpatterns = [
    # --- Authentication ---
    path('auth/login/', CustomLoginView.as_view(), name='login'),
    path('auth/logout/', LogoutView.as_view(), name='logout'),
    path('auth/session/', SessionView.as_view(), name='auth-session'),

    path('profile/', UserProfileView.as_view(), name='user-profile'),
    # --- User Management (CRUD) ---
    path('', include(router.urls)),
]
