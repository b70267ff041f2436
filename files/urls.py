from django.urls import path
from .views import FileDetailView, FileListView, FilePreviewView, FileUploadView

urlpatterns = [
    path('files/', FileListView.as_view(), name='file-list'),
    path('files/upload/', FileUploadView.as_view(), name='file-upload'),
    # Keys contain slashes; preview must be matched before the catch-all detail route
    path('files/<path:key>/preview/', FilePreviewView.as_view(), name='file-preview'),
    path('files/<path:key>/', FileDetailView.as_view(), name='file-detail'),
]
