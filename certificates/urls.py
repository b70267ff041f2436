from django.urls import path
from .views import CertificateListView, CertificateVerifyView

urlpatterns = [
    path('certificates/', CertificateListView.as_view(), name='certificates'),
    path('certificates/verify/<str:serial>/', CertificateVerifyView.as_view(), name='certificate-verify'),
]
