import csv
import io
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from rest_framework import generics, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from cores.audit import create_audit_log
from cores.errors import ValidationError
from cores.permissions import HasPermission
from cores.throttling import LoginRateThrottle

from .serializers import (
    RegisterSerializer,
    CustomTokenObtainPairSerializer,
    TraineeListSerializer,
    UserImportRowSerializer,
    UserSerializer,
)

logger = logging.getLogger(__name__)

User = get_user_model()

# --- 1. User Management (CRUD for Admin) ---
class UserViewSet(viewsets.ModelViewSet):
    """
    Admin endpoint to manage all users. Every mutation is audit logged.
    """
    queryset = User.objects.all().order_by('-date_joined')
    permission_classes = [HasPermission]
    required_permissions = {
        'list': ['users:read'],
        'retrieve': ['users:read'],
        'trainees': ['users:read'],
        'create': ['users:write'],
        'update': ['users:write'],
        'partial_update': ['users:write'],
        'import_users': ['users:write'],
        'destroy': ['users:delete'],
    }

    def get_serializer_class(self):
        if self.action == 'create':
            return RegisterSerializer
        if self.action == 'trainees':
            return TraineeListSerializer
        return UserSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        role = self.request.query_params.get('role')
        unit = self.request.query_params.get('unit')
        if role:
            queryset = queryset.filter(role=role)
        if unit:
            queryset = queryset.filter(unit=unit)
        return queryset

    def perform_create(self, serializer):
        user = serializer.save()
        create_audit_log(
            self.request.user, 'CREATE', 'User', user.id,
            {'email': user.email, 'role': user.role},
            request=self.request,
        )

    def perform_update(self, serializer):
        user = serializer.save()
        # Handle password update if present
        if self.request.data.get('password'):
            user.set_password(self.request.data['password'])
            user.save()

        create_audit_log(
            self.request.user, 'UPDATE', 'User', user.id,
            {'fields': sorted(serializer.validated_data.keys())},
            request=self.request,
        )

    def perform_destroy(self, instance):
        create_audit_log(
            self.request.user, 'DELETE', 'User', instance.id,
            {'email': instance.email},
            request=self.request,
        )
        instance.delete()

    @action(detail=False, methods=['get'])
    def trainees(self, request):
        queryset = User.objects.filter(role=User.Role.TRAINEE).order_by('-date_joined')
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(queryset, many=True).data)

    @action(detail=False, methods=['post'], url_path='import',
            parser_classes=[MultiPartParser, FormParser])
    def import_users(self, request):
        """
        Create users from a CSV upload.
        Expected header: email, first_name, last_name, role, badge_no, rank, unit, qid, password
        """
        file_obj = request.FILES.get('file')
        if not file_obj:
            raise ValidationError("No file uploaded")

        try:
            reader = csv.DictReader(io.StringIO(file_obj.read().decode('utf-8')))
        except UnicodeDecodeError:
            raise ValidationError("File must be UTF-8 encoded CSV")

        created, errors = [], []
        for line_no, row in enumerate(reader, start=2):
            row_serializer = UserImportRowSerializer(data=row)
            if not row_serializer.is_valid():
                errors.append({'line': line_no, 'errors': row_serializer.errors})
                continue
            data = dict(row_serializer.validated_data)
            email = data.pop('email')
            password = data.pop('password')
            try:
                with transaction.atomic():
                    user = User.objects.create_user(username=email, email=email, password=password, **data)
            except IntegrityError:
                errors.append({'line': line_no, 'errors': {'email': ['User already exists']}})
                continue
            created.append(user.id)

        create_audit_log(
            request.user, 'IMPORT', 'User', None,
            {'created': len(created), 'failed': len(errors)},
            request=request,
        )
        logger.info("User import finished: %s created, %s failed", len(created), len(errors))
        return Response({'created': len(created), 'errors': errors}, status=status.HTTP_201_CREATED)

# --- 2. Authentication Views ---
class CustomLoginView(TokenObtainPairView):
    """Issues JWTs and mirrors the access token into an HTTP-only cookie."""
    serializer_class = CustomTokenObtainPairSerializer
    throttle_classes = [LoginRateThrottle]

    def get_authenticate_header(self, request):
        # Bad credentials answer 401, not 403
        return 'Bearer realm="api"'

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        if response.status_code == status.HTTP_200_OK:
            response.set_cookie(
                settings.AUTH_COOKIE_NAME,
                response.data['access'],
                max_age=int(settings.SIMPLE_JWT['ACCESS_TOKEN_LIFETIME'].total_seconds()),
                httponly=True,
                secure=settings.AUTH_COOKIE_SECURE,
                samesite='Lax',
            )
            user = User.objects.filter(email__iexact=request.data.get('email')).first()
            create_audit_log(user, 'LOGIN', 'User', getattr(user, 'id', None), request=request)
        return response

class LogoutView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        create_audit_log(request.user, 'LOGOUT', 'User', request.user.id, request=request)
        response = Response({'message': 'Signed out'})
        response.delete_cookie(settings.AUTH_COOKIE_NAME)
        return response

class SessionView(APIView):
    """Returns the identity resolved from the auth token."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response({'user': UserSerializer(request.user).data})

class UserProfileView(generics.RetrieveUpdateAPIView):
    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        return self.request.user

    def perform_update(self, serializer):
        # Role and status changes go through the admin endpoint
        serializer.save(role=self.request.user.role, status=self.request.user.status)
