from rest_framework import serializers
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

# Import models for aggregation
from assessments.models import Attempt
from certificates.models import Certificate

User = get_user_model()

class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'role', 'status',
            'qid', 'badge_no', 'rank', 'unit', 'locale', 'phone_number',
            'is_staff', 'date_joined',
        ]
        read_only_fields = ['is_staff', 'date_joined']

class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'password', 'role',
            'qid', 'badge_no', 'rank', 'unit', 'locale', 'phone_number',
        ]
        read_only_fields = ['id']

    def create(self, validated_data):
        password = validated_data.pop('password')
        role = validated_data.pop('role', User.Role.TRAINEE)
        user = User.objects.create_user(
            username=validated_data['email'],
            password=password,
            role=role,
            is_staff=role in (User.Role.ADMIN, User.Role.SUPER_ADMIN),
            **validated_data
        )
        return user

class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        data['user'] = UserSerializer(self.user).data
        return data

class UserImportRowSerializer(serializers.Serializer):
    """One CSV row of a bulk user import."""
    email = serializers.EmailField()
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150)
    role = serializers.ChoiceField(choices=User.Role.choices, default=User.Role.TRAINEE)
    badge_no = serializers.CharField(max_length=20, required=False, allow_blank=True)
    rank = serializers.CharField(max_length=50, required=False, allow_blank=True)
    unit = serializers.CharField(max_length=100, required=False, allow_blank=True)
    qid = serializers.CharField(max_length=20, required=False, allow_blank=True)
    password = serializers.CharField(min_length=8)

# --- Trainee list with learning history ---
class TraineeListSerializer(serializers.ModelSerializer):
    exams_taken = serializers.SerializerMethodField()
    certificates_earned = serializers.SerializerMethodField()
    last_activity = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'badge_no', 'unit', 'exams_taken', 'certificates_earned', 'last_activity']

    def get_exams_taken(self, obj):
        return Attempt.objects.filter(user=obj).count()

    def get_certificates_earned(self, obj):
        return Certificate.objects.filter(user=obj).count()

    def get_last_activity(self, obj):
        last_attempt = Attempt.objects.filter(user=obj).order_by('-submitted_at').first()
        if last_attempt:
            return last_attempt.submitted_at
        return obj.date_joined
