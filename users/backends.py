# tsf_platform/users/backends.py
from django.contrib.auth.backends import ModelBackend
from django.contrib.auth import get_user_model
from django.db.models import Q

User = get_user_model()

class EmailBackend(ModelBackend):
    """Accepts either the email, the username or the badge number as login."""

    def authenticate(self, request, username=None, password=None, **kwargs):
        if username is None:
            username = kwargs.get(User.USERNAME_FIELD)
        if not username:
            return None
        try:
            user = User.objects.get(Q(email__iexact=username) | Q(username=username) | Q(badge_no=username))
        except User.DoesNotExist:
            return None
        except User.MultipleObjectsReturned:
            user = User.objects.filter(email__iexact=username).order_by('id').first()
            if user is None:
                return None

        if user.status != User.Status.ACTIVE:
            return None
        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
