import logging

from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from rest_framework import permissions, status
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from .permissions import IsAdminRole
from .serializers import LoginSerializer, RegisterSerializer, TeamAssignmentSerializer, UserSerializer
from .utils import api_response

logger = logging.getLogger(__name__)


def issue_tokens(user):
    """Signed refresh/access pair; the role travels as a claim for clients."""
    refresh = RefreshToken.for_user(user)
    refresh['role'] = user.role
    return {
        'refresh': str(refresh),
        'access': str(refresh.access_token),
    }


class RegisterView(APIView):
    """View for employee self-registration"""

    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("Registered user %s", user.email)
        return api_response(
            success=True,
            message='Account created successfully.',
            data={'user': UserSerializer(user).data},
            status=status.HTTP_201_CREATED
        )


@method_decorator(ratelimit(key='ip', rate='10/m', method='POST'), name='dispatch')
class LoginView(APIView):
    """View for user login with JWT"""

    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data['user']
        logger.info("User %s logged in", user.email)
        return api_response(
            success=True,
            message='Login successful.',
            data={
                'user': UserSerializer(user).data,
                'tokens': issue_tokens(user),
            },
            status=status.HTTP_200_OK
        )


class UserProfileView(APIView):
    """View to get current user profile with leave balance"""

    def get(self, request):
        from timeoff.services import get_balance

        user_data = UserSerializer(request.user).data
        user_data['leave_balance'] = get_balance(request.user)
        return api_response(
            success=True,
            message='User profile retrieved successfully.',
            data=user_data,
            status=status.HTTP_200_OK
        )


class TeamAssignmentView(APIView):
    """Admin-only view to assign an employee to a manager"""

    permission_classes = [IsAdminRole]

    def post(self, request):
        serializer = TeamAssignmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        assignment = serializer.save()
        logger.info(
            "Assigned employee %s to manager %s",
            assignment.employee_id,
            assignment.manager_id,
        )
        return api_response(
            success=True,
            message='Team assignment saved.',
            data=TeamAssignmentSerializer(assignment).data,
            status=status.HTTP_201_CREATED
        )
