from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed

from .models import Role, TeamAssignment, User
from .permissions import has_role


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model"""

    manager_id = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ('id', 'email', 'first_name', 'last_name', 'role', 'manager_id', 'is_active', 'created_at')
        read_only_fields = fields

    def get_manager_id(self, obj):
        manager = obj.manager
        return manager.id if manager else None


class RegisterSerializer(serializers.Serializer):
    """Serializer for employee self-registration"""

    email = serializers.EmailField()
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    password = serializers.CharField(write_only=True)
    confirm_password = serializers.CharField(write_only=True)

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value.lower()

    def validate(self, data):
        if data['password'] != data['confirm_password']:
            raise serializers.ValidationError({"confirm_password": "Passwords do not match."})
        candidate = User(email=data['email'], first_name=data['first_name'], last_name=data.get('last_name', ''))
        validate_password(data['password'], user=candidate)
        return data

    def create(self, validated_data):
        return User.objects.create_user(
            email=validated_data['email'],
            password=validated_data['password'],
            first_name=validated_data['first_name'],
            last_name=validated_data.get('last_name', ''),
            role=Role.EMPLOYEE,
        )


class LoginSerializer(serializers.Serializer):
    """Serializer for user login"""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = authenticate(username=data['email'].lower(), password=data['password'])
        # Inactive users fail ModelBackend authentication as well.
        if user is None:
            raise AuthenticationFailed('Invalid email or password.')
        data['user'] = user
        return data


class TeamAssignmentSerializer(serializers.ModelSerializer):
    """Serializer for assigning an employee to a manager"""

    manager = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    employee = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))

    class Meta:
        model = TeamAssignment
        fields = ('id', 'manager', 'employee', 'created_at')
        read_only_fields = ('id', 'created_at')
        # One manager per employee; an existing assignment is replaced in create().
        validators = []

    def validate(self, data):
        manager = data['manager']
        employee = data['employee']
        if not has_role(manager, {Role.MANAGER, Role.ADMIN}):
            raise serializers.ValidationError({"manager": "Assigned manager must hold the manager or admin role."})
        if manager.id == employee.id:
            raise serializers.ValidationError({"employee": "A user cannot manage themselves."})
        return data

    def create(self, validated_data):
        assignment, _ = TeamAssignment.objects.update_or_create(
            employee=validated_data['employee'],
            defaults={'manager': validated_data['manager']},
        )
        return assignment
