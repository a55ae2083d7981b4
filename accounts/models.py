from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models


class Role(models.TextChoices):
    EMPLOYEE = 'employee', 'Employee'
    MANAGER = 'manager', 'Manager'
    ADMIN = 'admin', 'Admin'


class CustomUserManager(BaseUserManager):
    """Custom user manager where email is the unique identifier"""

    def create_user(self, email, password=None, **extra_fields):
        """Create and save a regular user with the given email and password"""
        if not email:
            raise ValueError('The Email field must be set')
        email = self.normalize_email(email).lower()
        extra_fields.setdefault('role', Role.EMPLOYEE)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Create and save a superuser with the given email and password"""
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', Role.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


class User(AbstractUser):
    """Custom user model with email as username field"""

    username = None  # Remove username field
    email = models.EmailField(unique=True, db_index=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.EMPLOYEE, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = CustomUserManager()

    class Meta:
        db_table = 'users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email

    @property
    def manager(self):
        """Manager assigned through TeamAssignment, if any."""
        assignment = getattr(self, 'team_assignment', None)
        return assignment.manager if assignment else None

    def manages(self, employee) -> bool:
        """True when ``employee`` is assigned to this user's team."""
        employee_id = getattr(employee, 'id', employee)
        return TeamAssignment.objects.filter(manager_id=self.id, employee_id=employee_id).exists()


class TeamAssignment(models.Model):
    """Links an employee to the single manager who decides their requests."""

    manager = models.ForeignKey(User, on_delete=models.CASCADE, related_name='team_assignments')
    employee = models.OneToOneField(User, on_delete=models.CASCADE, related_name='team_assignment')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'team_assignments'
        verbose_name = 'Team Assignment'
        verbose_name_plural = 'Team Assignments'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['manager', 'employee'], name='team_assign_manager_5c1e2f_idx'),
        ]

    def __str__(self):
        return f"{self.employee.email} -> {self.manager.email}"
