from io import StringIO

from django.core.cache import cache
from django.core.management import CommandError, call_command
from django.db import IntegrityError
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.test import APITestCase

from accounts.models import Role, TeamAssignment, User
from accounts.permissions import has_role, require_role


class UserModelTests(TestCase):
    def test_create_user_defaults_to_employee(self):
        user = User.objects.create_user(email='Jane@Example.com', password='secret123')
        self.assertEqual(user.role, Role.EMPLOYEE)
        self.assertEqual(user.email, 'jane@example.com')
        self.assertTrue(user.check_password('secret123'))
        self.assertIsNone(user.manager)

    def test_create_superuser_is_admin(self):
        user = User.objects.create_superuser(email='root@example.com', password='secret123')
        self.assertEqual(user.role, Role.ADMIN)
        self.assertTrue(user.is_staff)

    def test_team_assignment_is_unique_per_employee(self):
        manager = User.objects.create_user(email='boss@example.com', password='x', role=Role.MANAGER)
        other = User.objects.create_user(email='boss2@example.com', password='x', role=Role.MANAGER)
        employee = User.objects.create_user(email='emp@example.com', password='x')
        TeamAssignment.objects.create(manager=manager, employee=employee)

        employee.refresh_from_db()
        self.assertEqual(employee.manager, manager)
        self.assertTrue(manager.manages(employee))
        self.assertFalse(other.manages(employee))
        with self.assertRaises(IntegrityError):
            TeamAssignment.objects.create(manager=other, employee=employee)


class RequireRoleTests(TestCase):
    def test_require_role(self):
        manager = User.objects.create_user(email='boss@example.com', password='x', role=Role.MANAGER)
        employee = User.objects.create_user(email='emp@example.com', password='x')

        self.assertEqual(require_role(manager, {Role.MANAGER, Role.ADMIN}), manager)
        with self.assertRaises(PermissionDenied):
            require_role(employee, {Role.MANAGER, Role.ADMIN})
        self.assertTrue(has_role(employee, {Role.EMPLOYEE}))
        self.assertFalse(has_role(None, {Role.EMPLOYEE}))


@override_settings(RATELIMIT_ENABLE=False)
class AuthEndpointTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email='employee@example.com',
            password='secret123',
            first_name='Eve',
            last_name='Employee',
        )

    def test_register_creates_employee(self):
        payload = {
            'email': 'new@example.com',
            'first_name': 'New',
            'last_name': 'Hire',
            'password': 'Str0ngPass!',
            'confirm_password': 'Str0ngPass!',
        }
        response = self.client.post(reverse('accounts:register'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['user']['role'], 'employee')
        self.assertTrue(User.objects.filter(email='new@example.com').exists())

    def test_register_rejects_duplicate_email_and_mismatched_passwords(self):
        payload = {
            'email': 'employee@example.com',
            'first_name': 'Dup',
            'password': 'Str0ngPass!',
            'confirm_password': 'Different1!',
        }
        response = self.client.post(reverse('accounts:register'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data['errors'])

    def test_email_is_case_insensitive_for_register_and_login(self):
        User.objects.create_user(email='Alice@Example.com', password='secret123')
        self.assertTrue(User.objects.filter(email='alice@example.com').exists())

        payload = {
            'email': 'alice@example.com',
            'first_name': 'Alice',
            'password': 'Str0ngPass!',
            'confirm_password': 'Str0ngPass!',
        }
        response = self.client.post(reverse('accounts:register'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data['errors'])

        for email in ('alice@example.com', 'ALICE@example.com', 'Alice@Example.com'):
            response = self.client.post(
                reverse('accounts:login'),
                {'email': email, 'password': 'secret123'},
                format='json',
            )
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.assertEqual(response.data['data']['user']['email'], 'alice@example.com')

    def test_register_stores_lowercase_email(self):
        payload = {
            'email': 'Mixed.Case@Example.com',
            'first_name': 'Mixed',
            'password': 'Str0ngPass!',
            'confirm_password': 'Str0ngPass!',
        }
        response = self.client.post(reverse('accounts:register'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['user']['email'], 'mixed.case@example.com')

    def test_login_returns_tokens(self):
        response = self.client.post(
            reverse('accounts:login'),
            {'email': 'employee@example.com', 'password': 'secret123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        tokens = response.data['data']['tokens']
        self.assertIn('access', tokens)
        self.assertIn('refresh', tokens)
        self.assertEqual(response.data['data']['user']['email'], 'employee@example.com')

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        response = self.client.get(reverse('accounts:me'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['id'], self.user.id)
        self.assertEqual(response.data['data']['leave_balance'], {'casual': 12, 'sick': 10, 'earned': 15})

    def test_login_with_wrong_password_returns_401(self):
        response = self.client.post(
            reverse('accounts:login'),
            {'email': 'employee@example.com', 'password': 'wrong-password'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['message'], 'Invalid email or password.')

    def test_login_with_unknown_email_or_inactive_account_returns_401(self):
        response = self.client.post(
            reverse('accounts:login'),
            {'email': 'nobody@example.com', 'password': 'secret123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        self.user.is_active = False
        self.user.save()
        response = self.client.post(
            reverse('accounts:login'),
            {'email': 'employee@example.com', 'password': 'secret123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_refresh(self):
        response = self.client.post(
            reverse('accounts:login'),
            {'email': 'employee@example.com', 'password': 'secret123'},
            format='json',
        )
        refresh = response.data['data']['tokens']['refresh']
        response = self.client.post(reverse('accounts:token-refresh'), {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_invalid_bearer_token_returns_401(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-real-token')
        response = self.client.get(reverse('accounts:me'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data['success'])


class LoginRateLimitTests(APITestCase):
    def setUp(self):
        cache.clear()
        User.objects.create_user(email='employee@example.com', password='secret123')

    def tearDown(self):
        cache.clear()

    def test_login_is_rate_limited(self):
        payload = {'email': 'employee@example.com', 'password': 'wrong-password'}
        for _ in range(10):
            response = self.client.post(reverse('accounts:login'), payload, format='json')
            self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        response = self.client.post(reverse('accounts:login'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class TeamAssignmentEndpointTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email='admin@example.com', password='x', role=Role.ADMIN)
        self.manager = User.objects.create_user(email='boss@example.com', password='x', role=Role.MANAGER)
        self.employee = User.objects.create_user(email='emp@example.com', password='x')

    def test_non_admin_cannot_assign(self):
        self.client.force_authenticate(self.manager)
        response = self.client.post(
            reverse('accounts:team-assign'),
            {'manager': self.manager.id, 'employee': self.employee.id},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(TeamAssignment.objects.exists())

    def test_admin_assigns_and_reassigns(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            reverse('accounts:team-assign'),
            {'manager': self.manager.id, 'employee': self.employee.id},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.employee.team_assignment.manager, self.manager)

        response = self.client.post(
            reverse('accounts:team-assign'),
            {'manager': self.admin.id, 'employee': self.employee.id},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(TeamAssignment.objects.get(employee=self.employee).manager, self.admin)

    def test_manager_must_hold_managing_role(self):
        other = User.objects.create_user(email='peer@example.com', password='x')
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            reverse('accounts:team-assign'),
            {'manager': other.id, 'employee': self.employee.id},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('manager', response.data['errors'])


class CreateSuperAdminCommandTests(TestCase):
    def test_creates_admin_role_superuser(self):
        out = StringIO()
        call_command('createsuperadmin', '--email', 'root@example.com', '--password', 'Str0ngPass!', stdout=out)
        user = User.objects.get(email='root@example.com')
        self.assertEqual(user.role, Role.ADMIN)
        self.assertTrue(user.is_superuser)
        self.assertIn('Successfully created admin', out.getvalue())

    def test_duplicate_email_fails(self):
        User.objects.create_user(email='root@example.com', password='x')
        with self.assertRaises(CommandError):
            call_command('createsuperadmin', '--email', 'root@example.com', '--password', 'Str0ngPass!')
