"""
Tests for the session gate and the missing-configuration handling.
"""
from django.test import TestCase, override_settings

from builder.services.supabase import SESSION_ACCESS_TOKEN, SESSION_REFRESH_TOKEN
from tests.fakes import SupabaseTestCase


class TestSessionGate(SupabaseTestCase):

    def test_dashboard_redirects_anonymous_to_login(self):
        response = self.client.get('/dashboard/')
        self.assertRedirects(
            response,
            '/login/?redirectedFrom=%2Fdashboard%2F',
            fetch_redirect_response=False,
        )

    def test_nested_dashboard_path_is_kept_in_redirect(self):
        response = self.client.get('/dashboard/automations/1/')
        self.assertEqual(response.status_code, 302)
        self.assertEqual(
            response['Location'],
            '/login/?redirectedFrom=%2Fdashboard%2Fautomations%2F1%2F',
        )

    def test_signed_in_user_is_sent_away_from_login_and_signup(self):
        self.sign_in()
        for path in ('/login/', '/signup/'):
            response = self.client.get(path)
            self.assertRedirects(response, '/dashboard/', fetch_redirect_response=False)

    def test_signed_in_user_reaches_dashboard(self):
        self.sign_in(first_name="Mario")
        response = self.client.get('/dashboard/')
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Welcome back, Mario')

    def test_public_pages_do_not_require_a_session(self):
        for path in ('/', '/pricing/', '/contact/', '/privacy/', '/terms/', '/login/', '/signup/'):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 200, path)

    def test_expired_access_token_is_refreshed(self):
        self.sign_in()
        old_access = self.client.session[SESSION_ACCESS_TOKEN]
        old_refresh = self.client.session[SESSION_REFRESH_TOKEN]
        self.supabase.auth.expire(old_access)

        response = self.client.get('/dashboard/')

        self.assertEqual(response.status_code, 200)
        self.assertNotEqual(self.client.session[SESSION_ACCESS_TOKEN], old_access)
        self.assertNotEqual(self.client.session[SESSION_REFRESH_TOKEN], old_refresh)

    def test_unusable_session_is_cleared_and_redirected(self):
        self.sign_in()
        access = self.client.session[SESSION_ACCESS_TOKEN]
        refresh = self.client.session[SESSION_REFRESH_TOKEN]
        self.supabase.auth.expire(access)
        self.supabase.auth.refresh_tokens.pop(refresh)

        response = self.client.get('/dashboard/history/')

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response['Location'].startswith('/login/?redirectedFrom='))
        self.assertNotIn(SESSION_ACCESS_TOKEN, self.client.session)

    def test_backend_failure_during_gate_redirects_protected_pages(self):
        self.sign_in()

        def broken(jwt=None):
            raise ConnectionError("network down")

        self.supabase.auth.get_user = broken
        response = self.client.get('/dashboard/')
        self.assertEqual(response.status_code, 302)
        self.assertIn('/login/?redirectedFrom=', response['Location'])


@override_settings(SUPABASE_URL="", SUPABASE_ANON_KEY="")
class TestMissingConfiguration(TestCase):

    def test_auth_pages_render_configuration_error(self):
        for path in ('/login/', '/signup/', '/reset-password/'):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 503, path)
            self.assertContains(response, 'SUPABASE_URL', status_code=503)
            self.assertContains(response, 'SUPABASE_ANON_KEY', status_code=503)

    def test_dashboard_redirects_home(self):
        response = self.client.get('/dashboard/automations/')
        self.assertRedirects(response, '/', fetch_redirect_response=False)

    def test_landing_still_renders(self):
        response = self.client.get('/')
        self.assertEqual(response.status_code, 200)

    @override_settings(SUPABASE_ANON_KEY="anon-key")
    def test_only_missing_names_are_listed(self):
        response = self.client.get('/login/')
        self.assertContains(response, 'SUPABASE_URL', status_code=503)
        self.assertNotContains(response, 'SUPABASE_ANON_KEY', status_code=503)

    def test_health_endpoints_do_not_need_configuration(self):
        self.assertEqual(self.client.get('/health/').status_code, 200)
        self.assertEqual(self.client.get('/healthz/').status_code, 200)
