"""
Tests for the page views and dashboard actions.
"""
import json
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.urls import reverse

from builder.services.supabase import SESSION_ACCESS_TOKEN
from tests.fakes import SupabaseTestCase, api_error

STEPS = [{"id": "1", "description": "Send a notification to Slack", "service": "slack"}]


class TestMarketingPages(TestCase):

    def test_landing_page(self):
        response = self.client.get('/')
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Automate anything')
        self.assertContains(response, 'Sara Bianchi')

    def test_pricing_page(self):
        response = self.client.get(reverse('pricing'))
        self.assertContains(response, '&euro;29')
        self.assertContains(response, 'Most popular')

    def test_contact_form_submission(self):
        with self.assertLogs('builder.views', level='INFO') as logs:
            response = self.client.post(reverse('contact'), {
                'name': 'Anna',
                'email': 'anna@example.com',
                'subject': 'sales',
                'message': 'Hello there',
            })
        self.assertContains(response, 'Message sent')
        self.assertIn('anna@example.com', logs.output[0])

    def test_contact_form_errors(self):
        response = self.client.post(reverse('contact'), {'name': 'Anna'})
        self.assertEqual(response.status_code, 200)
        self.assertNotContains(response, 'Message sent')

    def test_health_check(self):
        response = self.client.get('/health/')
        self.assertEqual(response.content, b'ok')


class TestAuthViews(SupabaseTestCase):

    def test_login_page(self):
        response = self.client.get('/login/')
        self.assertContains(response, 'Sign in')

    def test_login_success_redirects_to_dashboard(self):
        self.supabase.auth.add_user('mario@example.com', 'pa55word')
        response = self.client.post('/login/', {'email': 'mario@example.com', 'password': 'pa55word'})
        self.assertRedirects(response, '/dashboard/', fetch_redirect_response=False)
        self.assertIn(SESSION_ACCESS_TOKEN, self.client.session)

    def test_login_honours_redirected_from(self):
        self.supabase.auth.add_user('mario@example.com', 'pa55word')
        response = self.client.post('/login/?redirectedFrom=/dashboard/history/', {
            'email': 'mario@example.com',
            'password': 'pa55word',
        })
        self.assertRedirects(response, '/dashboard/history/', fetch_redirect_response=False)

    def test_login_ignores_external_redirect(self):
        self.supabase.auth.add_user('mario@example.com', 'pa55word')
        response = self.client.post('/login/', {
            'email': 'mario@example.com',
            'password': 'pa55word',
            'redirectedFrom': 'https://evil.example.com/dashboard/',
        })
        self.assertRedirects(response, '/dashboard/', fetch_redirect_response=False)

    def test_login_failure_shows_message(self):
        response = self.client.post('/login/', {'email': 'nobody@example.com', 'password': 'x'})
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Invalid login credentials')
        self.assertNotIn(SESSION_ACCESS_TOKEN, self.client.session)

    def test_signup_password_mismatch_never_reaches_backend(self):
        with patch('builder.views.auth_service.sign_up') as sign_up:
            response = self.client.post('/signup/', {
                'email': 'new@example.com',
                'password': 'secret123',
                'confirm_password': 'secret124',
            })
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Passwords do not match.')
        sign_up.assert_not_called()
        self.assertEqual(self.supabase.auth.sign_ups, [])

    def test_signup_success(self):
        response = self.client.post('/signup/', {
            'first_name': 'Anna',
            'email': 'new@example.com',
            'password': 'secret123',
            'confirm_password': 'secret123',
        }, follow=True)
        self.assertRedirects(response, '/login/')
        self.assertContains(response, 'Check your email to confirm your registration.')
        self.assertEqual(len(self.supabase.rows('profiles')), 1)

    def test_reset_password_request(self):
        response = self.client.post('/reset-password/', {'email': 'mario@example.com'}, follow=True)
        self.assertContains(response, 'We sent you a link to reset your password.')
        self.assertEqual(self.supabase.auth.reset_requests[0][0], 'mario@example.com')

    def test_reset_password_confirm_flow(self):
        user = self.supabase.auth.add_user('mario@example.com')
        self.supabase.auth.codes['reset-code'] = user

        response = self.client.get('/reset-password/confirm/?code=reset-code')
        self.assertRedirects(response, '/reset-password/confirm/', fetch_redirect_response=False)
        self.assertIn(SESSION_ACCESS_TOKEN, self.client.session)

        response = self.client.post('/reset-password/confirm/', {
            'new_password': 'brandnew1',
            'confirm_new_password': 'brandnew1',
        })
        self.assertRedirects(response, '/dashboard/', fetch_redirect_response=False)
        self.assertEqual(self.supabase.auth.password_updates, [{'password': 'brandnew1'}])

    def test_auth_callback_exchanges_code(self):
        user = self.supabase.auth.add_user('mario@example.com')
        self.supabase.auth.codes['confirm'] = user
        response = self.client.get('/auth/callback?code=confirm')
        self.assertRedirects(response, '/dashboard/', fetch_redirect_response=False)
        self.assertIn(SESSION_ACCESS_TOKEN, self.client.session)

    def test_auth_callback_with_bad_code_still_redirects(self):
        response = self.client.get('/auth/callback?code=bogus')
        self.assertRedirects(response, '/dashboard/', fetch_redirect_response=False)
        self.assertNotIn(SESSION_ACCESS_TOKEN, self.client.session)

    def test_logout(self):
        self.sign_in()
        response = self.client.post('/logout/')
        self.assertRedirects(response, '/', fetch_redirect_response=False)
        self.assertNotIn(SESSION_ACCESS_TOKEN, self.client.session)
        self.assertTrue(self.supabase.auth.signed_out)

    def test_logout_requires_post(self):
        self.assertEqual(self.client.get('/logout/').status_code, 405)

    def test_logout_clears_session_when_backend_unreachable(self):
        self.sign_in()

        def unreachable(options=None):
            raise ConnectionError('network down')

        self.supabase.auth.sign_out = unreachable
        response = self.client.post('/logout/')

        self.assertRedirects(response, '/', fetch_redirect_response=False)
        self.assertNotIn(SESSION_ACCESS_TOKEN, self.client.session)

    def test_login_backend_unreachable_shows_generic_error(self):
        def unreachable(credentials):
            raise ConnectionError('network down')

        self.supabase.auth.sign_in_with_password = unreachable
        response = self.client.post('/login/', {'email': 'mario@example.com', 'password': 'pa55word'})

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'An error occurred during login. Please try again later.')
        self.assertNotIn(SESSION_ACCESS_TOKEN, self.client.session)

    def test_signup_backend_unreachable_shows_generic_error(self):
        def unreachable(credentials):
            raise ConnectionError('network down')

        self.supabase.auth.sign_up = unreachable
        response = self.client.post('/signup/', {
            'email': 'new@example.com',
            'password': 'secret123',
            'confirm_password': 'secret123',
        })

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'An error occurred during registration. Please try again later.')
        self.assertEqual(self.supabase.rows('profiles'), [])

    def test_reset_password_backend_unreachable_shows_generic_error(self):
        def unreachable(email, options=None):
            raise ConnectionError('network down')

        self.supabase.auth.reset_password_for_email = unreachable
        response = self.client.post('/reset-password/', {'email': 'mario@example.com'})

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'An error occurred while resetting the password. Please try again later.')


class TestDashboardPages(SupabaseTestCase):

    def setUp(self):
        super().setUp()
        self.user = self.sign_in(first_name='Mario', last_name='Rossi')

    def _store(self, name='Slack alerts', status='active', user=None):
        row = self.supabase.stamp({
            'name': name,
            'description': 'Stored automation',
            'steps': STEPS,
            'triggers': ['New email received'],
            'schedule': None,
            'status': status,
            'user_id': (user or self.user).id,
        })
        self.supabase.tables.setdefault('automations', []).append(row)
        return row

    def test_overview_shows_four_samples(self):
        response = self.client.get('/dashboard/')
        self.assertEqual(len(response.context['automations']), 4)
        self.assertContains(response, 'Recent activity')

    def test_automations_list_combines_stored_and_samples(self):
        self._store()
        response = self.client.get(reverse('automations'))
        names = [a['name'] for a in response.context['automations']]
        self.assertEqual(names[0], 'Slack alerts')
        self.assertEqual(len(names), 7)

    def test_automations_list_filters(self):
        response = self.client.get(reverse('automations'), {'status': 'paused', 'q': 'social'})
        names = [a['name'] for a in response.context['automations']]
        self.assertEqual(names, ['Social Media Post'])

    def test_automations_list_sort_by_name(self):
        response = self.client.get(reverse('automations'), {'sort': 'name'})
        names = [a['name'] for a in response.context['automations']]
        self.assertEqual(names, sorted(names, key=str.casefold))

    def test_sample_detail(self):
        response = self.client.get(reverse('automation_detail', args=['1']))
        self.assertContains(response, 'Email Notification')
        self.assertTrue(response.context['automation']['is_sample'])

    def test_stored_detail_with_code_tab(self):
        row = self._store()
        response = self.client.get(reverse('automation_detail', args=[row['id']]), {'tab': 'code'})
        self.assertContains(response, 'def run_automation():')
        self.assertFalse(response.context['automation']['is_sample'])

    def test_unknown_detail_is_404(self):
        response = self.client.get(reverse('automation_detail', args=['does-not-exist']))
        self.assertEqual(response.status_code, 404)

    def test_foreign_automation_is_not_shown(self):
        other = self.supabase.auth.add_user('other@example.com')
        row = self._store(user=other)
        response = self.client.get(reverse('automation_detail', args=[row['id']]))
        self.assertEqual(response.status_code, 404)

    def test_history_page_filters_by_status(self):
        response = self.client.get(reverse('history'), {'status': 'error'})
        statuses = {e['status'] for e in response.context['executions']}
        self.assertEqual(statuses, {'error'})
        self.assertContains(response, 'Connection error to the CRM server')

    def test_history_includes_stored_runs(self):
        row = self._store()
        self.client.post(reverse('automation_run', args=[row['id']]))
        response = self.client.get(reverse('history'), {'q': 'Slack alerts'})
        self.assertEqual(len(response.context['executions']), 1)

    def test_profile_update(self):
        response = self.client.post(reverse('profile'), {
            'action': 'profile',
            'first_name': 'Mario',
            'last_name': 'Bianchi',
            'company': 'Acme',
            'job_title': 'CTO',
        }, follow=True)
        self.assertContains(response, 'Profile updated successfully')
        self.assertEqual(self.supabase.rows('profiles')[0]['last_name'], 'Bianchi')

    def test_profile_password_mismatch(self):
        response = self.client.post(reverse('profile'), {
            'action': 'password',
            'new_password': 'secret123',
            'confirm_new_password': 'secret999',
        })
        self.assertContains(response, 'Passwords do not match.')
        self.assertEqual(self.supabase.auth.password_updates, [])

    def test_settings_preferences(self):
        response = self.client.post(reverse('settings'), {
            'action': 'preferences',
            'theme': 'dark',
            'language': 'it',
            'timezone': 'cet',
        })
        self.assertRedirects(response, '/dashboard/settings/?tab=preferences', fetch_redirect_response=False)
        preferences = self.supabase.rows('profiles')[0]['preferences']
        self.assertEqual(preferences['theme'], 'dark')
        self.assertNotIn('marketing_emails', preferences)

    def test_settings_tabs_render(self):
        for tab in ('account', 'notifications', 'integrations', 'api', 'preferences'):
            response = self.client.get(reverse('settings'), {'tab': tab})
            self.assertEqual(response.status_code, 200, tab)


class TestAutomationActions(SupabaseTestCase):

    def setUp(self):
        super().setUp()
        self.user = self.sign_in()

    def _create(self):
        response = self.client.post(reverse('automation_new'), {
            'name': 'Slack alerts',
            'description': 'Notify the team',
            'steps': json.dumps(STEPS),
            'triggers': json.dumps(['New email received']),
            'schedule': 'Daily',
        })
        return response, self.supabase.rows('automations')[-1]

    def test_create_redirects_to_detail(self):
        response, row = self._create()
        self.assertRedirects(response, f"/dashboard/automations/{row['id']}/", fetch_redirect_response=False)
        self.assertEqual(row['status'], 'active')
        self.assertEqual(row['steps'], STEPS)

    def test_actions_require_post(self):
        self.assertEqual(self.client.get(reverse('automation_new')).status_code, 405)

    def test_run_action(self):
        _, row = self._create()
        response = self.client.post(reverse('automation_run', args=[row['id']]), follow=True)
        self.assertContains(response, 'Automation run successfully')
        self.assertEqual(len(self.supabase.rows('executions')), 1)

    def test_status_action(self):
        _, row = self._create()
        self.client.post(reverse('automation_status', args=[row['id']]), {'status': 'paused'})
        self.assertEqual(self.supabase.rows('automations')[0]['status'], 'paused')

    def test_edit_action(self):
        _, row = self._create()
        self.client.post(reverse('automation_edit', args=[row['id']]), {
            'name': 'Renamed',
            'description': '',
            'steps': json.dumps(STEPS),
            'triggers': '[]',
            'status': 'error',
        })
        stored = self.supabase.rows('automations')[0]
        self.assertEqual(stored['name'], 'Renamed')
        self.assertEqual(stored['status'], 'error')

    def test_delete_action(self):
        _, row = self._create()
        response = self.client.post(reverse('automation_delete', args=[row['id']]))
        self.assertRedirects(response, reverse('automations'), fetch_redirect_response=False)
        self.assertEqual(self.supabase.rows('automations'), [])

    def test_foreign_automation_action_reports_error(self):
        other = self.supabase.auth.add_user('other@example.com')
        row = self.supabase.stamp({'name': 'Theirs', 'status': 'active', 'user_id': other.id})
        self.supabase.tables['automations'] = [row]

        response = self.client.post(
            reverse('automation_delete', args=[row['id']]),
            HTTP_ACCEPT='application/json',
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Automation not found or unauthorized'})
        self.assertEqual(len(self.supabase.rows('automations')), 1)

    def test_run_returns_json_when_asked(self):
        _, row = self._create()
        response = self.client.post(
            reverse('automation_run', args=[row['id']]),
            HTTP_ACCEPT='application/json',
        )
        payload = response.json()
        self.assertEqual(payload['success'], 'Automation run successfully')
        self.assertEqual(payload['execution']['status'], 'success')

    def test_backend_error_is_reported(self):
        self.supabase.errors[('automations', 'insert')] = api_error('permission denied for table automations')
        response = self.client.post(reverse('automation_new'), {'name': 'x'}, follow=True)
        self.assertContains(response, 'permission denied for table automations')


@override_settings(SUPABASE_URL='', SUPABASE_ANON_KEY='')
class TestConfigurationErrorPage(TestCase):

    def test_reset_confirm_and_callback_render_error(self):
        for path in ('/reset-password/confirm/', '/auth/callback?code=x'):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 503, path)
            self.assertContains(response, 'Configuration error', status_code=503)
