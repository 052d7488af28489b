from __future__ import annotations

from django.urls import reverse

from builder.views import DRAFT_SESSION_KEY
from tests.fakes import SupabaseTestCase


class CreateWizardIntegrationTests(SupabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.sign_in()
        self.url = reverse("create_automation")

    def test_redirects_to_login_when_signed_out(self) -> None:
        self.client.post(reverse("logout"))
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 302)
        self.assertIn("/login/?redirectedFrom=", response.headers.get("Location", ""))

    def test_prompt_step_is_shown_first(self) -> None:
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["step"], "prompt")
        self.assertContains(response, "Generate automation")

    def test_blank_prompt_stays_on_prompt_step(self) -> None:
        response = self.client.post(self.url, {"action": "generate", "prompt": "   "})
        self.assertEqual(response.context["step"], "prompt")
        self.assertNotIn(DRAFT_SESSION_KEY, self.client.session)

    def test_generate_customise_and_save(self) -> None:
        response = self.client.post(self.url, {
            "action": "generate",
            "prompt": "Every day send me a Slack message with the emails from customers",
        })
        self.assertRedirects(response, self.url, fetch_redirect_response=False)
        draft = self.client.session[DRAFT_SESSION_KEY]
        self.assertEqual(draft["schedule"], "Daily")

        response = self.client.get(self.url)
        self.assertEqual(response.context["step"], "customize")
        self.assertContains(response, "Save automation")

        self.client.post(self.url, {
            "action": "add_step",
            "step_description": "Archive the email",
            "step_service": "gmail",
        })
        draft = self.client.session[DRAFT_SESSION_KEY]
        self.assertEqual(draft["steps"][-1]["description"], "Archive the email")

        self.client.post(self.url, {"action": "remove_step", "index": "0"})
        draft = self.client.session[DRAFT_SESSION_KEY]
        self.assertEqual([s["id"] for s in draft["steps"]], [str(i) for i in range(1, len(draft["steps"]) + 1)])

        response = self.client.post(self.url, {
            "action": "save",
            "name": "Customer digest",
            "description": "Daily Slack digest",
            "schedule": "",
        })
        self.assertEqual(response.context["step"], "success")
        self.assertNotIn(DRAFT_SESSION_KEY, self.client.session)

        rows = self.supabase.rows("automations")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["name"], "Customer digest")
        self.assertEqual(rows[0]["status"], "active")
        self.assertEqual(rows[0]["steps"], draft["steps"])
        self.assertEqual(rows[0]["schedule"], "Daily")
        self.assertEqual(rows[0]["user_id"], self.user.id)

    def test_save_without_draft_goes_back_to_prompt(self) -> None:
        response = self.client.post(self.url, {"action": "save", "name": "Orphan"})
        self.assertRedirects(response, self.url, fetch_redirect_response=False)
        self.assertEqual(self.supabase.rows("automations"), [])

    def test_reset_discards_draft(self) -> None:
        self.client.post(self.url, {"action": "generate", "prompt": "backup my files"})
        self.assertIn(DRAFT_SESSION_KEY, self.client.session)
        self.client.get(self.url, {"reset": "1"})
        self.assertNotIn(DRAFT_SESSION_KEY, self.client.session)

    def test_removing_unknown_step_reports_error(self) -> None:
        self.client.post(self.url, {"action": "generate", "prompt": "backup my files"})
        response = self.client.post(self.url, {"action": "remove_step", "index": "42"}, follow=True)
        self.assertContains(response, "That step does not exist.")

    def test_negative_step_index_is_rejected(self) -> None:
        self.client.post(self.url, {"action": "generate", "prompt": "Send a Slack message for each new email"})
        steps_before = list(self.client.session[DRAFT_SESSION_KEY]["steps"])

        response = self.client.post(self.url, {"action": "remove_step", "index": "-1"}, follow=True)

        self.assertContains(response, "That step does not exist.")
        self.assertEqual(self.client.session[DRAFT_SESSION_KEY]["steps"], steps_before)
