from django.urls import path
from . import views


urlpatterns = [
    # Auth and landing live at root; marketing pages and dashboard sections here
    path("healthz/", views.health, name="healthcheck"),
    path("pricing/", views.pricing, name="pricing"),
    path("contact/", views.contact, name="contact"),
    path("privacy/", views.privacy, name="privacy"),
    path("terms/", views.terms, name="terms"),
    path("dashboard/automations/", views.automations_list, name="automations"),
    path("dashboard/automations/new/", views.automation_create, name="automation_new"),
    path("dashboard/automations/<str:automation_id>/", views.automation_detail, name="automation_detail"),
    path("dashboard/automations/<str:automation_id>/edit/", views.automation_update, name="automation_edit"),
    path("dashboard/automations/<str:automation_id>/delete/", views.automation_delete, name="automation_delete"),
    path("dashboard/automations/<str:automation_id>/run/", views.automation_run, name="automation_run"),
    path("dashboard/automations/<str:automation_id>/status/", views.automation_status, name="automation_status"),
    path("dashboard/create/", views.create_automation, name="create_automation"),
    path("dashboard/history/", views.history, name="history"),
    path("dashboard/profile/", views.profile, name="profile"),
    path("dashboard/settings/", views.settings_view, name="settings"),
]
