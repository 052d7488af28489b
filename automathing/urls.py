from django.urls import path, include
from builder import views as builder_views


urlpatterns = [
    # Health check
    path("health/", builder_views.health, name="health"),
    # Landing / Home
    path("", builder_views.landing, name="home"),
    # Auth routes
    path("signup/", builder_views.signup, name="signup"),
    path("login/", builder_views.login_view, name="login"),
    path("logout/", builder_views.logout_view, name="logout"),
    path("reset-password/", builder_views.reset_password, name="reset_password"),
    path("reset-password/confirm/", builder_views.reset_password_confirm, name="reset_password_confirm"),
    path("auth/callback", builder_views.auth_callback, name="auth_callback"),
    # Dashboard
    path("dashboard/", builder_views.dashboard, name="dashboard"),
    # Marketing pages and dashboard sections
    path("", include("builder.urls")),
]
