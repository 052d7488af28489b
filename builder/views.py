from functools import wraps
from typing import Any, Dict, List, Optional
import logging

from django.contrib import messages
from django.http import Http404, HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import redirect, render
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_POST

from . import sample_data
from .exceptions import AuthError, BuilderError, ConfigurationError
from .forms import (
    AutomationForm,
    ContactForm,
    LoginForm,
    NewPasswordForm,
    PreferencesForm,
    ProfileForm,
    PromptForm,
    ResetPasswordForm,
    SignupForm,
    StatusForm,
)
from .middleware import is_protected_path, login_redirect, render_config_error
from .services import auth as auth_service
from .services.automations import automation_service
from .services.generator import generate_draft, render_code
from .services.profiles import profile_service
from .services.supabase import missing_config

logger = logging.getLogger(__name__)

DRAFT_SESSION_KEY = "automation_draft"


def requires_supabase(view):
    """Render the configuration-error page instead of the view when Supabase is not configured."""
    @wraps(view)
    def wrapper(request: HttpRequest, *args, **kwargs) -> HttpResponse:
        missing = missing_config()
        if missing:
            return render_config_error(request, missing)
        return view(request, *args, **kwargs)
    return wrapper


def session_required(view):
    """Like login_required, but for Supabase sessions."""
    @wraps(view)
    def wrapper(request: HttpRequest, *args, **kwargs) -> HttpResponse:
        if auth_service.get_user(request) is None:
            return login_redirect(request.path)
        return view(request, *args, **kwargs)
    return requires_supabase(wrapper)


def _wants_json(request: HttpRequest) -> bool:
    return "application/json" in request.headers.get("Accept", "")


def _action_result(
    request: HttpRequest,
    redirect_to: str,
    success: Optional[str] = None,
    error: Optional[str] = None,
    **extra: Any,
) -> HttpResponse:
    """Report a dashboard action the way the caller asked for it."""
    if _wants_json(request):
        if error:
            return JsonResponse({"error": error}, status=400)
        payload = {"success": success}
        payload.update(extra)
        return JsonResponse(payload)
    if error:
        messages.error(request, error)
    else:
        messages.success(request, success)
    return redirect(redirect_to)


# -------------------- Marketing pages --------------------

def health(request: HttpRequest) -> HttpResponse:
    """Simple health check endpoint."""
    return HttpResponse("ok", status=200)


def landing(request: HttpRequest) -> HttpResponse:
    """Landing page view."""
    return render(request, "builder/landing.html", {
        "features": sample_data.FEATURES,
        "testimonials": sample_data.TESTIMONIALS,
    })


def pricing(request: HttpRequest) -> HttpResponse:
    return render(request, "builder/pricing.html", {
        "plans": sample_data.PRICING_PLANS,
        "faq": sample_data.FAQ,
    })


def contact(request: HttpRequest) -> HttpResponse:
    """Contact form. Submissions are only logged."""
    if request.method == "POST":
        form = ContactForm(request.POST)
        if form.is_valid():
            logger.info(
                f"Contact request from {form.cleaned_data['email']} "
                f"about {form.cleaned_data['subject']}"
            )
            return render(request, "builder/contact.html", {"sent": True})
    else:
        form = ContactForm()
    return render(request, "builder/contact.html", {"form": form, "sent": False})


def privacy(request: HttpRequest) -> HttpResponse:
    return render(request, "builder/privacy.html")


def terms(request: HttpRequest) -> HttpResponse:
    return render(request, "builder/terms.html")


# -------------------- Authentication --------------------

def _post_login_target(request: HttpRequest) -> str:
    target = request.POST.get("redirectedFrom") or request.GET.get("redirectedFrom") or ""
    if (
        target
        and is_protected_path(target)
        and url_has_allowed_host_and_scheme(target, allowed_hosts={request.get_host()})
    ):
        return target
    return "/dashboard/"


@requires_supabase
def login_view(request: HttpRequest) -> HttpResponse:
    if request.method == "POST":
        form = LoginForm(request.POST)
        if form.is_valid():
            try:
                auth_service.sign_in(
                    request,
                    form.cleaned_data["email"],
                    form.cleaned_data["password"],
                )
                return redirect(_post_login_target(request))
            except AuthError as e:
                form.add_error(None, str(e))
    else:
        form = LoginForm()
    return render(request, "registration/login.html", {
        "form": form,
        "redirected_from": request.GET.get("redirectedFrom", ""),
    })


@requires_supabase
def signup(request: HttpRequest) -> HttpResponse:
    """User signup view."""
    if request.method == "POST":
        form = SignupForm(request.POST)
        if form.is_valid():
            try:
                message = auth_service.sign_up(
                    request,
                    form.cleaned_data["email"],
                    form.cleaned_data["password"],
                    first_name=form.cleaned_data.get("first_name", ""),
                    last_name=form.cleaned_data.get("last_name", ""),
                )
                messages.success(request, message)
                return redirect("login")
            except AuthError as e:
                form.add_error(None, str(e))
    else:
        form = SignupForm()
    return render(request, "registration/signup.html", {"form": form})


@require_POST
def logout_view(request: HttpRequest) -> HttpResponse:
    auth_service.sign_out(request)
    return redirect("home")


@requires_supabase
def reset_password(request: HttpRequest) -> HttpResponse:
    if request.method == "POST":
        form = ResetPasswordForm(request.POST)
        if form.is_valid():
            try:
                message = auth_service.reset_password(request, form.cleaned_data["email"])
                messages.success(request, message)
                return redirect("reset_password")
            except AuthError as e:
                form.add_error(None, str(e))
    else:
        form = ResetPasswordForm()
    return render(request, "registration/reset_password.html", {"form": form})


@requires_supabase
def reset_password_confirm(request: HttpRequest) -> HttpResponse:
    """Set a new password after following the e-mailed reset link."""
    code = request.GET.get("code")
    if code:
        try:
            auth_service.exchange_code(request, code)
        except AuthError as e:
            messages.error(request, f"The reset link is invalid or has expired: {e}")
        return redirect("reset_password_confirm")

    if request.method == "POST":
        form = NewPasswordForm(request.POST)
        if form.is_valid():
            try:
                auth_service.update_password(request, form.cleaned_data["new_password"])
                messages.success(request, "Password updated successfully.")
                return redirect("dashboard")
            except AuthError as e:
                form.add_error(None, str(e))
    else:
        form = NewPasswordForm()
    return render(request, "registration/reset_password_confirm.html", {"form": form})


@requires_supabase
def auth_callback(request: HttpRequest) -> HttpResponse:
    """Exchange the code from a confirmation link for a session."""
    code = request.GET.get("code")
    if code:
        try:
            auth_service.exchange_code(request, code)
        except AuthError as e:
            logger.warning(f"Auth callback could not exchange code: {e}")
    return redirect("dashboard")


# -------------------- Dashboard helpers --------------------

def _format_timestamp(value: Any) -> str:
    moment = sample_data.parse_timestamp(value)
    if moment is None:
        return "Never"
    return moment.strftime("%d/%m/%Y %H:%M")


def _stored_for_display(row: Dict[str, Any], last_run: Any = None) -> Dict[str, Any]:
    steps = row.get("steps") or []
    tags: List[str] = []
    for step in steps:
        service = step.get("service") if isinstance(step, dict) else None
        if service and service not in tags:
            tags.append(service)
    return {
        "id": str(row.get("id")),
        "name": row.get("name", ""),
        "description": row.get("description", ""),
        "status": row.get("status", "active"),
        "last_run": _format_timestamp(last_run) if last_run else "Never",
        "created": _format_timestamp(row.get("created_at")),
        "tags": tags,
        "is_sample": False,
    }


def _stored_automations(request: HttpRequest) -> List[Dict[str, Any]]:
    """The user's automations as display dicts; empty when the backend fails."""
    try:
        rows = automation_service.list_automations(request)
        executions = automation_service.list_executions(request)
    except ConfigurationError:
        raise
    except BuilderError as e:
        logger.error(f"Could not load stored automations: {e}")
        messages.warning(request, f"Could not load your saved automations: {e}")
        return []

    last_runs: Dict[str, Any] = {}
    for execution in executions:
        # executions arrive newest first
        last_runs.setdefault(str(execution.get("automation_id")), execution.get("created_at"))
    return [_stored_for_display(row, last_runs.get(str(row.get("id")))) for row in rows]


def _execution_for_display(execution: Dict[str, Any], name: str) -> Dict[str, Any]:
    return {
        "id": str(execution.get("id")),
        "automation_id": str(execution.get("automation_id")),
        "automation_name": name,
        "status": execution.get("status", "success"),
        "start_time": execution.get("created_at"),
        "duration": execution.get("duration") or 0,
        "error": execution.get("error"),
    }


def _analytics(executions: List[Dict[str, Any]]) -> Dict[str, Any]:
    total = len(executions)
    if not total:
        return {"total_runs": 0, "success_rate": 0, "average_duration": "-", "last_week_runs": []}
    successes = sum(1 for e in executions if e.get("status") == "success")
    average = sum(float(e.get("duration") or 0) for e in executions) / total
    return {
        "total_runs": total,
        "success_rate": round(successes * 100 / total),
        "average_duration": f"{average:.1f}s",
        "last_week_runs": [],
    }


# -------------------- Dashboard pages --------------------

@session_required
def dashboard(request: HttpRequest) -> HttpResponse:
    """Dashboard view."""
    return render(request, "builder/dashboard.html", {
        "automations": sample_data.SAMPLE_AUTOMATIONS[:sample_data.OVERVIEW_AUTOMATION_COUNT],
        "recent_activity": sample_data.RECENT_ACTIVITY,
    })


@session_required
def automations_list(request: HttpRequest) -> HttpResponse:
    status = request.GET.get("status", "all")
    query = request.GET.get("q", "")
    sort = request.GET.get("sort", "recent")
    if sort not in sample_data.AUTOMATION_SORTS:
        sort = "recent"

    automations = _stored_automations(request) + [
        dict(a, is_sample=True) for a in sample_data.SAMPLE_AUTOMATIONS
    ]
    return render(request, "builder/automations.html", {
        "automations": sample_data.filter_automations(automations, status, query, sort),
        "status": status,
        "query": query,
        "sort": sort,
        "sorts": sample_data.AUTOMATION_SORTS,
    })


@session_required
def automation_detail(request: HttpRequest, automation_id: str) -> HttpResponse:
    row = automation_service.get_automation(request, automation_id)
    if row is not None:
        try:
            executions = automation_service.list_executions(request, automation_id=automation_id)
        except BuilderError as e:
            logger.error(f"Could not load executions for {automation_id}: {e}")
            executions = []
        automation = _stored_for_display(row, executions[0].get("created_at") if executions else None)
        automation.update({
            "steps": row.get("steps") or [],
            "triggers": row.get("triggers") or [],
            "schedule": row.get("schedule") or "",
            "analytics": _analytics(executions),
            "executions": [_execution_for_display(e, automation["name"]) for e in executions],
        })
        edit_form = AutomationForm(initial={
            "name": automation["name"],
            "description": automation["description"],
            "steps": automation["steps"],
            "triggers": automation["triggers"],
            "schedule": automation["schedule"],
            "status": automation["status"],
        })
    else:
        automation = sample_data.get_sample_automation(automation_id)
        if automation is None:
            raise Http404("Automation not found")
        edit_form = None

    return render(request, "builder/automation_detail.html", {
        "automation": automation,
        "edit_form": edit_form,
        "code": render_code(automation),
        "tab": request.GET.get("tab", "overview"),
    })


@session_required
def history(request: HttpRequest) -> HttpResponse:
    status = request.GET.get("status", "all")
    query = request.GET.get("q", "")
    sort = request.GET.get("sort", "recent")
    if sort not in sample_data.EXECUTION_SORTS:
        sort = "recent"

    executions = [dict(e) for e in sample_data.SAMPLE_EXECUTIONS]
    try:
        names = {str(a["id"]): a.get("name", "") for a in automation_service.list_automations(request)}
        stored = automation_service.list_executions(request)
        executions = [
            _execution_for_display(e, names.get(str(e.get("automation_id")), "Automation"))
            for e in stored
        ] + executions
    except ConfigurationError:
        raise
    except BuilderError as e:
        logger.error(f"Could not load stored executions: {e}")

    return render(request, "builder/history.html", {
        "executions": sample_data.filter_executions(executions, status, query, sort),
        "status": status,
        "query": query,
        "sort": sort,
        "sorts": sample_data.EXECUTION_SORTS,
    })


# -------------------- Automation actions --------------------

@session_required
@require_POST
def automation_create(request: HttpRequest) -> HttpResponse:
    form = AutomationForm(request.POST)
    if not form.is_valid():
        return _action_result(request, "automations", error=_form_error(form))
    try:
        automation = automation_service.create_automation(
            request,
            form.cleaned_data["name"],
            form.cleaned_data["description"],
            form.cleaned_data["steps"],
            form.cleaned_data["triggers"],
            form.cleaned_data["schedule"],
        )
    except ConfigurationError:
        raise
    except BuilderError as e:
        return _action_result(request, "automations", error=str(e))

    target = f"/dashboard/automations/{automation['id']}/" if automation.get("id") else "automations"
    return _action_result(
        request, target, success="Automation created successfully", automation=automation
    )


@session_required
@require_POST
def automation_update(request: HttpRequest, automation_id: str) -> HttpResponse:
    detail_url = f"/dashboard/automations/{automation_id}/"
    form = AutomationForm(request.POST)
    if not form.is_valid():
        return _action_result(request, detail_url, error=_form_error(form))
    try:
        automation_service.update_automation(
            request,
            automation_id,
            form.cleaned_data["name"],
            form.cleaned_data["description"],
            form.cleaned_data["steps"],
            form.cleaned_data["triggers"],
            form.cleaned_data["schedule"],
            form.cleaned_data["status"],
        )
    except ConfigurationError:
        raise
    except BuilderError as e:
        return _action_result(request, detail_url, error=str(e))
    return _action_result(request, detail_url, success="Automation updated successfully")


@session_required
@require_POST
def automation_delete(request: HttpRequest, automation_id: str) -> HttpResponse:
    try:
        automation_service.delete_automation(request, automation_id)
    except ConfigurationError:
        raise
    except BuilderError as e:
        return _action_result(request, f"/dashboard/automations/{automation_id}/", error=str(e))
    return _action_result(request, "automations", success="Automation deleted successfully")


@session_required
@require_POST
def automation_run(request: HttpRequest, automation_id: str) -> HttpResponse:
    detail_url = f"/dashboard/automations/{automation_id}/"
    try:
        execution = automation_service.run_automation(request, automation_id)
    except ConfigurationError:
        raise
    except BuilderError as e:
        return _action_result(request, detail_url, error=str(e))
    return _action_result(request, detail_url, success="Automation run successfully", execution=execution)


@session_required
@require_POST
def automation_status(request: HttpRequest, automation_id: str) -> HttpResponse:
    detail_url = f"/dashboard/automations/{automation_id}/"
    form = StatusForm(request.POST)
    if not form.is_valid():
        return _action_result(request, detail_url, error=_form_error(form))
    status = form.cleaned_data["status"]
    try:
        automation_service.set_status(request, automation_id, status)
    except ConfigurationError:
        raise
    except BuilderError as e:
        return _action_result(request, detail_url, error=str(e))
    return _action_result(request, detail_url, success=f"Automation is now {status}")


def _form_error(form) -> str:
    for field, errors in form.errors.items():
        for error in errors:
            return error if field == "__all__" else f"{field}: {error}"
    return "Invalid data"


# -------------------- Create wizard --------------------

@session_required
def create_automation(request: HttpRequest) -> HttpResponse:
    """Create wizard with error handling."""
    try:
        return _create_automation_impl(request)
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(f"Error in create wizard: {e}", exc_info=True)
        messages.error(request, f"An error occurred while creating the automation: {str(e)}")
        return redirect("create_automation")


def _create_automation_impl(request: HttpRequest) -> HttpResponse:
    """Three steps: prompt, customise, success. The draft lives in the session."""
    if request.method == "GET" and request.GET.get("reset") == "1":
        request.session.pop(DRAFT_SESSION_KEY, None)
        return redirect("create_automation")

    draft = request.session.get(DRAFT_SESSION_KEY)
    context: Dict[str, Any] = {"step": "prompt", "prompt_form": PromptForm()}

    if request.method == "POST":
        action = request.POST.get("action", "generate")

        if action == "generate":
            prompt_form = PromptForm(request.POST)
            if prompt_form.is_valid():
                try:
                    draft = generate_draft(prompt_form.cleaned_data["prompt"])
                except ValueError as e:
                    prompt_form.add_error("prompt", str(e))
                else:
                    request.session[DRAFT_SESSION_KEY] = draft
                    return redirect("create_automation")
            context["prompt_form"] = prompt_form
            return render(request, "builder/create.html", context)

        if not draft:
            messages.error(request, "Your draft has expired. Please describe the automation again.")
            return redirect("create_automation")

        if action == "add_step":
            description = request.POST.get("step_description", "").strip()
            service = request.POST.get("step_service", "").strip() or "custom"
            if description:
                draft["steps"].append({
                    "id": str(len(draft["steps"]) + 1),
                    "description": description,
                    "service": service,
                })
                request.session[DRAFT_SESSION_KEY] = draft
            return redirect("create_automation")

        if action == "remove_step":
            try:
                index = int(request.POST.get("index", ""))
                if index < 0:
                    raise IndexError(index)
                del draft["steps"][index]
            except (ValueError, IndexError):
                messages.error(request, "That step does not exist.")
            else:
                for position, step in enumerate(draft["steps"], start=1):
                    step["id"] = str(position)
                request.session[DRAFT_SESSION_KEY] = draft
            return redirect("create_automation")

        if action == "save":
            form = AutomationForm(request.POST)
            if form.is_valid():
                steps = form.cleaned_data["steps"] or draft["steps"]
                triggers = form.cleaned_data["triggers"] or draft["triggers"]
                try:
                    automation = automation_service.create_automation(
                        request,
                        form.cleaned_data["name"],
                        form.cleaned_data["description"],
                        steps,
                        triggers,
                        form.cleaned_data["schedule"] or draft.get("schedule"),
                    )
                except ConfigurationError:
                    raise
                except BuilderError as e:
                    messages.error(request, str(e))
                else:
                    request.session.pop(DRAFT_SESSION_KEY, None)
                    return render(request, "builder/create.html", {
                        "step": "success",
                        "automation": automation,
                    })
            context.update({"step": "customize", "draft": draft, "form": form})
            return render(request, "builder/create.html", context)

    if draft:
        context.update({
            "step": "customize",
            "draft": draft,
            "form": AutomationForm(initial={
                "name": draft["name"],
                "description": draft["description"],
                "steps": draft["steps"],
                "triggers": draft["triggers"],
                "schedule": draft["schedule"],
            }),
        })
    return render(request, "builder/create.html", context)


# -------------------- Profile and settings --------------------

def _profile_initial(request: HttpRequest) -> Dict[str, Any]:
    user = auth_service.get_user(request)
    initial = {"first_name": user.first_name, "last_name": user.last_name}
    try:
        profile = profile_service.get_profile(request) or {}
    except BuilderError as e:
        logger.error(f"Could not load profile: {e}")
        profile = {}
    preferences = profile.get("preferences") or {}
    initial.update({
        "first_name": profile.get("first_name") or initial["first_name"],
        "last_name": profile.get("last_name") or initial["last_name"],
        "company": profile.get("company") or "",
        "job_title": preferences.get("job_title", ""),
    })
    return initial


def _save_profile(request: HttpRequest, form: ProfileForm) -> bool:
    try:
        profile_service.update_profile(
            request,
            form.cleaned_data["first_name"],
            form.cleaned_data["last_name"],
            company=form.cleaned_data["company"],
            job_title=form.cleaned_data["job_title"],
        )
    except ConfigurationError:
        raise
    except BuilderError as e:
        messages.error(request, f"Failed to update profile: {e}")
        return False
    messages.success(request, "Profile updated successfully")
    return True


def _save_password(request: HttpRequest, form: NewPasswordForm) -> bool:
    try:
        auth_service.update_password(request, form.cleaned_data["new_password"])
    except AuthError as e:
        form.add_error(None, str(e))
        return False
    messages.success(request, "Password updated successfully")
    return True


@session_required
def profile(request: HttpRequest) -> HttpResponse:
    profile_form = ProfileForm(initial=_profile_initial(request))
    password_form = NewPasswordForm()

    if request.method == "POST":
        action = request.POST.get("action")
        if action == "profile":
            profile_form = ProfileForm(request.POST)
            if profile_form.is_valid() and _save_profile(request, profile_form):
                return redirect("profile")
        elif action == "password":
            password_form = NewPasswordForm(request.POST)
            if password_form.is_valid() and _save_password(request, password_form):
                return redirect("profile")

    return render(request, "builder/profile.html", {
        "profile_form": profile_form,
        "password_form": password_form,
        "tab": "security" if request.POST.get("action") == "password" else "info",
    })


@session_required
def settings_view(request: HttpRequest) -> HttpResponse:
    account_form = ProfileForm(initial=_profile_initial(request))
    password_form = NewPasswordForm()
    try:
        preferences = profile_service.get_preferences(request)
    except BuilderError as e:
        logger.error(f"Could not load preferences: {e}")
        preferences = {}
    preferences_form = PreferencesForm(initial=preferences)
    tab = request.GET.get("tab", "account")

    if request.method == "POST":
        action = request.POST.get("action")
        if action == "account":
            account_form = ProfileForm(request.POST)
            if account_form.is_valid() and _save_profile(request, account_form):
                return redirect("settings")
        elif action == "password":
            password_form = NewPasswordForm(request.POST)
            if password_form.is_valid() and _save_password(request, password_form):
                return redirect("settings")
        elif action in ("preferences", "notifications"):
            preferences_form = PreferencesForm(request.POST)
            if preferences_form.is_valid():
                values = preferences_form.cleaned_data
                if action == "preferences":
                    values = {k: v for k, v in values.items() if k in ("theme", "language", "timezone") and v}
                else:
                    values = {k: v for k, v in values.items() if isinstance(v, bool)}
                try:
                    profile_service.update_preferences(request, **values)
                except ConfigurationError:
                    raise
                except BuilderError as e:
                    messages.error(request, f"Failed to save preferences: {e}")
                else:
                    messages.success(request, "Preferences saved")
                    return redirect(f"/dashboard/settings/?tab={action}")
            tab = action

    return render(request, "builder/settings.html", {
        "account_form": account_form,
        "password_form": password_form,
        "preferences_form": preferences_form,
        "integrations": sample_data.INTEGRATIONS,
        "api_key": sample_data.SAMPLE_API_KEY,
        "tab": tab,
    })
