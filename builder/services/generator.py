"""
Draft generator for the create wizard.

Turns a plain-language prompt into a canned automation draft. Nothing is
sent anywhere: services are picked by keyword, the rest is boilerplate.
"""
import logging
from typing import Any, Dict, List, Tuple

logger = logging.getLogger(__name__)

# keyword -> (service, step description)
SERVICE_KEYWORDS: List[Tuple[Tuple[str, ...], str, str]] = [
    (("gmail", "email", "e-mail", "mail"), "gmail", "Filter incoming emails by the given criteria"),
    (("backup",), "storage", "Create a backup of the selected data"),
    (("crm", "contact form", "lead"), "crm", "Update the matching CRM record"),
    (("social", "twitter", "linkedin", "instagram", "post"), "social", "Schedule the post on social media"),
    (("inventory", "stock", "shop", "ecommerce"), "ecommerce", "Synchronise inventory levels"),
    (("calendar", "appointment", "meeting"), "calendar", "Look up upcoming appointments"),
    (("slack",), "slack", "Send a notification to Slack"),
]

SCHEDULE_KEYWORDS: List[Tuple[Tuple[str, ...], str]] = [
    (("every day", "daily", "each day"), "Daily"),
    (("every week", "weekly"), "Weekly"),
    (("every hour", "hourly"), "Hourly"),
]

DEFAULT_DRAFT: Dict[str, Any] = {
    "name": "Email Notification Flow",
    "description": "Sends a Slack notification when an important email arrives",
    "steps": [
        {"id": "1", "description": "Connect to the Gmail API", "service": "gmail"},
        {"id": "2", "description": "Filter incoming emails by the given criteria", "service": "gmail"},
        {"id": "3", "description": "Send a notification to Slack", "service": "slack"},
    ],
    "triggers": ["New email received"],
    "schedule": "Real time",
}

TRIGGER_TYPES = [
    ("event", "Event based"),
    ("schedule", "Schedule based"),
    ("manual", "Manual trigger"),
]

TRIGGER_EVENTS = [
    ("new_email", "New email received"),
    ("form_submission", "Form submission"),
    ("file_upload", "File upload"),
]


def norm(s: str) -> str:
    return (s or "").strip().casefold()


def _steps_for(prompt: str) -> List[Dict[str, str]]:
    text = norm(prompt)
    steps: List[Dict[str, str]] = []
    for keywords, service, description in SERVICE_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            if not steps or steps[-1]["service"] != service:
                steps.append({"description": f"Connect to {service.title()}", "service": service})
            steps.append({"description": description, "service": service})
    for index, step in enumerate(steps, start=1):
        step["id"] = str(index)
    return steps


def _schedule_for(prompt: str) -> str:
    text = norm(prompt)
    for keywords, schedule in SCHEDULE_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return schedule
    return "Real time"


def _name_for(steps: List[Dict[str, str]]) -> str:
    services = []
    for step in steps:
        if step["service"] not in services:
            services.append(step["service"])
    return " to ".join(s.title() for s in services[:2]) + " Automation"


def generate_draft(prompt: str) -> Dict[str, Any]:
    """
    Build an automation draft from a natural-language prompt.

    Raises:
        ValueError: If the prompt is blank
    """
    if not norm(prompt):
        raise ValueError("Describe what you want to automate.")

    steps = _steps_for(prompt)
    if not steps:
        logger.debug("No known service in prompt, using default draft")
        draft = {key: value for key, value in DEFAULT_DRAFT.items()}
        draft["steps"] = [dict(step) for step in DEFAULT_DRAFT["steps"]]
        draft["triggers"] = list(DEFAULT_DRAFT["triggers"])
        return draft

    schedule = _schedule_for(prompt)
    trigger = "Scheduled run" if schedule != "Real time" else "New event received"
    draft = {
        "name": _name_for(steps),
        "description": prompt.strip()[:280],
        "steps": steps,
        "triggers": [trigger],
        "schedule": schedule,
    }
    logger.debug(f"Generated draft '{draft['name']}' with {len(steps)} steps")
    return draft


def render_code(automation: Dict[str, Any]) -> str:
    """Sample code listing shown on the automation's Code tab."""
    lines = ["# Example code for this automation", "def run_automation():"]
    steps = automation.get("steps") or []
    if not steps:
        lines.append("    pass")
    for index, step in enumerate(steps, start=1):
        lines.append(f"    # {index}. {step.get('description', '')}")
        lines.append(f"    {step.get('service', 'service')}.step_{index}()")
    return "\n".join(lines)
