"""
Automation service: create, update, delete and run automations.

Each write checks the session user and re-reads the target row filtered by
owner before touching it.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from django.http import HttpRequest
from supabase import PostgrestAPIError

from ..exceptions import (
    AutomationNotFoundError,
    BackendError,
    NotAuthenticatedError,
    ValidationError,
)
from .auth import AuthUser, get_user
from .supabase import get_data_client

logger = logging.getLogger(__name__)

AUTOMATION_STATUSES = ("active", "paused", "error")
EXECUTION_STATUSES = ("success", "error", "running")

# Runs are simulated: every run is logged as this canned success
SIMULATED_RUN_DURATION = 1.5
SIMULATED_RUN_RESULT = {"message": "Execution completed successfully"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class AutomationService:
    """Service for managing automations stored in Supabase."""

    table = "automations"
    executions_table = "executions"

    def _require_user(self, request: HttpRequest, verb: str) -> AuthUser:
        user = get_user(request)
        if user is None:
            raise NotAuthenticatedError(f"You must be signed in to {verb} an automation.")
        return user

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except PostgrestAPIError as exc:
            logger.error(f"Supabase error while trying to {action}: {exc.message}")
            raise BackendError(exc.message) from exc

    def _get_owned(self, client, automation_id: str, user: AuthUser) -> Dict[str, Any]:
        """Fetch the automation only if it belongs to ``user``."""
        try:
            result = (
                client.table(self.table)
                .select("*")
                .eq("id", automation_id)
                .eq("user_id", user.id)
                .limit(1)
                .execute()
            )
        except PostgrestAPIError as exc:
            logger.warning(f"Lookup of automation {automation_id} failed: {exc.message}")
            raise AutomationNotFoundError() from exc

        if not result.data:
            logger.info(f"Automation {automation_id} not found for user {user.id}")
            raise AutomationNotFoundError()
        return result.data[0]

    def create_automation(
        self,
        request: HttpRequest,
        name: str,
        description: str,
        steps: List[Dict[str, Any]],
        triggers: List[str],
        schedule: Optional[str] = None,
    ) -> Dict[str, Any]:
        user = self._require_user(request, "create")
        client = get_data_client(request)

        query = client.table(self.table).insert({
            "name": name,
            "description": description,
            "steps": steps,
            "triggers": triggers,
            "schedule": schedule or None,
            "status": "active",
            "user_id": user.id,
        })
        result = self._execute(query, "create an automation")
        automation = result.data[0] if result.data else {}
        logger.info(f"Automation '{name}' created for user {user.id}")
        return automation

    def update_automation(
        self,
        request: HttpRequest,
        automation_id: str,
        name: str,
        description: str,
        steps: List[Dict[str, Any]],
        triggers: List[str],
        schedule: Optional[str],
        status: str,
    ) -> None:
        user = self._require_user(request, "update")
        if status not in AUTOMATION_STATUSES:
            raise ValidationError(f"Invalid status '{status}'")
        client = get_data_client(request)
        self._get_owned(client, automation_id, user)

        query = (
            client.table(self.table)
            .update({
                "name": name,
                "description": description,
                "steps": steps,
                "triggers": triggers,
                "schedule": schedule or None,
                "status": status,
                "updated_at": _now_iso(),
            })
            .eq("id", automation_id)
        )
        self._execute(query, "update an automation")
        logger.info(f"Automation {automation_id} updated by user {user.id}")

    def set_status(self, request: HttpRequest, automation_id: str, status: str) -> None:
        user = self._require_user(request, "update")
        if status not in AUTOMATION_STATUSES:
            raise ValidationError(f"Invalid status '{status}'")
        client = get_data_client(request)
        self._get_owned(client, automation_id, user)

        query = (
            client.table(self.table)
            .update({"status": status, "updated_at": _now_iso()})
            .eq("id", automation_id)
        )
        self._execute(query, "change an automation status")
        logger.info(f"Automation {automation_id} set to {status}")

    def delete_automation(self, request: HttpRequest, automation_id: str) -> None:
        user = self._require_user(request, "delete")
        client = get_data_client(request)
        self._get_owned(client, automation_id, user)

        query = client.table(self.table).delete().eq("id", automation_id)
        self._execute(query, "delete an automation")
        logger.info(f"Automation {automation_id} deleted by user {user.id}")

    def record_execution(
        self,
        request: HttpRequest,
        automation_id: str,
        status: str,
        duration: float,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Insert one ``executions`` row for an automation the user owns."""
        user = self._require_user(request, "run")
        if status not in EXECUTION_STATUSES:
            raise ValidationError(f"Invalid execution status {status}")
        client = get_data_client(request)
        self._get_owned(client, automation_id, user)

        row: Dict[str, Any] = {
            "automation_id": automation_id,
            "status": status,
            "duration": duration,
            "result": result,
            "user_id": user.id,
        }
        if error:
            row["error"] = error
        query = client.table(self.executions_table).insert(row)
        response = self._execute(query, "run an automation")
        logger.info(f"Automation {automation_id} run by user {user.id}: {status}")
        return response.data[0] if response.data else {}

    def run_automation(self, request: HttpRequest, automation_id: str) -> Dict[str, Any]:
        """Log a simulated successful run of the automation."""
        return self.record_execution(
            request,
            automation_id,
            "success",
            SIMULATED_RUN_DURATION,
            result=SIMULATED_RUN_RESULT,
        )

    def list_automations(self, request: HttpRequest) -> List[Dict[str, Any]]:
        user = self._require_user(request, "view")
        client = get_data_client(request)
        query = (
            client.table(self.table)
            .select("*")
            .eq("user_id", user.id)
            .order("created_at", desc=True)
        )
        return self._execute(query, "list automations").data or []

    def get_automation(self, request: HttpRequest, automation_id: str) -> Optional[Dict[str, Any]]:
        user = self._require_user(request, "view")
        client = get_data_client(request)
        try:
            return self._get_owned(client, automation_id, user)
        except AutomationNotFoundError:
            return None

    def list_executions(
        self,
        request: HttpRequest,
        automation_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        user = self._require_user(request, "view")
        client = get_data_client(request)
        query = client.table(self.executions_table).select("*").eq("user_id", user.id)
        if automation_id:
            query = query.eq("automation_id", automation_id)
        query = query.order("created_at", desc=True)
        return self._execute(query, "list executions").data or []


automation_service = AutomationService()
