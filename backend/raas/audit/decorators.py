"""
Audit Decorator

Wraps async business operations so that every call is recorded in the audit
trail with its outcome, duration, arguments and result.

Usage:
    class ContractService:
        @audited("Contract", AuditAction.APPROVE, module="CONTRACT",
                 business_process="CONTRACT_APPROVAL", entity_id_arg="contract_id")
        async def approve(self, db: AsyncSession, contract_id: int) -> ContractDTO:
            ...
"""
import inspect
import logging
import time
from functools import wraps
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from raas.audit import audit_logger
from raas.audit.audit_logger import AuditEventBuilder, AuditRecorder
from raas.models.audit_log import AuditAction, AuditStatus

logger = logging.getLogger(__name__)

# Arguments never recorded as operation parameters
_SKIPPED_ARGUMENTS = {"self", "cls"}


def _extract_entity_id(result: Any, arguments: dict, entity_id_arg: Optional[str]) -> Optional[int]:
    """Take the entity id from the result (id attribute or key), else from the named argument."""
    candidate = None
    if isinstance(result, dict):
        candidate = result.get("id")
    elif result is not None:
        candidate = getattr(result, "id", None)

    if isinstance(candidate, int) and not isinstance(candidate, bool):
        return candidate

    if entity_id_arg:
        value = arguments.get(entity_id_arg)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _call_parameters(arguments: dict) -> dict:
    return {
        name: value
        for name, value in arguments.items()
        if name not in _SKIPPED_ARGUMENTS and not isinstance(value, AsyncSession)
    }


def generate_description(
    entity_name: str,
    action: AuditAction,
    entity_id: Optional[int],
    status: AuditStatus,
) -> str:
    """Build a human-readable description of an audited operation."""
    name = entity_name.lower()

    if action == AuditAction.CREATE:
        description = f"Created new {name}"
    elif action == AuditAction.UPDATE:
        description = f"Updated {name}"
    elif action == AuditAction.DELETE:
        description = f"Deleted {name}"
    elif action == AuditAction.READ:
        description = f"Retrieved {name}"
    else:
        description = f"{action.value.lower()} operation on {name}"

    if entity_id is not None:
        description += f" with ID {entity_id}"

    if status == AuditStatus.FAILED:
        description += " - Operation failed"

    return description


def audited(
    entity_name: str,
    action: AuditAction,
    module: str = "",
    business_process: str = "",
    description: str = "",
    entity_id_arg: Optional[str] = None,
    recorder: Optional[AuditRecorder] = None,
) -> Callable:
    """
    Record one audit event around each call of an async function.

    On success the event carries status SUCCESS and the result as new_values;
    on exception it carries status FAILED and the error message, and the
    exception is re-raised unchanged. The audit write itself never raises.

    Args:
        entity_name: Logical entity type (e.g., "Contract")
        action: The audited action
        module: Functional module label
        business_process: Business process label
        description: Fixed description; generated from action/entity when empty
        entity_id_arg: Argument holding the entity id, used when the result
            carries no id (e.g., deletes and failed calls)
        recorder: Recorder to use; defaults to the application recorder
    """
    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @wraps(func)
        async def wrapper(*args, **kwargs):
            start = time.monotonic()
            target = recorder or audit_logger.audit_recorder

            try:
                bound = signature.bind(*args, **kwargs)
                bound.apply_defaults()
                arguments = dict(bound.arguments)
            except TypeError:
                arguments = {}

            event = (
                AuditEventBuilder.create()
                .from_context()
                .entity_name(entity_name)
                .action(action)
                .method_name(func.__qualname__)
                .module(module or None)
                .business_process(business_process or None)
                .parameters(_call_parameters(arguments))
            )

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                duration = int((time.monotonic() - start) * 1000)
                entity_id = _extract_entity_id(None, arguments, entity_id_arg)
                event.entity_id(entity_id).status(AuditStatus.FAILED).error_message(str(e)).duration(duration)
                event.description(
                    f"{description} - Operation failed" if description
                    else generate_description(entity_name, action, entity_id, AuditStatus.FAILED)
                )
                await target.log_audit_event(event)
                raise

            duration = int((time.monotonic() - start) * 1000)
            entity_id = _extract_entity_id(result, arguments, entity_id_arg)
            event.entity_id(entity_id).new_values(result).status(AuditStatus.SUCCESS).duration(duration)
            event.description(
                description or generate_description(entity_name, action, entity_id, AuditStatus.SUCCESS)
            )
            await target.log_audit_event(event)

            return result

        return wrapper

    return decorator
