"""Authorization guards over already-loaded data.

The caller's identity and role are resolved upstream (token claims backed by
the user directory) and trusted here. These guards perform no I/O.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Protocol

from milestone_escrow.domain.enums import UserRole
from milestone_escrow.domain.exceptions import ForbiddenError


@dataclass(frozen=True)
class Caller:
    """An authenticated caller as resolved by the identity collaborator."""

    user_id: uuid.UUID
    role: UserRole


class JobParties(Protocol):
    """Anything carrying a job's client and (optional) worker ids."""

    client_id: uuid.UUID
    worker_id: uuid.UUID | None


def assert_is_job_client(caller_id: uuid.UUID, job: JobParties) -> None:
    if caller_id != job.client_id:
        raise ForbiddenError("Only the job client can perform this action")


def assert_is_job_worker(caller_id: uuid.UUID, job: JobParties) -> None:
    if job.worker_id is None or caller_id != job.worker_id:
        raise ForbiddenError("Only the assigned worker can perform this action")


def assert_is_job_party(caller_id: uuid.UUID, job: JobParties) -> None:
    """Either side of the job (client or assigned worker)."""
    if caller_id != job.client_id and caller_id != job.worker_id:
        raise ForbiddenError("Only the job client or assigned worker can perform this action")


def assert_is_platform_admin(caller: Caller) -> None:
    if caller.role != UserRole.ADMIN:
        raise ForbiddenError("Admin access required")


def assert_can_view_job(caller: Caller, job: JobParties) -> None:
    """Job parties and platform admins may read a job's escrow state."""
    if caller.role == UserRole.ADMIN:
        return
    assert_is_job_party(caller.user_id, job)
