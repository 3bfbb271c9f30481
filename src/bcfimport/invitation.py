"""Provisioning of unknown mail addresses before an import.

The gate is the only step allowed to mutate the directory ahead of topic
synchronization. Checks run in a fixed order: actor privilege, then license
seats, then one invite + membership per unknown mail. Any failure is fatal and
propagates unchanged; accounts created before the failure are kept.
"""

from __future__ import annotations

from .directory import LicenseService, UserDirectory
from .errors import SeatLimitExceeded, Unauthorized
from .logging import StructuredLogger, get_logger
from .models import DirectoryUser, ImportOptions
from .reconcile import ParticipantReconciler


class InvitationGate:
    def __init__(
        self,
        directory: UserDirectory,
        licensing: LicenseService,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.directory = directory
        self.licensing = licensing
        self.logger = logger or get_logger()
        self.provisioned: list[DirectoryUser] = []

    def seats_allow_new_users(self) -> bool:
        return not self.licensing.user_limit_reached() or not self.licensing.fail_fast()

    def check(self, actor_id: str) -> None:
        actor = self.directory.get(actor_id)
        if actor is None or not actor.admin:
            raise Unauthorized("For inviting new users you need admin privileges.")
        if not self.seats_allow_new_users():
            raise SeatLimitExceeded("User limit of the license reached.")

    def run(
        self,
        reconciler: ParticipantReconciler,
        *,
        project_id: str,
        actor_id: str,
        options: ImportOptions,
    ) -> list[DirectoryUser]:
        """Invite every unknown mail of ``reconciler`` when ``options`` ask for it.

        Returns the provisioned users (empty when the gate is not requested).
        """
        self.provisioned = []
        if not options.invite_requested:
            return []
        self.check(actor_id)
        role_ids = list(options.unknown_mails_invite_role_ids)
        for mail in sorted(reconciler.unknown_mails()):
            user = self.directory.invite(mail)
            user = self.directory.add_membership(user.id, project_id, role_ids)
            self.provisioned.append(user)
            self.logger.log_operation("user_invited", user_id=user.id, project_id=project_id)
        return list(self.provisioned)


__all__ = ["InvitationGate"]
