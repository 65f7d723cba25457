# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
from collections import defaultdict

from bls_wallet.constants import ADMIN_ROLE
from bls_wallet.exceptions import MissingRole


class RoleRegistry:
    """
    Role membership consulted by the ledger's entry points.

    A registry created with an `admin` only lets ADMIN_ROLE holders grant
    and revoke roles. Without one, role changes are unrestricted.
    """

    def __init__(self, admin: bytes | None = None):
        self._members: dict[str, set[bytes]] = defaultdict(set)
        self._administered = admin is not None
        if admin is not None:
            self._members[ADMIN_ROLE].add(bytes(admin))

    def grant_role(self, role: str, account: bytes, sender: bytes | None = None) -> None:
        self._check_admin(sender)
        self._members[role].add(bytes(account))

    def revoke_role(self, role: str, account: bytes, sender: bytes | None = None) -> None:
        self._check_admin(sender)
        self._members[role].discard(bytes(account))

    def has_role(self, role: str, account: bytes | None) -> bool:
        if account is None:
            return False
        return bytes(account) in self._members.get(role, set())

    def check_role(self, role: str, account: bytes | None) -> None:
        """
        Raises:
            MissingRole: If `account` does not hold `role`.
        """
        if not self.has_role(role, account):
            who = bytes(account).hex() if account is not None else "anonymous caller"
            raise MissingRole(f"{who} is missing role {role}")

    def _check_admin(self, sender: bytes | None) -> None:
        if self._administered:
            self.check_role(ADMIN_ROLE, sender)
