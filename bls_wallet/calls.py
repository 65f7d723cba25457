# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
import logging
from typing import Any, Callable

from bls_wallet.exceptions import CallFailed, UnknownTarget

logger = logging.getLogger(__name__)

Handler = Callable[[int, int, bytes], Any]


class CallRouter:
    """
    Dispatch executed operations to the handler registered for their target.

    A handler is called as `handler(value, gas_limit, payload)`. Anything it
    raises comes back as `CallFailed`, which the ledger records as a failed
    operation.
    """

    def __init__(self):
        self._handlers: dict[bytes, Handler] = {}

    def register(self, target: bytes, handler: Handler) -> None:
        self._handlers[bytes(target)] = handler

    def unregister(self, target: bytes) -> None:
        self._handlers.pop(bytes(target), None)

    def __contains__(self, target: bytes) -> bool:
        return bytes(target) in self._handlers

    def call(self, target: bytes, value: int, gas_limit: int, payload: bytes) -> Any:
        handler = self._handlers.get(bytes(target))
        if handler is None:
            raise UnknownTarget(f"no handler registered for {bytes(target).hex()}")
        logger.debug("calling %s with value=%d gas_limit=%d", bytes(target).hex(), value, gas_limit)
        try:
            return handler(value, gas_limit, payload)
        except Exception as e:
            raise CallFailed(f"call to {bytes(target).hex()} failed: {e!r}") from e
