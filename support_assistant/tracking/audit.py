"""Audit event sinks."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict


class AuditSink(ABC):
    @abstractmethod
    def emit(self, action: str, details: Dict[str, Any]) -> None: ...


class LoggingAuditSink(AuditSink):
    """Write audit events to the ``support_assistant.audit`` logger."""

    def __init__(self, logger_name: str = "support_assistant.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def emit(self, action: str, details: Dict[str, Any]) -> None:
        self._logger.info("%s %s", action, json.dumps(details, default=str, ensure_ascii=False))
