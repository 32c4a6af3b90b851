"""
StudySense Alert Engine
Turns health state + session duration into a de-duplicated set of alerts.

Alerts are keyed by a stable id, so re-evaluating never duplicates them.
Dismissal is latched: a dismissed alert stays hidden while its condition
remains true and can only come back after the condition clears and fires
again.  The 20-20-20 break reminder fires once per 20-minute boundary.
"""

import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set

from .config import EngineConfig
from .health import HealthState, Level
from .utils import safe_mean

logger = logging.getLogger("studysense.engine.alerts")


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True)
class Alert:
    id: str
    severity: Severity
    message: str
    action_label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data


# ── Rule definitions ─────────────────────────────────────

EYE_STRAIN = "eye-strain"
FATIGUE = "fatigue"
POSTURE = "posture"
LONG_SESSION = "long-session"
BREAK_REMINDER = "break-reminder"

ALERT_CATALOG: Dict[str, Alert] = {
    EYE_STRAIN: Alert(
        EYE_STRAIN, Severity.WARNING,
        "High eye strain detected. Take a break and look away from screen.",
        "Take Break",
    ),
    FATIGUE: Alert(
        FATIGUE, Severity.DANGER,
        "Fatigue detected. Consider taking a longer break or ending session.",
        "End Session",
    ),
    POSTURE: Alert(
        POSTURE, Severity.WARNING,
        "Poor posture detected. Please adjust your sitting position.",
        "View Tips",
    ),
    LONG_SESSION: Alert(
        LONG_SESSION, Severity.INFO,
        "You've been studying for over 90 minutes. Consider taking a break.",
        "Take Break",
    ),
    BREAK_REMINDER: Alert(
        BREAK_REMINDER, Severity.INFO,
        "Time for a 20-second break! Look at something 20 feet away.",
        "Take Break",
    ),
}


class AlertEngine:
    """Stateful, per-session rule evaluator"""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._active: Dict[str, Alert] = {}
        self._dismissed: Set[str] = set()
        self.last_reminder_boundary = 0

    # ──────────────────────────────────────────────────────
    # Evaluation
    # ──────────────────────────────────────────────────────

    def conditions(
        self,
        health: HealthState,
        recent_posture: Sequence[float],
        duration_seconds: float,
    ) -> Dict[str, bool]:
        window = list(recent_posture)[-self.config.POSTURE_ALERT_WINDOW:]
        return {
            EYE_STRAIN: health.eye_strain_level is Level.HIGH,
            FATIGUE: health.fatigue_level is Level.HIGH,
            POSTURE: bool(window) and safe_mean(window) < self.config.POSTURE_ALERT_THRESHOLD,
            LONG_SESSION: duration_seconds > self.config.LONG_SESSION_SECONDS,
        }

    def evaluate(
        self,
        health: HealthState,
        recent_posture: Sequence[float],
        duration_seconds: float,
    ) -> List[Alert]:
        """
        Recompute the rule-driven alerts.  Returns only the alerts that were
        newly raised by this call.
        """
        raised: List[Alert] = []
        for alert_id, active in self.conditions(health, recent_posture, duration_seconds).items():
            if not active:
                # Condition cleared: drop the alert and release the dismissal latch
                self._active.pop(alert_id, None)
                self._dismissed.discard(alert_id)
                continue
            if alert_id in self._dismissed or alert_id in self._active:
                continue
            alert = ALERT_CATALOG[alert_id]
            self._active[alert_id] = alert
            raised.append(alert)
            logger.info("Alert raised: %s [%s]", alert_id, alert.severity.value)
        return raised

    def check_break_reminder(self, duration_seconds: float) -> Optional[Alert]:
        """Fire the 20-20-20 reminder once per crossed boundary."""
        period = self.config.BREAK_REMINDER_MINUTES * 60
        boundary = int(max(duration_seconds, 0) // period)
        if boundary <= 0 or boundary <= self.last_reminder_boundary:
            return None
        self.last_reminder_boundary = boundary
        alert = ALERT_CATALOG[BREAK_REMINDER]
        self._active[BREAK_REMINDER] = alert
        logger.info("Break reminder at %d minutes", boundary * self.config.BREAK_REMINDER_MINUTES)
        return alert

    # ──────────────────────────────────────────────────────
    # Dismissal / queries
    # ──────────────────────────────────────────────────────

    def dismiss(self, alert_id: str) -> bool:
        """Remove an active alert; it stays latched until its condition clears."""
        removed = self._active.pop(alert_id, None)
        if removed is None:
            return False
        if alert_id != BREAK_REMINDER:
            self._dismissed.add(alert_id)
        logger.debug("Alert dismissed: %s", alert_id)
        return True

    @property
    def active(self) -> List[Alert]:
        return list(self._active.values())
