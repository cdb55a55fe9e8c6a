"""
Output guardrails applied to every agent reply before it reaches the guest.

1. FalseConfirmationGuardrail: blocks claims that a reservation is confirmed
   unless the data store returned a reservation id in the same turn
2. LeakedPayloadGuardrail: catches structured reservation blocks or
   markers that slipped into user-facing text

The GuardrailPipeline composes them and can rewrite an offending reply
into a safe one.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from concierge.conversation.structured_output import clean_response

logger = logging.getLogger(__name__)

SAFE_UNCONFIRMED_TEXT = (
    "Your reservation is not confirmed yet. "
    "Shall I go ahead and finalise it with the details we have?"
)


@dataclass
class GuardrailResult:
    """Outcome of a single guardrail check."""
    passed: bool
    violation_type: Optional[str] = None
    message: Optional[str] = None
    severity: str = "warning"  # "warning" | "block"


class FalseConfirmationGuardrail:
    """Detects text asserting a booking exists when none was created."""

    CONFIRMATION_PATTERNS = [
        re.compile(r"\b(reservation|booking|table)\s+(is|has been|was|is now)\s+(now\s+)?(confirmed|booked|reserved|made|complete)"),
        re.compile(r"\byou('re| are)\s+(all\s+)?(booked|confirmed)\b"),
        re.compile(r"\byou('re| are)\s+all\s+set\s+for\b"),
        re.compile(r"\bi('ve| have)\s+(successfully\s+)?(confirmed|booked|reserved|made)\s+(your|the|a)\b"),
        re.compile(r"\bsuccessfully\s+(booked|reserved|confirmed|created)\b"),
        re.compile(r"\b(reservation|booking|confirmation)\s+(number|id|reference)(\s+is|:)\s*#?\w*\d"),
        re.compile(r"\bbooking confirmed\b|\breservation confirmed\b"),
    ]

    def check_response(self, text: str, reservation_created: bool) -> GuardrailResult:
        if reservation_created:
            return GuardrailResult(passed=True)
        lower = text.lower()
        for pattern in self.CONFIRMATION_PATTERNS:
            match = pattern.search(lower)
            if match:
                logger.warning("False confirmation blocked: '%s'", match.group(0))
                return GuardrailResult(
                    passed=False,
                    violation_type="false_confirmation",
                    message=f"Response claims a confirmed booking: '{match.group(0)}'.",
                    severity="block",
                )
        return GuardrailResult(passed=True)


class LeakedPayloadGuardrail:
    """Flags structured reservation data left in user-facing text."""

    def check_response(self, text: str) -> GuardrailResult:
        if "reservation_data" in text.lower():
            return GuardrailResult(
                passed=False,
                violation_type="leaked_payload",
                message="Response contains a raw reservation block.",
                severity="warning",
            )
        return GuardrailResult(passed=True)


class GuardrailPipeline:
    """Composes output guardrails and rewrites replies that violate them."""

    def __init__(self) -> None:
        self.confirmation = FalseConfirmationGuardrail()
        self.payload = LeakedPayloadGuardrail()

    def check_agent_response(self, text: str, reservation_created: bool = False) -> list[GuardrailResult]:
        """Post-LLM: check agent response for false confirmations and leaked payloads."""
        results = [
            self.confirmation.check_response(text, reservation_created),
            self.payload.check_response(text),
        ]
        return [r for r in results if not r.passed]

    def enforce(self, text: str, reservation_created: bool = False) -> str:
        """Return ``text`` made safe to show the guest."""
        violations = self.check_agent_response(text, reservation_created)
        if not violations:
            return text
        if any(v.violation_type == "leaked_payload" for v in violations):
            text = clean_response(text)
        if any(v.severity == "block" for v in violations):
            return SAFE_UNCONFIRMED_TEXT
        return text
