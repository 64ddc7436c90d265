"""
Collection verification workflow.

A collector submits a photo of the waste they picked up. The photo goes to the
image Oracle, whose free-text answer is parsed into a VerificationJudgment and
checked against the task: no-waste short circuit, hard quantity rejection band,
lenient type match, soft quantity tolerance and a confidence floor. Only an
accepted judgment moves the task to `verified` and pays out a reward.
"""

import json
import logging
import random
import re

from pydantic import ValidationError

from errors import (
    MalformedOracleResponse,
    MissingInput,
    NoWasteDetected,
    QuantityOutOfRange,
    RuleMismatch,
    VerificationError,
)
from models import VerificationJudgment, VerificationOutcome
from store import parse_amount

logger = logging.getLogger(__name__)

NO_WASTE_DETECTED = "no waste detected"
QUANTITY_TOLERANCE = 0.5
REJECT_ABOVE_FACTOR = 3
REJECT_BELOW_FACTOR = 0.3
MIN_CONFIDENCE = 0.7
REWARD_MIN = 10
REWARD_MAX = 59

_JSON_OBJECT = re.compile(r'\{[\s\S]*\}')


def extract_judgment(text: str) -> VerificationJudgment:
    """
    Pulls the first JSON object out of the Oracle's answer, tolerating prose or
    markdown fences around it.
    """
    if not text:
        raise MalformedOracleResponse("The verification service returned an empty response.")

    candidate = None
    first_brace = text.find('{')
    if first_brace >= 0:
        try:
            candidate, _ = json.JSONDecoder().raw_decode(text[first_brace:])
        except json.JSONDecodeError:
            # Fall back to the widest brace span, e.g. when the object itself is
            # preceded by a stray brace in the prose
            match = _JSON_OBJECT.search(text)
            if match:
                try:
                    candidate = json.loads(match.group(0))
                except json.JSONDecodeError:
                    candidate = None

    if not isinstance(candidate, dict):
        logger.error(f"No JSON object found in Oracle response: {text[:500]}")
        raise MalformedOracleResponse("Unable to process the verification result. Please try again.",
                                      {"rawResponse": text[:500]})

    try:
        return VerificationJudgment.model_validate(candidate)
    except ValidationError as e:
        logger.error(f"Oracle JSON did not match the judgment schema: {e}")
        raise MalformedOracleResponse("Unable to process the verification result. Please try again.",
                                      {"rawResponse": text[:500]}) from e


def waste_types_match(expected: str, observed: str) -> bool:
    expected, observed = expected.lower().strip(), observed.lower().strip()
    return expected in observed or observed in expected


def quantity_in_rejection_band(expected: float, actual: float) -> bool:
    return actual > expected * REJECT_ABOVE_FACTOR or actual < expected * REJECT_BELOW_FACTOR


def quantity_within_tolerance(expected: float, actual: float) -> bool:
    lower_bound = expected * (1 - QUANTITY_TOLERANCE)
    upper_bound = expected * (1 + QUANTITY_TOLERANCE)
    return lower_bound <= actual <= upper_bound


def evaluate_judgment(task, judgment: VerificationJudgment):
    """
    Applies the acceptance rules. Returns (type_matches, quantity_matches) when
    the judgment is accepted, raises a VerificationError otherwise.
    """
    if judgment.wasteType.strip().lower() == NO_WASTE_DETECTED:
        raise NoWasteDetected("No waste detected in the image. Please ensure the waste is clearly visible.")

    type_matches = waste_types_match(task.wasteType, judgment.wasteType)

    expected = parse_amount(task.amount)
    if expected is None or expected <= 0:
        raise MissingInput("Task has no valid amount to verify against.", {"amount": task.amount})
    actual = parse_amount(judgment.quantity)
    if actual is None:
        raise MalformedOracleResponse("Unable to process the verification result. Please try again.",
                                      {"quantity": judgment.quantity})

    if quantity_in_rejection_band(expected, actual):
        raise QuantityOutOfRange(
            f"Quantity mismatch: Expected around {expected:g}kg, but found {actual:g}kg",
            {"expected": expected, "actual": actual},
        )

    quantity_matches = quantity_within_tolerance(expected, actual)
    confident = judgment.confidence > MIN_CONFIDENCE

    failed_checks = []
    message = "Verification failed: "
    if not type_matches:
        failed_checks.append("type")
        message += "Waste type does not match. "
    if not quantity_matches:
        failed_checks.append("quantity")
        message += "Quantity differs significantly. "
    if not confident:
        failed_checks.append("confidence")
        message += "Low confidence in verification. "

    if failed_checks:
        raise RuleMismatch(message.strip(), failed_checks, {
            "wasteTypeMatch": type_matches,
            "quantityMatch": quantity_matches,
            "confidence": judgment.confidence,
            "expected": expected,
            "actual": actual,
        })
    return type_matches, quantity_matches


class VerificationWorkflow:
    """
    Orchestrates one verification attempt. Holds no state between attempts;
    the caller may resubmit a new photo for the same task as often as needed.
    """

    def __init__(self, ledger, oracle, rng=None):
        self.ledger = ledger
        self.oracle = oracle
        self.rng = rng or random.SystemRandom()

    def verify(self, task, image: bytes, user_id) -> VerificationOutcome:
        judgment = None
        try:
            if task is None or not image or user_id is None:
                raise MissingInput("Missing required information for verification.")

            raw_text = self.oracle.judge(image, task.wasteType, task.amount)
            judgment = extract_judgment(raw_text)
            logger.info(f"Judgment for task {task.id}: {judgment.model_dump()}")

            type_matches, quantity_matches = evaluate_judgment(task, judgment)

            earned_reward = self.rng.randint(REWARD_MIN, REWARD_MAX)
            self.ledger.commit_verification(task.id, user_id, earned_reward, judgment,
                                            type_matches, quantity_matches)
        except RuleMismatch as e:
            logger.info(f"Verification of task {getattr(task, 'id', None)} rejected: {e.failed_checks}")
            return VerificationOutcome(
                success=False,
                message=e.message,
                error_code=e.error_code,
                judgment=judgment,
                wasteTypeMatch=e.details.get("wasteTypeMatch"),
                quantityMatch=e.details.get("quantityMatch"),
                confidence=e.details.get("confidence"),
                failedChecks=e.failed_checks,
                details=e.details,
            )
        except VerificationError as e:
            logger.info(f"Verification of task {getattr(task, 'id', None)} failed [{e.error_code}]: {e.message}")
            return VerificationOutcome(
                success=False,
                message=e.message,
                error_code=e.error_code,
                judgment=judgment,
                details=e.details,
            )

        logger.info(f"Task {task.id} verified for user {user_id}, reward {earned_reward}")
        return VerificationOutcome(
            success=True,
            message=f"Verification successful! You earned {earned_reward} tokens!",
            reward=earned_reward,
            judgment=judgment,
            wasteTypeMatch=type_matches,
            quantityMatch=quantity_matches,
            confidence=judgment.confidence,
        )
