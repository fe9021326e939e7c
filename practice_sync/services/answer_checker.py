"""Grading of raw client answers against stored question details."""
import json
import logging
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

# Wrapper keys clients have used for a selected option, in lookup order
ANSWER_KEYS = ("option", "selectedOption", "selectedMatches")


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "MultipleChoice"
    TRUE_FALSE = "TrueFalse"
    DIAGRAM_BASED = "DiagramBased"
    ASSERTION_REASON = "AssertionReason"
    MULTIPLE_CORRECT_STATEMENTS = "MultipleCorrectStatements"
    MATCHING = "Matching"
    SEQUENCE_ORDERING = "SequenceOrdering"
    FILL_IN_THE_BLANKS = "FillInTheBlanks"


SINGLE_ANSWER_TYPES = {
    QuestionType.MULTIPLE_CHOICE,
    QuestionType.TRUE_FALSE,
    QuestionType.DIAGRAM_BASED,
    QuestionType.ASSERTION_REASON,
}

# Known types without a grading rule yet; always graded incorrect
RESERVED_TYPES = {
    QuestionType.MATCHING,
    QuestionType.SEQUENCE_ORDERING,
    QuestionType.FILL_IN_THE_BLANKS,
}

Answer = str | list[str] | None


def _scalar_to_str(value: Any) -> str | None:
    """Stringify a str or a number; None for anything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    return None


def _list_to_strs(values: list) -> list[str] | None:
    result = [_scalar_to_str(v) for v in values]
    if any(item is None for item in result):
        return None
    return result


def normalize_user_answer(raw: Any) -> Answer:
    """Bring a client answer payload into one canonical shape.

    Returns a string for single-answer payloads, a list of strings for
    multi-select payloads and None when the payload is missing or has an
    unrecognized shape (graded as incorrect by the caller).
    """
    if raw is None:
        return None

    scalar = _scalar_to_str(raw)
    if scalar is not None:
        return scalar

    if isinstance(raw, list):
        if not raw:
            return []
        items = _list_to_strs(raw)
        if items is not None:
            return items

    elif isinstance(raw, dict):
        value = None
        for key in ANSWER_KEYS:
            value = raw.get(key)
            if value:
                break

        if value:
            scalar = _scalar_to_str(value)
            if scalar is not None:
                return scalar
            if isinstance(value, list):
                items = _list_to_strs(value)
                if items is not None:
                    return items

    logger.warning("Could not normalize user answer: %r", raw)
    return None


def parse_question_details(details: Any) -> dict:
    """Parse question details (dict or JSON text) and normalize its options.

    Raises:
        ValueError: details are neither a JSON object nor a dict
    """
    if isinstance(details, (str, bytes)):
        try:
            details = json.loads(details)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in question details: {e}") from e

    if not isinstance(details, dict):
        raise ValueError(f"Question details must be an object, got {type(details).__name__}")

    options = details.get("options")
    if options is None:
        return details

    if not isinstance(options, list):
        raise ValueError("Question details 'options' must be a list")

    parsed = dict(details)
    parsed["options"] = [
        {
            "option_number": str(opt["option_number"]),
            "option_text": str(opt.get("option_text") or ""),
            "is_correct": bool(opt.get("is_correct")),
        }
        for opt in options
    ]
    return parsed


def _correct_option_numbers(details: dict) -> list[str]:
    return [opt["option_number"] for opt in details.get("options", []) if opt["is_correct"]]


def evaluate_answer(question_type: str, details: Any, raw_answer: Any) -> bool:
    """Check if the user's answer is correct for the given question.

    Never raises: unsupported types, malformed details and unrecognized
    answers are all graded as incorrect.
    """
    try:
        answer = normalize_user_answer(raw_answer)
        if answer is None:
            return False

        try:
            q_type = QuestionType(question_type)
        except ValueError:
            logger.warning("Unsupported question type for evaluation: %s", question_type)
            return False

        if q_type in RESERVED_TYPES:
            logger.debug("Evaluation for %s is not implemented, grading as incorrect", q_type.value)
            return False

        parsed = parse_question_details(details)
        if not isinstance(parsed.get("options"), list):
            logger.warning("No options found for question type %s", q_type.value)
            return False

        if q_type == QuestionType.MULTIPLE_CORRECT_STATEMENTS:
            if not isinstance(answer, list):
                return False
            correct = _correct_option_numbers(parsed)
            # Exact match: no credit for a subset, a superset or repeated options
            return len(answer) == len(correct) and set(answer) == set(correct)

        if q_type not in SINGLE_ANSWER_TYPES or not isinstance(answer, str):
            return False
        matches = [
            opt for opt in parsed["options"]
            if opt["is_correct"] and opt["option_number"] == answer
        ]
        return len(matches) == 1

    except Exception:
        logger.exception("Error evaluating answer for question type %s", question_type)
        return False


def get_correct_answer(question_type: str, details: Any) -> Answer:
    """Return the correct option number(s) of a question, for review screens."""
    try:
        q_type = QuestionType(question_type)
        if q_type in RESERVED_TYPES:
            return None

        correct = _correct_option_numbers(parse_question_details(details))
        if q_type == QuestionType.MULTIPLE_CORRECT_STATEMENTS:
            return correct
        return correct[0] if correct else None

    except (ValueError, KeyError, TypeError) as e:
        logger.warning("Could not extract correct answer for %s: %s", question_type, e)
        return None
