"""
Turns loosely-typed question records from the AI service into strict questions.

Every field has a total default, so a half-formed record still yields a usable
question instead of failing the whole batch.
"""
import math
import re
import time
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Dict, List, Optional

import structlog

from mediquiz.questions import (
    Blank,
    DifferentialDiagnosisQuestion,
    FillInBlankQuestion,
    FlowchartQuestion,
    FlowchartStep,
    LabInterpretationQuestion,
    LabValue,
    MarkingCriterion,
    Match,
    MatchingQuestion,
    MultipleChoiceQuestion,
    OsceQuestion,
    Question,
    ShortAnswerQuestion,
    TrueFalseQuestion,
    WordScrambleQuestion,
)

logger = structlog.get_logger()

DEFAULT_TYPE = "multiple_choice"
DEFAULT_DIFFICULTY = "medium"
DIFFICULTIES = ("easy", "medium", "hard")

_CAMEL_HUMP_RE = re.compile(r"(?<!^)(?=[A-Z])")
_INT_RE = re.compile(r"^[+-]?\d+$")
_TYPE_SEPARATORS_RE = re.compile(r"[\s\-]+")


# -------------------- FIELD COERCION --------------------

def _get(record: Mapping, name: str) -> Any:
    """Read a camelCase field, falling back to its snake_case spelling"""
    if name in record:
        return record[name]
    return record.get(_CAMEL_HUMP_RE.sub("_", name).lower())


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if _is_scalar(value):
        try:
            return str(value)
        except ValueError:
            # int too long for str()
            return ""
    return ""


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        try:
            return int(value.strip())
        except ValueError:
            # beyond the interpreter's int string conversion limit
            return None
    return None


def _index(value: Any) -> int:
    parsed = _as_int(value)
    return 0 if parsed is None else parsed


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            number = float(value.strip())
        else:
            return 0
    except (ValueError, OverflowError):
        return 0
    return number if math.isfinite(number) else 0


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def _items(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def _strings(value: Any) -> List[str]:
    return [_text(item) for item in _items(value) if _is_scalar(item)]


def _indices(value: Any) -> List[int]:
    parsed = (_as_int(item) for item in _items(value))
    return [item for item in parsed if item is not None]


def _records(value: Any) -> List[Mapping]:
    return [item for item in _items(value) if isinstance(item, Mapping)]


def _letters(value: Any) -> List[str]:
    # "SEPSIS" is as good as ["S", "E", ...]
    if isinstance(value, str):
        return [ch for ch in value if not ch.isspace()]
    return _strings(value)


def _question_type(value: Any) -> str:
    return _TYPE_SEPARATORS_RE.sub("_", _text(value).strip().lower())


def _difficulty(value: Any) -> str:
    level = _text(value).strip().lower()
    return level if level in DIFFICULTIES else DEFAULT_DIFFICULTY


# -------------------- NESTED ITEMS --------------------

def _lab_values(value: Any) -> List[LabValue]:
    return [
        LabValue(test=_text(_get(item, "test")), value=_text(_get(item, "value")), reference=_text(_get(item, "reference")))
        for item in _records(value)
    ]


def _steps(value: Any) -> List[FlowchartStep]:
    steps = []
    for n, item in enumerate(_records(value), start=1):
        answer = _get(item, "correctAnswer")
        steps.append(FlowchartStep(
            id=_text(_get(item, "id")) or f"step_{n}",
            content=_text(_get(item, "content")),
            is_blank=_flag(_get(item, "isBlank")),
            correct_answer=_text(answer) if _is_scalar(answer) else None,
        ))
    return steps


def _blanks(value: Any) -> List[Blank]:
    blanks = []
    for n, item in enumerate(_records(value)):
        position = _as_int(_get(item, "position"))
        alternatives = _get(item, "alternatives")
        blanks.append(Blank(
            position=n if position is None else position,
            correct_answer=_text(_get(item, "correctAnswer")),
            alternatives=_strings(alternatives) if alternatives is not None else None,
        ))
    return blanks


def _matches(value: Any) -> List[Match]:
    matches = []
    for item in _records(value):
        left, right = _as_int(_get(item, "left")), _as_int(_get(item, "right"))
        if left is not None and right is not None:
            matches.append(Match(left=left, right=right))
    return matches


def _marking_scheme(value: Any) -> List[MarkingCriterion]:
    return [
        MarkingCriterion(
            criteria=_text(_get(item, "criteria")),
            points=_number(_get(item, "points")),
            keywords=_strings(_get(item, "keywords")),
        )
        for item in _records(value)
    ]


# -------------------- VARIANT BUILDERS --------------------

def _multiple_choice(record: Mapping, base: dict) -> Question:
    return MultipleChoiceQuestion(**base, options=_strings(_get(record, "options")), correct_answer=_index(_get(record, "correctAnswer")))


def _differential_diagnosis(record: Mapping, base: dict) -> Question:
    return DifferentialDiagnosisQuestion(
        **base,
        options=_strings(_get(record, "options")),
        correct_answers=_indices(_get(record, "correctAnswers")),
    )


def _matching(record: Mapping, base: dict) -> Question:
    return MatchingQuestion(
        **base,
        left_items=_strings(_get(record, "leftItems")),
        right_items=_strings(_get(record, "rightItems")),
        correct_matches=_matches(_get(record, "correctMatches")),
    )


def _lab_interpretation(record: Mapping, base: dict) -> Question:
    return LabInterpretationQuestion(
        **base,
        lab_values=_lab_values(_get(record, "labValues")),
        options=_strings(_get(record, "options")),
        correct_answer=_index(_get(record, "correctAnswer")),
    )


def _flowchart(record: Mapping, base: dict) -> Question:
    return FlowchartQuestion(**base, steps=_steps(_get(record, "steps")))


def _word_scramble(record: Mapping, base: dict) -> Question:
    return WordScrambleQuestion(
        **base,
        hint=_text(_get(record, "hint")),
        letters=_letters(_get(record, "letters")),
        correct_answer=_text(_get(record, "correctAnswer")),
    )


def _fill_in_blank(record: Mapping, base: dict) -> Question:
    return FillInBlankQuestion(**base, blanks=_blanks(_get(record, "blanks")))


def _true_false(record: Mapping, base: dict) -> Question:
    return TrueFalseQuestion(**base, correct_answer=_flag(_get(record, "correctAnswer")))


def _short_answer(record: Mapping, base: dict) -> Question:
    return ShortAnswerQuestion(
        **base,
        correct_answers=_strings(_get(record, "correctAnswers")),
        keywords=_strings(_get(record, "keywords")),
    )


def _osce(record: Mapping, base: dict) -> Question:
    return OsceQuestion(
        **base,
        scenario=_text(_get(record, "scenario")),
        tasks=_strings(_get(record, "tasks")),
        marking_scheme=_marking_scheme(_get(record, "markingScheme")),
    )


BUILDERS: Dict[str, Callable[[Mapping, dict], Question]] = {
    "multiple_choice": _multiple_choice,
    "differential_diagnosis": _differential_diagnosis,
    "matching": _matching,
    "lab_interpretation": _lab_interpretation,
    "flowchart": _flowchart,
    "word_scramble": _word_scramble,
    "fill_in_blank": _fill_in_blank,
    "true_false": _true_false,
    "short_answer": _short_answer,
    "osce": _osce,
}


# -------------------- PUBLIC API --------------------

def normalize_question(raw: Any, position: int = 0, stamp: Optional[int] = None) -> Question:
    """Build one strict question from a raw record.

    ``position`` is the record's absolute index in the quiz and only matters
    when an id has to be synthesized.
    """
    record = raw if isinstance(raw, Mapping) else {}
    if stamp is None:
        stamp = int(time.time() * 1000)

    kind = _question_type(_get(record, "type"))
    builder = BUILDERS.get(kind)
    if builder is None:
        if kind:
            logger.warning("question_type_coerced", position=position, received=kind, used=DEFAULT_TYPE)
        builder = BUILDERS[DEFAULT_TYPE]

    base = {
        "id": _text(_get(record, "id")) or f"q_{stamp}_{position}",
        "question": _text(_get(record, "question")),
        "explanation": _text(_get(record, "explanation")),
        "difficulty": _difficulty(_get(record, "difficulty")),
    }
    return builder(record, base)


def normalize_questions(raw_questions: Sequence, batch_offset: int = 0) -> List[Question]:
    """Normalize a batch of raw records, preserving length and order.

    ``batch_offset`` is the index of the first record within the whole quiz so
    that synthesized ids stay unique across generation batches.
    """
    if isinstance(raw_questions, (str, bytes, Mapping)) or not isinstance(raw_questions, Sequence):
        raise TypeError(f"raw_questions must be a sequence of records, got {type(raw_questions).__name__}")

    stamp = int(time.time() * 1000)
    questions = [
        normalize_question(raw, position=batch_offset + index, stamp=stamp)
        for index, raw in enumerate(raw_questions)
    ]
    logger.debug("questions_normalized", count=len(questions), batch_offset=batch_offset)
    return questions
