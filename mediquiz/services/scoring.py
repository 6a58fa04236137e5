"""
Per-type answer checking and quiz scoring.

Answers arrive as an id -> answer mapping. A missing key means the question was
not answered, which scores exactly like a wrong answer. Depending on the type an
answer is a str, a number, a bool, a list of numbers, a list of str or a list
of {"left", "right"} pairs; anything of the wrong shape is simply incorrect.
"""
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from mediquiz.questions import (
    DifferentialDiagnosisQuestion,
    FillInBlankQuestion,
    FlowchartQuestion,
    LabInterpretationQuestion,
    Match,
    MatchingQuestion,
    MultipleChoiceQuestion,
    OsceQuestion,
    Question,
    QuizScore,
    ScoreResult,
    ShortAnswerQuestion,
    TrueFalseQuestion,
    WordScrambleQuestion,
)

logger = structlog.get_logger()

AnswerMap = Mapping[str, Any]

OSCE_PASS_PERCENT = 70
OSCE_DISPLAY = "See marking scheme"


def normalize_text(text: str) -> str:
    return text.lower().strip()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _same_index(submitted: Any, stored: int) -> bool:
    # no coercion: "1" and True are not index 1
    return _is_number(submitted) and submitted == stored


def _is_list(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _option_at(options: List[str], index: int) -> Optional[str]:
    if 0 <= index < len(options):
        return options[index]
    return None


def _pair(item: Any) -> Tuple[Any, Any]:
    if isinstance(item, Match):
        return item.left, item.right
    if isinstance(item, Mapping):
        return item.get("left"), item.get("right")
    return None, None


# -------------------- CORRECTNESS RULES --------------------

def _check_index(question: Question, answer: Any) -> bool:
    return _same_index(answer, question.correct_answer)


def _check_true_false(question: TrueFalseQuestion, answer: Any) -> bool:
    return isinstance(answer, bool) and answer == question.correct_answer


def _check_differential(question: DifferentialDiagnosisQuestion, answer: Any) -> bool:
    # Length plus containment, not set equality: stored duplicates let an
    # extra wrong pick through. Kept deliberately, see tests.
    if not _is_list(answer):
        return False
    expected = question.correct_answers
    return len(answer) == len(expected) and all(
        any(_same_index(picked, index) for picked in answer) for index in expected
    )


def _check_matching(question: MatchingQuestion, answer: Any) -> bool:
    if not _is_list(answer):
        return False
    submitted = [_pair(item) for item in answer]
    return len(submitted) == len(question.correct_matches) and all(
        any(_same_index(left, match.left) and _same_index(right, match.right) for left, right in submitted)
        for match in question.correct_matches
    )


def _check_short_answer(question: ShortAnswerQuestion, answer: Any) -> bool:
    if not isinstance(answer, str):
        return False
    given = normalize_text(answer)
    return any(normalize_text(correct) in given for correct in question.correct_answers)


def _check_word_scramble(question: WordScrambleQuestion, answer: Any) -> bool:
    return isinstance(answer, str) and normalize_text(answer) == normalize_text(question.correct_answer)


def _entry(answer: Any, index: int) -> Any:
    return answer[index] if index < len(answer) else None


def _check_fill_in_blank(question: FillInBlankQuestion, answer: Any) -> bool:
    if not _is_list(answer):
        return False
    for index, blank in enumerate(question.blanks):
        given = _entry(answer, index)
        if not isinstance(given, str):
            return False
        given = normalize_text(given)
        accepted = [blank.correct_answer] + list(blank.alternatives or [])
        if not any(given == normalize_text(option) for option in accepted):
            return False
    return True


def _check_flowchart(question: FlowchartQuestion, answer: Any) -> bool:
    if not _is_list(answer):
        return False
    blank_steps = [step for step in question.steps if step.is_blank]
    for index, step in enumerate(blank_steps):
        given = _entry(answer, index)
        if not isinstance(given, str) or step.correct_answer is None:
            return False
        if normalize_text(given) != normalize_text(step.correct_answer):
            return False
    return True


def osce_points(question: OsceQuestion, answer: str) -> Tuple[float, float]:
    """Return (earned, available) marking-scheme points for a free-text answer"""
    text = answer.lower()
    earned = 0
    available = 0
    for criterion in question.marking_scheme:
        available += criterion.points
        if any(keyword.lower() in text for keyword in criterion.keywords):
            earned += criterion.points
    return earned, available


def _check_osce(question: OsceQuestion, answer: Any) -> bool:
    if not isinstance(answer, str):
        return False
    earned, available = osce_points(question, answer)
    return earned * 100 >= available * OSCE_PASS_PERCENT


CORRECTNESS_RULES: Dict[str, Callable[[Any, Any], bool]] = {
    "multiple_choice": _check_index,
    "lab_interpretation": _check_index,
    "true_false": _check_true_false,
    "differential_diagnosis": _check_differential,
    "matching": _check_matching,
    "short_answer": _check_short_answer,
    "word_scramble": _check_word_scramble,
    "fill_in_blank": _check_fill_in_blank,
    "flowchart": _check_flowchart,
    "osce": _check_osce,
}


# -------------------- ANSWER DISPLAY --------------------

def _display_option(question: MultipleChoiceQuestion | LabInterpretationQuestion) -> Optional[str]:
    return _option_at(question.options, question.correct_answer)


ANSWER_DISPLAYS: Dict[str, Callable[[Any], Any]] = {
    "multiple_choice": _display_option,
    "lab_interpretation": _display_option,
    "differential_diagnosis": lambda q: [_option_at(q.options, index) for index in q.correct_answers],
    "matching": lambda q: [{"left": m.left, "right": m.right} for m in q.correct_matches],
    "true_false": lambda q: q.correct_answer,
    "short_answer": lambda q: list(q.correct_answers),
    "word_scramble": lambda q: q.correct_answer,
    "fill_in_blank": lambda q: [blank.correct_answer for blank in q.blanks],
    "flowchart": lambda q: [step.correct_answer for step in q.steps if step.is_blank],
    "osce": lambda q: OSCE_DISPLAY,
}


# -------------------- PUBLIC API --------------------

def is_answer_correct(question: Question, answer: Any) -> bool:
    if answer is None:
        return False
    rule = CORRECTNESS_RULES.get(question.type)
    if rule is None:
        return False
    return rule(question, answer)


def correct_answer_display(question: Question) -> Any:
    """Human-readable "what was correct" value for the review screen"""
    display = ANSWER_DISPLAYS.get(question.type)
    return display(question) if display else None


def score_quiz(questions: Sequence[Question], answers: AnswerMap) -> QuizScore:
    if not isinstance(answers, Mapping):
        raise TypeError(f"answers must be a mapping of question id to answer, got {type(answers).__name__}")

    correct = 0
    results = []
    for question in questions:
        answer = answers.get(question.id)
        ok = is_answer_correct(question, answer)
        if ok:
            correct += 1
        results.append(ScoreResult(
            question_id=question.id,
            question=question.question,
            user_answer=answer,
            correct_answer=correct_answer_display(question),
            is_correct=ok,
            explanation=question.explanation,
        ))

    logger.debug("quiz_scored", correct=correct, total=len(results))
    return QuizScore(correct=correct, total=len(results), results=results)
