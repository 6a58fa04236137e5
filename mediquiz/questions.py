"""
Question and score models shared by the normalizer, the scoring engine and the API.

Attribute names are snake_case; JSON uses camelCase (``correctAnswer``,
``isBlank``...), which is what the AI service emits and what clients send.
"""
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


Difficulty = Literal["easy", "medium", "hard"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenModel(CamelModel):
    model_config = ConfigDict(frozen=True)


# ----------------- Nested items -----------------

class LabValue(_FrozenModel):
    test: str = ""
    value: str = ""
    reference: str = ""


class FlowchartStep(_FrozenModel):
    id: str
    content: str = ""
    is_blank: bool = False
    correct_answer: Optional[str] = None


class Blank(_FrozenModel):
    position: int = 0
    correct_answer: str = ""
    alternatives: Optional[List[str]] = None


class Match(_FrozenModel):
    left: int
    right: int


class MarkingCriterion(_FrozenModel):
    criteria: str = ""
    points: float = 0
    keywords: List[str] = Field(default_factory=list)


# ----------------- Question variants -----------------

class QuestionBase(_FrozenModel):
    id: str
    question: str = ""
    explanation: Optional[str] = None
    difficulty: Optional[Difficulty] = None


class MultipleChoiceQuestion(QuestionBase):
    type: Literal["multiple_choice"] = "multiple_choice"
    options: List[str] = Field(default_factory=list)
    correct_answer: int = 0


class DifferentialDiagnosisQuestion(QuestionBase):
    type: Literal["differential_diagnosis"] = "differential_diagnosis"
    options: List[str] = Field(default_factory=list)
    correct_answers: List[int] = Field(default_factory=list)


class MatchingQuestion(QuestionBase):
    type: Literal["matching"] = "matching"
    left_items: List[str] = Field(default_factory=list)
    right_items: List[str] = Field(default_factory=list)
    correct_matches: List[Match] = Field(default_factory=list)


class LabInterpretationQuestion(QuestionBase):
    type: Literal["lab_interpretation"] = "lab_interpretation"
    lab_values: List[LabValue] = Field(default_factory=list)
    options: List[str] = Field(default_factory=list)
    correct_answer: int = 0


class FlowchartQuestion(QuestionBase):
    type: Literal["flowchart"] = "flowchart"
    steps: List[FlowchartStep] = Field(default_factory=list)


class WordScrambleQuestion(QuestionBase):
    type: Literal["word_scramble"] = "word_scramble"
    hint: str = ""
    letters: List[str] = Field(default_factory=list)
    correct_answer: str = ""


class FillInBlankQuestion(QuestionBase):
    type: Literal["fill_in_blank"] = "fill_in_blank"
    blanks: List[Blank] = Field(default_factory=list)


class TrueFalseQuestion(QuestionBase):
    type: Literal["true_false"] = "true_false"
    correct_answer: bool = False


class ShortAnswerQuestion(QuestionBase):
    type: Literal["short_answer"] = "short_answer"
    correct_answers: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)


class OsceQuestion(QuestionBase):
    type: Literal["osce"] = "osce"
    scenario: str = ""
    tasks: List[str] = Field(default_factory=list)
    marking_scheme: List[MarkingCriterion] = Field(default_factory=list)


Question = Annotated[
    Union[
        MultipleChoiceQuestion,
        DifferentialDiagnosisQuestion,
        MatchingQuestion,
        LabInterpretationQuestion,
        FlowchartQuestion,
        WordScrambleQuestion,
        FillInBlankQuestion,
        TrueFalseQuestion,
        ShortAnswerQuestion,
        OsceQuestion,
    ],
    Field(discriminator="type"),
]

QUESTION_TYPES = (
    "multiple_choice",
    "differential_diagnosis",
    "matching",
    "lab_interpretation",
    "flowchart",
    "word_scramble",
    "fill_in_blank",
    "true_false",
    "short_answer",
    "osce",
)

question_list_adapter = TypeAdapter(List[Question])


def parse_questions(data: Any) -> List[Question]:
    """Validate already well-formed question dicts (e.g. loaded from storage)"""
    return question_list_adapter.validate_python(data)


def dump_questions(questions: List[Question]) -> List[dict]:
    return question_list_adapter.dump_python(questions, mode="json", by_alias=True)


# ----------------- Scores -----------------

class ScoreResult(CamelModel):
    question_id: str
    question: str
    user_answer: Any = None
    correct_answer: Any = None
    is_correct: bool
    explanation: Optional[str] = None


class QuizScore(CamelModel):
    correct: int
    total: int
    results: List[ScoreResult] = Field(default_factory=list)
