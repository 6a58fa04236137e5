from __future__ import annotations

import base64
import json
import math
import time
from typing import Any, Callable, List, Optional, Set

import structlog
from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from mediquiz import settings
from mediquiz.errors import GenerationError
from mediquiz.questions import Question
from mediquiz.schemas import ContentAnalysis, QuizConfig
from mediquiz.services.logging import log_performance
from mediquiz.services.normalizer import normalize_questions

logger = structlog.get_logger()

ProgressCallback = Callable[[str, int, str], None]

ANALYSIS_SYSTEM_PROMPT = """You are a medical education expert. Analyze the provided medical content and extract:
1. A comprehensive summary of the content
2. Key medical concepts and topics covered
3. Important medical terms and terminology
4. Main subject areas

Respond with a JSON object with the keys "summary" (string), "keyConcepts",
"medicalTerms" and "topics" (arrays of strings)."""

GENERATION_SYSTEM_PROMPT = """You are an expert medical educator and quiz generator. Create medical quiz
questions based on the provided content and analysis.

Every question is a JSON object with "id", "type", "question", "explanation" and
"difficulty" ("easy", "medium" or "hard") plus the fields of its type:
- multiple_choice: "options" (4 strings), "correctAnswer" (index)
- differential_diagnosis: "options" (10 strings), "correctAnswers" (3 indices)
- matching: "leftItems", "rightItems" (4 strings each), "correctMatches" ([{"left": i, "right": j}])
- lab_interpretation: "labValues" ([{"test", "value", "reference"}]), "options", "correctAnswer" (index)
- flowchart: "steps" ([{"id", "content", "isBlank", "correctAnswer"}])
- word_scramble: "hint", "letters" (single characters), "correctAnswer"
- fill_in_blank: "blanks" ([{"position", "correctAnswer", "alternatives"}])
- true_false: "correctAnswer" (boolean)
- short_answer: "correctAnswers", "keywords"
- osce: "scenario", "tasks", "markingScheme" ([{"criteria", "points", "keywords"}])

Each question must have a realistic clinical context, proper medical terminology,
an evidence-based correct answer and a detailed explanation.

Respond with a JSON object {"questions": [...]}."""

TRANSCRIBE_PROMPT = """Extract and transcribe all text content from this medical document.
Focus on medical terminology, clinical information and procedures, diagnostic criteria,
treatment protocols and medications, anatomical and physiological details.
Provide the complete text content in a structured, readable format."""


def _clean_json_like(content: str) -> str:
    # Strip common code fences ```json ... ``` or ``` ... ```
    text = content.strip()
    if text.startswith("```"):
        first_nl = text.find("\n")
        if first_nl != -1:
            text = text[first_nl + 1:]
        if text.endswith("```"):
            text = text[:-3]
    return text.strip()


def parse_json_response(content: Optional[str]) -> Any:
    if not content or not content.strip():
        raise GenerationError("Empty response from AI service")
    try:
        return json.loads(_clean_json_like(content))
    except json.JSONDecodeError as e:
        raise GenerationError(f"AI service returned invalid JSON: {e}") from e


def extract_question_records(data: Any) -> List[Any]:
    """Accept either a bare array or an object wrapping one"""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("questions", "items", "quiz"):
            if isinstance(data.get(key), list):
                return data[key]
    raise GenerationError("AI service response did not contain a question array")


def claim_unique_ids(questions: List[Question], taken: Set[str], batch_offset: int, stamp: int) -> List[Question]:
    """Give every question an id not yet used in this quiz.

    The model numbers each batch on its own, so later batches tend to repeat
    ids like "q1". A repeat gets the synthesized `q_<stamp>_<position>` form.
    """
    unique = []
    for index, question in enumerate(questions):
        question_id = question.id
        if question_id in taken:
            question_id = f"q_{stamp}_{batch_offset + index}"
            suffix = 1
            while question_id in taken:
                question_id = f"q_{stamp}_{batch_offset + index}_{suffix}"
                suffix += 1
            logger.warning("question_id_reassigned", received=question.id, used=question_id)
            question = question.model_copy(update={"id": question_id})
        taken.add(question_id)
        unique.append(question)
    return unique


def build_generation_prompt(content: str, analysis: ContentAnalysis, config: QuizConfig, count: int) -> str:
    focus = ", ".join(config.focus_areas) if config.focus_areas else "all topics"
    return f"""Based on this medical content and analysis, generate {count} medical quiz questions.

CONTENT:
{content}

ANALYSIS:
Summary: {analysis.summary}
Key Concepts: {", ".join(analysis.key_concepts)}
Medical Terms: {", ".join(analysis.medical_terms)}
Topics: {", ".join(analysis.topics)}

REQUIREMENTS:
- Question types to include: {", ".join(config.question_types)}
- Focus areas: {focus}
- Difficulty level: {config.difficulty}
- Total questions: {count}

For differential diagnosis questions, provide 10 realistic options with 3 correct answers.
For matching, ensure accurate drug-indication or microbe-treatment pairings.
For lab interpretation, use realistic values and reference ranges.
For OSCE questions, include detailed marking schemes with keywords."""


class QuizGenerator:
    """Content analysis and question generation over an OpenAI-compatible chat API"""

    def __init__(
        self,
        client: OpenAI,
        analysis_model: str = settings.OPENAI_ANALYSIS_MODEL,
        generation_model: str = settings.OPENAI_GENERATION_MODEL,
        batch_size: int = settings.GENERATION_BATCH_SIZE,
        timeout: float = settings.OPENAI_TIMEOUT,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.client = client
        self.analysis_model = analysis_model
        self.generation_model = generation_model
        self.batch_size = batch_size
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> "QuizGenerator":
        if not settings.OPENAI_API_KEY:
            raise RuntimeError("OPENAI_API_KEY not set")
        return cls(OpenAI(api_key=settings.OPENAI_API_KEY, base_url=settings.OPENAI_BASE_URL))

    def _complete(self, model: str, messages: List[dict], json_mode: bool = True) -> Optional[str]:
        kwargs = {"response_format": {"type": "json_object"}} if json_mode else {}
        try:
            rsp = self.client.with_options(timeout=self.timeout).chat.completions.create(
                model=model,
                messages=messages,
                temperature=0.2,
                **kwargs,
            )
        except OpenAIError as e:
            logger.error("ai_request_failed", model=model, error=str(e))
            raise GenerationError(f"AI request failed: {e}") from e
        if not rsp.choices:
            return None
        return rsp.choices[0].message.content

    @log_performance("analyze_content")
    def analyze_content(self, text: str) -> ContentAnalysis:
        content = self._complete(self.analysis_model, [
            {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
            {"role": "user", "content": f"Analyze this medical content and provide a structured analysis:\n\n{text}"},
        ])
        data = parse_json_response(content)
        if not isinstance(data, dict):
            raise GenerationError("Content analysis was not a JSON object")
        try:
            return ContentAnalysis.model_validate(data)
        except ValidationError as e:
            raise GenerationError(f"Content analysis had an unexpected shape: {e}") from e

    def _generate_batch(self, content: str, analysis: ContentAnalysis, config: QuizConfig, count: int) -> List[Any]:
        response = self._complete(self.generation_model, [
            {"role": "system", "content": GENERATION_SYSTEM_PROMPT},
            {"role": "user", "content": build_generation_prompt(content, analysis, config, count)},
        ])
        return extract_question_records(parse_json_response(response))

    @log_performance("generate_questions")
    def generate_questions(
        self,
        content: str,
        analysis: ContentAnalysis,
        config: QuizConfig,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Question]:
        total = config.question_count
        batch_size = min(self.batch_size, total)
        total_batches = math.ceil(total / batch_size)
        questions: List[Question] = []
        taken: Set[str] = set()
        stamp = int(time.time() * 1000)

        for batch_index in range(total_batches):
            start = batch_index * batch_size
            end = min(start + batch_size, total)
            # generation occupies the 35-75% band of the overall progress bar
            progress = 35 + round(batch_index / total_batches * 40)
            if on_progress:
                on_progress("generation", progress, f"Generating questions {start + 1}-{end} of {total}...")

            records = self._generate_batch(content, analysis, config, end - start)
            batch = normalize_questions(records, batch_offset=start)
            questions.extend(claim_unique_ids(batch, taken, start, stamp))
            logger.info("question_batch_generated", batch=batch_index + 1, batches=total_batches, received=len(records))

        if on_progress:
            on_progress("complete", 100, f"Generated {len(questions)} questions")
        return questions

    @log_performance("transcribe_image")
    def transcribe_image(self, data: bytes, mime_type: str) -> str:
        encoded = base64.b64encode(data).decode("ascii")
        content = self._complete(self.analysis_model, [
            {"role": "user", "content": [
                {"type": "text", "text": TRANSCRIBE_PROMPT},
                {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
            ]},
        ], json_mode=False)
        return content or ""
