"""AI generation of flashcards and quiz questions from study material."""

import json
import logging
import re
from typing import Annotated, Literal, Union

import anthropic
from anthropic import AsyncAnthropic
from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, model_validator
from pydantic import ValidationError as PydanticValidationError

from studysage.core.errors import UpstreamGenerationError

logger = logging.getLogger(__name__)


# =============================================================================
# GENERATED CONTENT
# =============================================================================

class GeneratedFlashcard(BaseModel):
    front: str = Field(min_length=1)
    back: str = Field(min_length=1)
    explanation: str | None = None


class _GeneratedQuestionBase(BaseModel):
    question: str = Field(min_length=1)
    correct_answer: str = Field(
        min_length=1,
        validation_alias=AliasChoices("correct_answer", "correctAnswer"),
    )
    explanation: str | None = None


class MultipleChoiceQuestion(_GeneratedQuestionBase):
    type: Literal["multiple_choice"] = "multiple_choice"
    options: list[str] = Field(min_length=2)

    @model_validator(mode="after")
    def answer_is_an_option(self) -> "MultipleChoiceQuestion":
        if self.correct_answer not in self.options:
            raise ValueError("correct_answer must be one of the options")
        return self


class TrueFalseQuestion(_GeneratedQuestionBase):
    type: Literal["true_false"] = "true_false"

    @model_validator(mode="after")
    def normalize_answer(self) -> "TrueFalseQuestion":
        answer = self.correct_answer.strip().capitalize()
        if answer not in ("True", "False"):
            raise ValueError("correct_answer must be True or False")
        self.correct_answer = answer
        return self


class FillBlankQuestion(_GeneratedQuestionBase):
    type: Literal["fill_blank"] = "fill_blank"


GeneratedQuestion = Annotated[
    Union[MultipleChoiceQuestion, TrueFalseQuestion, FillBlankQuestion],
    Field(discriminator="type"),
]

_flashcard_adapter = TypeAdapter(GeneratedFlashcard)
_question_adapter = TypeAdapter(GeneratedQuestion)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


# =============================================================================
# PROMPTS
# =============================================================================

FLASHCARD_SYSTEM_PROMPT = "\n".join([
    "You are an expert educational content creator. Generate flashcards from the provided study material.",
    "Each flashcard should have:",
    "- A clear, specific question or term on the front",
    "- A comprehensive but concise answer on the back",
    "- A brief explanation to help with understanding",
    "",
    "Focus on the most important concepts, key terms, definitions, and facts.",
    "Return ONLY valid JSON, nothing else.",
])

QUIZ_SYSTEM_PROMPT = "\n".join([
    "You are an expert educational assessment creator. Generate quiz questions from the provided study material.",
    "Create a mix of question types:",
    "- Multiple choice (4 options, one correct)",
    "- True/False questions",
    "- Fill in the blank questions",
    "",
    "Each question should test understanding of key concepts.",
    "Questions should range from basic recall to application.",
    "Return ONLY valid JSON, nothing else.",
])

FLASHCARD_FORMAT = """{
  "flashcards": [
    {"front": "Question or term here", "back": "Answer or definition here", "explanation": "Additional context or memory tip"}
  ]
}"""

QUIZ_FORMAT = """{
  "questions": [
    {"type": "multiple_choice", "question": "The question text here?", "options": ["Option A", "Option B", "Option C", "Option D"], "correct_answer": "Option A", "explanation": "Why this is correct"},
    {"type": "true_false", "question": "A statement to evaluate as true or false", "correct_answer": "True", "explanation": "Why this is true/false"},
    {"type": "fill_blank", "question": "Complete this: The _____ is responsible for...", "correct_answer": "answer word", "explanation": "Context about the answer"}
  ]
}"""


# =============================================================================
# GENERATION SERVICE
# =============================================================================

class GenerationService:
    """Generates study material with Claude. Configuration is passed in explicitly."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 4096,
        max_input_chars: int = 8000,
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.max_input_chars = max_input_chars
        self._client: AsyncAnthropic | None = None

    @property
    def client(self) -> AsyncAnthropic:
        if self._client is None:
            if not self.api_key:
                raise UpstreamGenerationError("AI generation is not configured")
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def _complete_json(self, system_prompt: str, user_prompt: str) -> dict:
        """Send one request and decode the JSON object in the reply."""
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as e:
            logger.error("Generation request failed: %s", e)
            raise UpstreamGenerationError("AI generation failed, please try again") from e

        text = response.content[0].text if response.content else ""
        text = _FENCE_RE.sub("", text.strip())
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error("Generation returned invalid JSON: %.200s", text)
            raise UpstreamGenerationError("AI generation returned malformed content") from e

        if not isinstance(payload, dict):
            raise UpstreamGenerationError("AI generation returned malformed content")
        return payload

    def _validate_items(self, items: object, adapter: TypeAdapter, kind: str) -> list:
        """Keep the well-formed items; fail if none are usable."""
        if not isinstance(items, list):
            raise UpstreamGenerationError(f"AI generation returned no {kind}")

        valid = []
        for item in items:
            try:
                valid.append(adapter.validate_python(item))
            except PydanticValidationError as e:
                logger.warning("Dropping malformed generated %s: %s", kind, e.errors()[:1])

        if not valid:
            raise UpstreamGenerationError(f"AI generation returned no usable {kind}")
        return valid

    async def generate_flashcards(self, content: str, count: int = 10) -> list[GeneratedFlashcard]:
        """Generate up to ``count`` flashcards from document text."""
        user_prompt = (
            f"Generate {count} flashcards from this study material. "
            f"Return only valid JSON in this exact format:\n{FLASHCARD_FORMAT}\n\n"
            f"Study material:\n{content[:self.max_input_chars]}"
        )
        payload = await self._complete_json(FLASHCARD_SYSTEM_PROMPT, user_prompt)
        cards = self._validate_items(payload.get("flashcards"), _flashcard_adapter, "flashcards")
        return cards[:count]

    async def generate_quiz(self, content: str, count: int = 10) -> list[GeneratedQuestion]:
        """Generate up to ``count`` quiz questions from document text."""
        user_prompt = (
            f"Generate {count} quiz questions from this study material. "
            f"Return only valid JSON in this exact format:\n{QUIZ_FORMAT}\n\n"
            f"Study material:\n{content[:self.max_input_chars]}"
        )
        payload = await self._complete_json(QUIZ_SYSTEM_PROMPT, user_prompt)
        questions = self._validate_items(payload.get("questions"), _question_adapter, "questions")
        return questions[:count]
