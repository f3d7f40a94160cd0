"""Question model and question-set validation for the ``START_GAME`` payload.

The authoring UI exchanges an ordered list of objects shaped like::

    {"prompt": "...", "options": ["A", "B", "C", "D"],
     "correctIndex": 0, "timeLimitSeconds": 20}

``timeLimitSec`` and snake_case keys are accepted as well.
"""
import logging
from typing import Any, List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

import config
from errors import ValidationError
from sanitize import sanitize_text

logger = logging.getLogger(__name__)


class Question(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prompt: str
    options: List[str]
    correct_index: int = Field(
        validation_alias=AliasChoices("correctIndex", "correct_index"),
    )
    time_limit_seconds: int = Field(
        default=config.DEFAULT_TIME_LIMIT,
        validation_alias=AliasChoices("timeLimitSeconds", "timeLimitSec", "time_limit_seconds"),
    )

    @field_validator('prompt', mode='before')
    @classmethod
    def validate_prompt(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise ValueError('Prompt must be text')
        v = sanitize_text(v)[:config.MAX_PROMPT_LENGTH]
        if not v:
            raise ValueError('Prompt must not be empty')
        return v

    @field_validator('options', mode='before')
    @classmethod
    def validate_options(cls, v: Any) -> List[str]:
        if not isinstance(v, (list, tuple)) or len(v) != config.NUM_OPTIONS:
            raise ValueError(f'Question must have exactly {config.NUM_OPTIONS} options')
        options = []
        for opt in v:
            if isinstance(opt, (dict, list)) or opt is None:
                raise ValueError('Options must be text')
            options.append(sanitize_text(str(opt))[:config.MAX_OPTION_LENGTH])
        return options

    @field_validator('correct_index', mode='before')
    @classmethod
    def validate_correct_index(cls, v: Any) -> int:
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError('correctIndex must be an integer')
        if not (0 <= v < config.NUM_OPTIONS):
            raise ValueError(f'correctIndex must be 0-{config.NUM_OPTIONS - 1}')
        return v

    @field_validator('time_limit_seconds', mode='before')
    @classmethod
    def clamp_time_limit(cls, v: Any) -> int:
        try:
            value = float(v)
        except (TypeError, ValueError, OverflowError):
            value = 0.0
        # NaN fails every comparison, so it lands on the default too
        if not value >= 1:
            return config.DEFAULT_TIME_LIMIT
        return max(config.MIN_TIME_LIMIT, int(min(value, config.MAX_TIME_LIMIT)))

    def to_public(self) -> dict:
        """Question fields safe to show before the reveal."""
        return {
            "prompt": self.prompt,
            "options": list(self.options),
            "timeLimitSeconds": self.time_limit_seconds,
        }


def parse_question_set(raw: Any) -> List[Question]:
    """Validate a whole question list. Any bad entry rejects the set."""
    if isinstance(raw, tuple):
        raw = list(raw)
    if not isinstance(raw, list):
        raise ValidationError("Questions must be a list")
    if not raw:
        raise ValidationError("Add at least 1 question")
    if len(raw) > config.MAX_QUESTIONS:
        raise ValidationError(f"A quiz can have at most {config.MAX_QUESTIONS} questions")

    questions = []
    for number, item in enumerate(raw, start=1):
        if isinstance(item, Question):
            questions.append(item)
            continue
        if not isinstance(item, dict):
            raise ValidationError(f"Question {number}: must be an object")
        try:
            questions.append(Question.model_validate(item))
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            reason = str(first.get("msg", "invalid")).removeprefix("Value error, ")
            logger.warning("Rejected question %d: %s", number, reason)
            raise ValidationError(f"Question {number}: {reason}") from exc
    return questions
