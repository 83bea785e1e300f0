"""Word count goal and progress tracking."""

import math
from typing import Any

from pydantic import BaseModel, Field

from blockwriter.services.exceptions import GoalValidationError

DEFAULT_TARGET_WORD_COUNT = 1000


def goal_progress(word_count: int, target_word_count: Any) -> int:
    """Percentage of the goal reached, clamped to 100.

    Rounds half up, so 2.5% reports as 3%. A target that is not a positive
    integer yields 0.

    Example:
        >>> goal_progress(500, 1000)
        50
        >>> goal_progress(1200, 1000)
        100
        >>> goal_progress(0, 0)
        0
    """
    if isinstance(target_word_count, bool) or not isinstance(target_word_count, int):
        return 0
    if target_word_count <= 0:
        return 0
    percent = math.floor(word_count / target_word_count * 100 + 0.5)
    return min(percent, 100)


def parse_target(value: Any) -> int:
    """Parse user input into a positive word count target.

    Args:
        value: int or numeric string such as "1500"

    Returns:
        The target as int

    Raises:
        GoalValidationError: If value is non-numeric or not positive
    """
    if isinstance(value, bool):
        raise GoalValidationError(value)
    if isinstance(value, int):
        target = value
    elif isinstance(value, str):
        try:
            target = int(value.strip())
        except ValueError:
            raise GoalValidationError(value) from None
    else:
        raise GoalValidationError(value)
    if target <= 0:
        raise GoalValidationError(value)
    return target


class WritingGoal(BaseModel):
    """A user-set target word count for a chapter."""

    target_word_count: int = Field(
        default=DEFAULT_TARGET_WORD_COUNT,
        gt=0,
        description="Target word count (positive)"
    )

    def set_target(self, value: Any) -> int:
        """Replace the target after validating it.

        Rejected input leaves the previous target in place.

        Raises:
            GoalValidationError: If value is non-numeric or not positive
        """
        self.target_word_count = parse_target(value)
        return self.target_word_count

    def progress(self, word_count: int) -> int:
        return goal_progress(word_count, self.target_word_count)

    def remaining(self, word_count: int) -> int:
        return max(self.target_word_count - word_count, 0)

    def is_met(self, word_count: int) -> bool:
        return word_count >= self.target_word_count

    model_config = {"frozen": False}
