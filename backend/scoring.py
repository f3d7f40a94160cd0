"""Score deltas and rankings. Pure functions over roster players."""
import math
from typing import Iterable, List, Optional

import config
from questions import Question
from roster import Answer, Player


def score_answer(question: Question, answer: Optional[Answer], question_started_at: float) -> int:
    """Points earned by one answer: base plus a bonus that shrinks with elapsed time."""
    if answer is None or answer.index != question.correct_index:
        return 0
    limit = question.time_limit_seconds
    elapsed = max(0.0, answer.submitted_at - question_started_at)
    remaining = max(0.0, limit - elapsed)
    # half-up rounding, round() would pick the even neighbour on .5
    speed_bonus = math.floor(config.SPEED_BONUS_POINTS * remaining / limit + 0.5)
    return config.BASE_POINTS + speed_bonus


def rank_players(players: Iterable[Player]) -> List[dict]:
    """Sort by score descending; ties keep roster order and still get distinct ranks."""
    ranked = sorted(players, key=lambda p: p.score, reverse=True)
    return [
        {**p.to_public(), "rank": position}
        for position, p in enumerate(ranked, start=1)
    ]


def leaderboard(players: Iterable[Player], top_n: int) -> List[dict]:
    return rank_players(players)[:top_n]


def count_answers(players: Iterable[Player]) -> List[int]:
    counts = [0] * config.NUM_OPTIONS
    for p in players:
        if p.current_answer is not None:
            counts[p.current_answer.index] += 1
    return counts
