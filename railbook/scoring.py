# railbook/scoring.py
"""
Crowd and comfort scoring for a fare class on a given departure.

The score is derived from three facts:
  - seat availability of the class
  - whether the departure falls in peak hours
  - whether the journey date is a weekend

assess() is pure: no I/O, no state, and it never raises for malformed
times or dates (the affected predicates simply evaluate to False).
"""
import math
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from railbook.schemas import (ClassType, CrowdAssessment, CrowdLevel, FareClass,
                              Recommendation)

PEAK_SURCHARGE = 15
WEEKEND_SURCHARGE = 10

CLASS_COMFORT = {
    ClassType.first_ac: 5.0,
    ClassType.executive_chair: 4.5,
    ClassType.second_ac: 4.0,
    ClassType.third_ac: 3.5,
    ClassType.chair_car: 3.0,
    ClassType.sleeper: 2.5,
    ClassType.second_sitting: 2.0,
}
DEFAULT_COMFORT = 3.0

RECOMMENDATION_LABELS = {
    Recommendation.seniors: "Best for Seniors",
    Recommendation.students: "Best for Students",
    Recommendation.night: "Best for Night Travel",
    Recommendation.family: "Family Friendly",
    Recommendation.budget: "Budget Friendly",
    Recommendation.comfort: "Premium Comfort",
}


@dataclass(frozen=True)
class ScheduleFacts:
    is_peak: bool
    is_weekend: bool
    is_night: bool


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _departure_hour(departure_time: str) -> Optional[int]:
    try:
        hour = int(str(departure_time).split(":")[0])
    except (TypeError, ValueError):
        return None
    return hour if 0 <= hour <= 23 else None


def _as_date(journey_date: Union[date, str, None]) -> Optional[date]:
    if isinstance(journey_date, date):
        return journey_date
    try:
        return date.fromisoformat(str(journey_date))
    except ValueError:
        return None


def schedule_facts(departure_time: str, journey_date: Union[date, str, None]) -> ScheduleFacts:
    hour = _departure_hour(departure_time)
    day = _as_date(journey_date)
    if hour is None:
        is_peak = is_night = False
    else:
        # 07:00-10:59 and 17:00-21:59 count as peak
        is_peak = 7 <= hour <= 10 or 17 <= hour <= 21
        is_night = hour >= 20 or hour <= 5
    is_weekend = day is not None and day.weekday() >= 5
    return ScheduleFacts(is_peak=is_peak, is_weekend=is_weekend, is_night=is_night)


def crowd_level(score: float) -> CrowdLevel:
    if score < 40:
        return CrowdLevel.low
    if score < 70:
        return CrowdLevel.medium
    return CrowdLevel.high


def comfort_score(class_type: ClassType, level: CrowdLevel, is_peak: bool) -> float:
    score = CLASS_COMFORT.get(class_type, DEFAULT_COMFORT)
    if level == CrowdLevel.high:
        score -= 0.5
    elif level == CrowdLevel.low:
        score += 0.3
    if is_peak:
        score -= 0.2
    score = _round_half_up(score * 2) / 2
    return max(1.0, min(5.0, score))


def recommend(class_type: ClassType, level: CrowdLevel, comfort: float,
              is_night: bool) -> Recommendation:
    # Rules are checked in order; the first match wins.
    if class_type in (ClassType.first_ac, ClassType.executive_chair) and comfort >= 4:
        return Recommendation.seniors
    if is_night and class_type in (ClassType.sleeper, ClassType.third_ac, ClassType.second_ac):
        return Recommendation.night
    if class_type in (ClassType.second_sitting, ClassType.sleeper) and level != CrowdLevel.high:
        return Recommendation.students
    if class_type in (ClassType.second_ac, ClassType.third_ac) and level == CrowdLevel.low:
        return Recommendation.family
    if comfort >= 4:
        return Recommendation.comfort
    return Recommendation.budget


def assess(fare_class: FareClass, departure_time: str,
           journey_date: Union[date, str, None]) -> CrowdAssessment:
    facts = schedule_facts(departure_time, journey_date)

    availability_pct = fare_class.available_seats / fare_class.total_seats * 100
    score = 100 - availability_pct
    if facts.is_peak:
        score += PEAK_SURCHARGE
    if facts.is_weekend:
        score += WEEKEND_SURCHARGE
    score = min(score, 100)

    level = crowd_level(score)
    comfort = comfort_score(fare_class.class_type, level, facts.is_peak)
    return CrowdAssessment(
        level=level,
        crowd_score=_round_half_up(score),
        comfort_score=comfort,
        recommendation=recommend(fare_class.class_type, level, comfort, facts.is_night),
    )


def recommendation_label(recommendation: Recommendation) -> str:
    return RECOMMENDATION_LABELS[recommendation]
