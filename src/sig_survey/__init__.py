from __future__ import annotations

from .survey import Survey
from .surveyconfig import SurveyConfig

__all__ = [
    "Survey",
    "SurveyConfig",
]
