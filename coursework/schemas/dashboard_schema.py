from typing import Dict
from coursework.schemas.base_schema import CamelModel

class InstanceAnalytics(CamelModel):
    # Band label ("A".."F") -> number of graded submissions
    grade_distribution: Dict[str, int]
    average_grade: float
    total_submissions: int
