"""
Data Generation Module
"""
from .generators import ActivityGenerator, CourseGenerator, DataGenerator, UserGenerator

__all__ = [
    "DataGenerator",
    "UserGenerator",
    "CourseGenerator",
    "ActivityGenerator",
]
