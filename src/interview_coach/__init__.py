"""
Interview Coach: AI mock interviews with spoken questions, answer refinement
and a structured final assessment.
"""

__version__ = "1.0.0"

# Main entry points
from .interview.orchestrator import InterviewSession
from .interview.models import Turn, Assessment, SessionStatus

__all__ = ["InterviewSession", "Turn", "Assessment", "SessionStatus"]
