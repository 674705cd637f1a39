"""
Pydantic models for Trigger Mail.

Shared data models across the application.
"""

from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field


# =====================================================
# Trigger Models
# =====================================================

class TriggerDefinition(BaseModel):
    """Decoded trigger definition file."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    subject: str = ""
    path: str = Field(alias="paths")  # a single path despite the key name
    modes: List[str] = []
    watchers: List[str] = []


# =====================================================
# Mail Models
# =====================================================

class Message(BaseModel):
    """One outbound notification, built once per flush."""
    model_config = ConfigDict(frozen=True)

    recipients: Tuple[str, ...]
    subject: str
    body: str
