"""
Base repository with common database operations.

Provides the row mapping contract and JSONB helpers inherited by specific repositories.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, Sequence, TypeVar

from pydantic import BaseModel
from sqlalchemy import Table
from sqlalchemy.orm import Session

ModelT = TypeVar("ModelT", bound=BaseModel)


def models_to_jsonb(models: Sequence[BaseModel]) -> list[dict]:
    """Serialize list of Pydantic models for JSONB storage."""
    return [m.model_dump(mode="json") for m in models]


def jsonb_to_models(data: list[dict] | None, model_class: type[ModelT]) -> list[ModelT]:
    """Deserialize JSONB array to list of Pydantic models."""
    if data is None:
        return []
    return [model_class.model_validate(d) for d in data]


class BaseRepository(ABC, Generic[ModelT]):
    """
    Base repository with common operations.

    Subclasses must implement:
    - table property: Return the SQLAlchemy Table
    - _row_to_model: Convert database row to Pydantic model
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def table(self) -> Table:
        """SQLAlchemy table for this repository."""
        pass

    @abstractmethod
    def _row_to_model(self, row: Any) -> ModelT:
        """Convert database row to Pydantic model."""
        pass

