"""
LLM Model Service
Platform-wide LLM catalog; not tenant scoped
"""

from typing import List
from sqlalchemy.orm import Session

from agent_console.db.models import LlmModel


class LlmModelService:
    def __init__(self, db: Session):
        self.db = db

    def list_models(self) -> List[LlmModel]:
        """Active catalog entries ordered by model name"""
        return self.db.query(LlmModel).filter(
            LlmModel.is_active == True
        ).order_by(LlmModel.model_name).all()
