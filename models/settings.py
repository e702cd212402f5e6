from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict

@dataclass
class PlannerSettings:
    total_budget: float = 5000.0
    people_count: int = 5

    def to_dict(self) -> Dict[str, Any]:
        return {"totalBudget": self.total_budget, "peopleCount": self.people_count}


DEFAULT_SETTINGS = PlannerSettings()
