"""
Simulator service - business logic behind the simulator and template routers.

One SimulatorService per process, created lazily from WHATIF_* environment
configuration. Routers receive it through the get_simulator_service
dependency, which tests override.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.registry.template_registry import TemplateFilter, TemplateRegistry
from src.simulator.config import SimulatorConfig
from src.simulator.engine import GenerationEngine, build_engine, feedback_for
from src.simulator.errors import TemplateNotFoundError

logger = logging.getLogger(__name__)


class SimulatorService:
    """Engine plus template registry, with optional registry state persistence."""

    def __init__(
        self,
        config: Optional[SimulatorConfig] = None,
        engine: Optional[GenerationEngine] = None,
        registry: Optional[TemplateRegistry] = None,
    ):
        self.config = config or SimulatorConfig.from_env()
        self.registry = registry or TemplateRegistry()
        self.state_path = Path(self.config.template_state_path) if self.config.template_state_path else None

        if self.state_path and self.state_path.exists():
            self.registry.load_state(self.state_path)

        self.engine = engine or build_engine(self.config, registry=self.registry)

    def _persist(self) -> None:
        if self.state_path:
            self.registry.save_state(self.state_path)

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def generate_prompts(self, parameters: Dict[str, Any], count: Optional[int] = None) -> List[Dict[str, Any]]:
        prompts = self.engine.generate_prompts(parameters, count)
        return [p.to_dict() for p in prompts]

    def generate_branches(
        self,
        node_content: str,
        parameters: Dict[str, Any],
        count: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        branches = self.engine.generate_branches(node_content, parameters, count)
        return [b.to_dict() for b in branches]

    def submit_feedback(self, template_id: str, feedback_type: str, rating: Optional[int] = None) -> Dict[str, Any]:
        """
        Apply feedback to a template.

        Raises:
            TemplateNotFoundError: unknown template id
            InvalidFeedbackError: rating outside 1..5
        """
        self.registry.require_template(template_id)
        if not self.registry.update_effectiveness(template_id, feedback_for(feedback_type, rating)):
            raise TemplateNotFoundError(template_id)
        self._persist()

        template = self.registry.require_template(template_id)
        return {
            "success": True,
            "template_id": template.id,
            "usage_count": template.usage_count,
            "effectiveness_score": template.effectiveness_score,
        }

    def health(self) -> Dict[str, Any]:
        return self.engine.get_health_status()

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------

    def list_templates(self, template_filter: TemplateFilter) -> List[Dict[str, Any]]:
        return [t.to_dict() for t in self.registry.find_templates(template_filter)]

    def add_template(self, data: Dict[str, Any]) -> Dict[str, Any]:
        template = self.registry.add_template(data)
        self._persist()
        return template.to_dict()

    def template_stats(self) -> Dict[str, Any]:
        return self.registry.get_stats()

    def template_recommendations(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            group: [t.to_dict() for t in templates]
            for group, templates in self.registry.get_recommendations().items()
        }

    def prune_templates(self, min_effectiveness: float, min_usage: int) -> Dict[str, int]:
        pruned = self.registry.prune_ineffective_templates(min_effectiveness, min_usage)
        if pruned:
            self._persist()
        stats = self.registry.get_stats()
        return {"pruned": pruned, "active_templates": stats["active_templates"]}

    def close(self) -> None:
        self.engine.close()


_service: Optional[SimulatorService] = None
_service_lock = threading.Lock()


def get_simulator_service() -> SimulatorService:
    """FastAPI dependency returning the process-wide service."""
    global _service
    with _service_lock:
        if _service is None:
            _service = SimulatorService()
            logger.info("[SimulatorService] Service initialized")
        return _service


def shutdown_simulator_service() -> None:
    global _service
    with _service_lock:
        if _service is not None:
            _service.close()
            _service = None
