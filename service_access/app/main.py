"""
Access service for the Concert Access Layer.
"""

from typing import Any, Mapping, Optional, Union

from prometheus_client import CollectorRegistry

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.logging import set_request_id

from .context.models import RequestContext
from .context.resolver import ContextResolver, Lookup
from .definitions.concerts import build_catalog
from .definitions.loader import Catalog, load_definitions_file
from .gate.operations import OperationGate
from .rules.engine import PolicyEvaluator
from .rules.models import Decision, EvaluationResult, Operation
from .schema.validation import ConstraintValidator


class AccessService(BaseService):
    """Access service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, catalog: Optional[Catalog] = None,
                 lookups: Optional[Mapping[str, Lookup]] = None,
                 registry: Optional[CollectorRegistry] = None):
        super().__init__("access", config=config, registry=registry)

        self.catalog = catalog or self._load_catalog()
        if self.config.validate_policies:
            self.catalog.policy.validate(self.catalog.schema, self.catalog.context_schema)

        # Initialize components
        self.evaluator = PolicyEvaluator(
            self.catalog.schema, self.catalog.policy, self.catalog.context_schema
        )
        self.validator = ConstraintValidator(self.catalog.schema)
        self.resolver = ContextResolver(self.catalog.context_schema, lookups)
        self.gate = OperationGate(
            self.evaluator,
            self.validator,
            metrics=self.metrics if self.config.enable_metrics else None
        )

        if self.config.enable_metrics and self.config.metrics_port:
            self.metrics.start_metrics_server(self.config.metrics_port)
            self.logger.info("Metrics server started", port=self.config.metrics_port)

        self.logger.info(
            "Access service initialized",
            entities=len(self.catalog.schema.entities),
            policy_file=self.config.policy_file
        )

    def _load_catalog(self) -> Catalog:
        if self.config.policy_file:
            self.logger.info("Loading definitions", path=self.config.policy_file)
            return load_definitions_file(self.config.policy_file)
        return build_catalog(self.config.admin_role)

    async def resolve_context(self, claims: Optional[Mapping[str, Any]],
                              request_id: Optional[str] = None) -> RequestContext:
        """Resolve the context of one request."""
        set_request_id(request_id)
        return await self.resolver.resolve(claims)

    def evaluate(self, operation: Union[Operation, str], entity: str,
                 context: Optional[RequestContext], record: Optional[Mapping[str, Any]] = None,
                 field: Optional[str] = None) -> Decision:
        return self.evaluator.evaluate(operation, entity, context, record=record, field=field)

    def explain(self, operation: Union[Operation, str], entity: str,
                context: Optional[RequestContext], record: Optional[Mapping[str, Any]] = None,
                field: Optional[str] = None) -> EvaluationResult:
        return self.evaluator.explain(operation, entity, context, record=record, field=field)

    def describe(self) -> dict:
        info = super().describe()
        info["entities"] = list(self.catalog.schema.entity_names())
        info["capabilities"] = ["policy_evaluation", "context_resolution", "constraint_validation"]
        return info


def create_service(**kwargs) -> AccessService:
    """Create an access service instance."""
    return AccessService(**kwargs)
