"""Pydantic schemas for the optimizer webhook response."""

from pydantic import BaseModel, ConfigDict, Field

from care_shared.models import Mapping, OptimizationResult, ValueEstimate


class ValueEstimateSchema(BaseModel):
    """Before/after value amounts as sent by the optimizer."""

    value_before: float = Field(description="Value before optimization")
    value_after: float = Field(description="Value after optimization")


class MappingSchema(BaseModel):
    """Single category assignment."""

    key: str
    value: str


class OptimizationResponse(BaseModel):
    """Expected 2xx body of the optimization webhook."""

    model_config = ConfigDict(populate_by_name=True)

    original_text: str = Field(alias="originalText")
    optimized_text: str = Field(alias="optimizedText")
    value_estimate: ValueEstimateSchema = Field(alias="valueEstimate")
    mappings: list[MappingSchema] = Field(description="Ordered category mappings")

    def to_result(self) -> OptimizationResult:
        return OptimizationResult(
            original_text=self.original_text,
            optimized_text=self.optimized_text,
            value_estimate=ValueEstimate(
                value_before=self.value_estimate.value_before,
                value_after=self.value_estimate.value_after,
            ),
            mappings=[Mapping(key=m.key, value=m.value) for m in self.mappings],
        )
