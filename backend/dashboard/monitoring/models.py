"""Pydantic models for GET /api/stats (camelCase on the wire, read by the dashboard)."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EndpointStat(_CamelModel):
    name: str
    count: int


class StatsResponse(_CamelModel):
    total_requests: int
    requests_per_min: float
    avg_response_time: float
    uptime: float
    endpoint_stats: list[EndpointStat]
    timestamp: str
