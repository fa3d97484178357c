from typing import List, Optional
from pydantic import BaseModel, Field


# Response Models
class PriceStats(BaseModel):
    """Summary statistics over the prices found."""

    average: float
    median: float
    min: float
    max: float
    count: int


class PriceResults(BaseModel):
    totalPricesFound: int = Field(description="Number of prices adopted")
    prices: List[float]
    stats: PriceStats


class StrategyAttemptInfo(BaseModel):
    strategy: str
    count: int


class DebugInfo(BaseModel):
    """Extraction diagnostics, only returned when debug=true."""

    strategy: str = Field(description="Strategy whose prices were adopted")
    attempts: List[StrategyAttemptInfo]
    warnings: List[str] = []


class PriceSearchResponse(BaseModel):
    """Response for a price lookup."""

    searchTerm: str
    timestamp: str = Field(description="ISO-8601 UTC time of the lookup")
    results: PriceResults
    debug: Optional[DebugInfo] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str
    message: str
