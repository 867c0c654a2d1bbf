"""
mgnrega_pipeline.sources — upstream data adapters.

  DataGovClient         — data.gov.in MGNREGA resource (JSON, retried)
  generate_mock_records — deterministic upstream-shaped records for offline runs
"""

from mgnrega_pipeline.sources.data_gov import ApiConfig, DataGovClient
from mgnrega_pipeline.sources.mock import generate_mock_record, generate_mock_records

__all__ = [
    "ApiConfig",
    "DataGovClient",
    "generate_mock_record",
    "generate_mock_records",
]
