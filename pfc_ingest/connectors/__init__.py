"""Data source connectors package.

Re-exports the connector base classes, exception hierarchy, and all
concrete connector classes for convenient imports.

KPI connectors (6):
    OnsGdpConnector, HousingConnector, NhsRttConnector, PoliceConnector,
    EducationConnector, EnergyTrendsConnector

Entity connectors (6):
    GovUkSearchConnector, ParliamentBillsConnector, CommitteesConnector,
    TheyWorkForYouConnector, GuardianConnector,
    GuardianOutputCoverageConnector
"""

from .base import (
    BaseConnector,
    ConnectorError,
    DataParsingError,
    EntityConnector,
    FetchError,
    KpiConnector,
    MissingCredentialError,
    RateLimitError,
)
from .committees import CommitteesConnector
from .education import EducationConnector
from .energy import EnergyTrendsConnector
from .govuk_search import GovUkSearchConnector
from .guardian import GuardianConnector, GuardianOutputCoverageConnector
from .housing import HousingConnector
from .nhs_rtt import NhsRttConnector
from .ons import OnsGdpConnector
from .parliament_bills import ParliamentBillsConnector
from .police import PoliceConnector
from .theyworkforyou import TheyWorkForYouConnector

# Refresh order of the headline-metric connectors
KPI_CONNECTORS = (
    OnsGdpConnector,
    HousingConnector,
    NhsRttConnector,
    PoliceConnector,
    EducationConnector,
    EnergyTrendsConnector,
)

__all__ = [
    # Base
    "BaseConnector",
    "EntityConnector",
    "KpiConnector",
    "ConnectorError",
    "DataParsingError",
    "FetchError",
    "MissingCredentialError",
    "RateLimitError",
    # KPI connectors
    "KPI_CONNECTORS",
    "OnsGdpConnector",
    "HousingConnector",
    "NhsRttConnector",
    "PoliceConnector",
    "EducationConnector",
    "EnergyTrendsConnector",
    # Entity connectors
    "GovUkSearchConnector",
    "ParliamentBillsConnector",
    "CommitteesConnector",
    "TheyWorkForYouConnector",
    "GuardianConnector",
    "GuardianOutputCoverageConnector",
]
