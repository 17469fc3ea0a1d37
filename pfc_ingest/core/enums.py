"""Shared enumerations used across models, connectors and the pipeline.

All enums use the (str, Enum) mixin pattern so their values are
serializable strings, compatible with database storage and JSON output.
"""

from enum import Enum


class MilestoneSlug(str, Enum):
    """The six fixed Plan for Change policy milestones."""

    ECONOMIC_GROWTH = "economic-growth"
    HOUSING = "housing"
    NHS = "nhs"
    POLICING = "policing"
    EDUCATION = "education"
    CLEAN_ENERGY = "clean-energy"


class OutputType(str, Enum):
    """Kind of government-produced artifact tracked against a milestone."""

    BILL = "bill"
    POLICY_PAPER = "policy_paper"
    CONSULTATION = "consultation"
    GUIDANCE = "guidance"
    STATUTORY_INSTRUMENT = "statutory_instrument"
    FRAMEWORK = "framework"
    ACTION_PLAN = "action_plan"
    COMMITTEE_REPORT = "committee_report"
    GOVERNMENT_RESPONSE = "government_response"
    WHITE_PAPER = "white_paper"
    IMPACT_ASSESSMENT = "impact_assessment"


class OutputSource(str, Enum):
    """Where an output record was discovered."""

    PARLIAMENT = "parliament"
    GOVUK = "govuk"
    LEGISLATION = "legislation"
    MANUAL = "manual"


class Confidence(str, Enum):
    """How specifically the discovering query matched the output."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class House(str, Enum):
    """Chamber in which a bill stage sits."""

    COMMONS = "Commons"
    LORDS = "Lords"


class DebateHouse(str, Enum):
    """Chamber or forum a debate took place in."""

    COMMONS = "Commons"
    LORDS = "Lords"
    WESTMINSTER_HALL = "Westminster Hall"


class InquiryStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    REPORTING = "Reporting"


class ApiSource(str, Enum):
    """API a media article was fetched from."""

    GUARDIAN = "guardian"
    NEWSAPI = "newsapi"
