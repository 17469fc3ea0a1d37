"""Static milestone configuration.

One ``MilestoneMapping`` per Plan for Change milestone. The mapping carries
the headline target shown on the dashboard and the search configuration
used by the entity connectors (GOV.UK departments and terms, bill search
terms, committee ids, debate terms, Guardian tags).
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from .enums import MilestoneSlug


class MilestoneTarget(BaseModel):
    value: float
    unit: str
    date: date
    higher_is_better: bool = True
    kpi_label: str


class MilestoneMapping(BaseModel):
    slug: MilestoneSlug
    title: str
    short_title: str
    description: str
    target: MilestoneTarget
    departments: list[str] = Field(default_factory=list)  # GOV.UK org slugs
    govuk_search_terms: list[str] = Field(default_factory=list)
    govuk_doc_types: list[str] = Field(default_factory=list)
    bill_search_terms: list[str] = Field(default_factory=list)
    bill_exclude_terms: list[str] = Field(default_factory=list)
    committee_ids: list[int] = Field(default_factory=list)
    debate_search_terms: list[str] = Field(default_factory=list)
    guardian_tags: list[str] = Field(default_factory=list)
    guardian_search_terms: list[str] = Field(default_factory=list)


_POLICY_DOC_TYPES = [
    "policy_paper",
    "consultation_outcome",
    "open_consultation",
    "closed_consultation",
    "impact_assessment",
    "guidance",
    "press_release",
]

MILESTONE_MAPPINGS: list[MilestoneMapping] = [
    MilestoneMapping(
        slug=MilestoneSlug.ECONOMIC_GROWTH,
        title="Kickstart economic growth",
        short_title="Economic growth",
        description="Higher living standards in every part of the UK, measured by real household disposable income per head and GDP per head.",
        target=MilestoneTarget(
            value=0.0,
            unit="% growth",
            date=date(2029, 6, 30),
            higher_is_better=True,
            kpi_label="GDP per head, quarter on quarter",
        ),
        departments=["hm-treasury", "department-for-business-and-trade"],
        govuk_search_terms=["economic growth", "industrial strategy", "living standards"],
        govuk_doc_types=_POLICY_DOC_TYPES,
        bill_search_terms=["growth", "investment", "planning and infrastructure"],
        bill_exclude_terms=["private"],
        committee_ids=[158, 365],
        debate_search_terms=["economic growth", "living standards"],
        guardian_tags=["business/economic-growth-gdp"],
        guardian_search_terms=["UK economic growth", "GDP per head"],
    ),
    MilestoneMapping(
        slug=MilestoneSlug.HOUSING,
        title="Build 1.5 million homes",
        short_title="Housing",
        description="1.5 million safe and decent homes in England and fast-tracked planning decisions on at least 150 major economic infrastructure projects.",
        target=MilestoneTarget(
            value=300000,
            unit="homes per year",
            date=date(2029, 3, 31),
            higher_is_better=True,
            kpi_label="Net additional dwellings",
        ),
        departments=["ministry-of-housing-communities-local-government"],
        govuk_search_terms=["housebuilding", "new homes", "planning reform"],
        govuk_doc_types=_POLICY_DOC_TYPES,
        bill_search_terms=["planning", "housing", "renters"],
        bill_exclude_terms=["private"],
        committee_ids=[17],
        debate_search_terms=["housebuilding", "planning reform", "affordable housing"],
        guardian_tags=["society/housing"],
        guardian_search_terms=["1.5 million homes", "housebuilding target"],
    ),
    MilestoneMapping(
        slug=MilestoneSlug.NHS,
        title="End hospital backlogs",
        short_title="NHS",
        description="92% of patients in England wait no longer than 18 weeks for elective treatment.",
        target=MilestoneTarget(
            value=92.0,
            unit="%",
            date=date(2029, 3, 31),
            higher_is_better=True,
            kpi_label="% waiting within 18 weeks",
        ),
        departments=["department-of-health-and-social-care"],
        govuk_search_terms=["elective recovery", "waiting lists", "referral to treatment"],
        govuk_doc_types=_POLICY_DOC_TYPES,
        bill_search_terms=["health", "NHS", "mental health"],
        bill_exclude_terms=["private"],
        committee_ids=[81],
        debate_search_terms=["NHS waiting lists", "elective care"],
        guardian_tags=["society/nhs"],
        guardian_search_terms=["NHS waiting list", "18 weeks"],
    ),
    MilestoneMapping(
        slug=MilestoneSlug.POLICING,
        title="Safer streets",
        short_title="Policing",
        description="Every community has a named, contactable officer, with 13,000 additional neighbourhood police and PCSOs.",
        target=MilestoneTarget(
            value=13000,
            unit="additional officers",
            date=date(2029, 3, 31),
            higher_is_better=True,
            kpi_label="Police workforce (officers, PCSOs and specials)",
        ),
        departments=["home-office"],
        govuk_search_terms=["neighbourhood policing", "police workforce", "safer streets"],
        govuk_doc_types=_POLICY_DOC_TYPES,
        bill_search_terms=["crime and policing", "police"],
        bill_exclude_terms=["private"],
        committee_ids=[83],
        debate_search_terms=["neighbourhood policing", "police numbers"],
        guardian_tags=["uk/police"],
        guardian_search_terms=["neighbourhood police officers", "police numbers"],
    ),
    MilestoneMapping(
        slug=MilestoneSlug.EDUCATION,
        title="Give every child the best start in life",
        short_title="Education",
        description="A record 75% of five-year-olds in England ready to learn when they start school.",
        target=MilestoneTarget(
            value=75.0,
            unit="%",
            date=date(2028, 9, 1),
            higher_is_better=True,
            kpi_label="Good level of development at age 5",
        ),
        departments=["department-for-education"],
        govuk_search_terms=["early years", "school readiness", "childcare"],
        govuk_doc_types=_POLICY_DOC_TYPES,
        bill_search_terms=["children's wellbeing", "schools", "childcare"],
        bill_exclude_terms=["private"],
        committee_ids=[203],
        debate_search_terms=["early years", "school readiness"],
        guardian_tags=["education/early-years-education"],
        guardian_search_terms=["school readiness", "early years foundation stage"],
    ),
    MilestoneMapping(
        slug=MilestoneSlug.CLEAN_ENERGY,
        title="Clean power by 2030",
        short_title="Clean energy",
        description="At least 95% of electricity generation from clean sources by 2030.",
        target=MilestoneTarget(
            value=95.0,
            unit="%",
            date=date(2030, 12, 31),
            higher_is_better=True,
            kpi_label="Renewable share of electricity generation",
        ),
        departments=["department-for-energy-security-and-net-zero"],
        govuk_search_terms=["clean power 2030", "renewable energy", "Great British Energy"],
        govuk_doc_types=_POLICY_DOC_TYPES,
        bill_search_terms=["energy", "Great British Energy"],
        bill_exclude_terms=["private"],
        committee_ids=[1367],
        debate_search_terms=["clean power", "renewable energy"],
        guardian_tags=["environment/renewableenergy"],
        guardian_search_terms=["clean power 2030", "renewable electricity"],
    ),
]


def get_milestone_mapping(slug: str | MilestoneSlug) -> MilestoneMapping | None:
    """Return the mapping for ``slug``, or None for an unknown milestone."""
    for mapping in MILESTONE_MAPPINGS:
        if mapping.slug == slug:
            return mapping
    return None
