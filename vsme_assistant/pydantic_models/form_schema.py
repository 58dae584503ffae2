"""EFRAG VSME core form schema.

Static descriptors for the form fields the assistant extracts. Defined once as
configuration; never created or mutated at runtime.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

FieldType = Literal["text", "number", "date", "select", "multiselect", "boolean", "textarea"]


class VSMEFormField(BaseModel):
    """Schema entry for one report field."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    label: str
    type: FieldType
    description: str
    section: Literal["general", "environmental", "social", "governance"]
    required: bool = False
    options: tuple[str, ...] | None = None
    unit: str | None = None

    def describe(self) -> str:
        """One-line description used in prompts."""
        line = f"- {self.name}: {self.description}"
        if self.unit:
            line += f" (Unit: {self.unit})"
        if self.options:
            line += f" [Options: {', '.join(self.options)}]"
        return line


def _field(name, label, type, description, section, required=False, options=None, unit=None):
    return VSMEFormField(
        name=name,
        label=label,
        type=type,
        description=description,
        section=section,
        required=required,
        options=tuple(options) if options else None,
        unit=unit,
    )


VSME_CORE_FIELDS: tuple[VSMEFormField, ...] = (
    # General information
    _field("entityName", "Name of the reporting entity", "text",
           "The full legal name of the entity preparing this sustainability report", "general", True),
    _field("identifierType", "Identifier type", "select",
           "Type of unique identifier (LEI, EU ID, DUNS, Perm ID)", "general", True,
           options=["LEI", "EU ID", "DUNS", "Perm ID"]),
    _field("identifierValue", "Identifier value", "text", "The unique identifier value", "general", True),
    _field("currency", "Currency", "select", "Currency for all monetary values", "general", True),
    _field("legalForm", "Legal form", "select", "Legal structure of the entity", "general", True),
    _field("headOfficeCountry", "Head office country", "select",
           "Country where head office is located", "general", True),
    _field("reportingPeriodStart", "Reporting period start", "date",
           "First day of the reporting period (YYYY-MM-DD)", "general", True),
    _field("reportingPeriodEnd", "Reporting period end", "date",
           "Last day of the reporting period (YYYY-MM-DD)", "general", True),
    _field("employeeCount", "Number of employees", "number", "Total number of employees", "general", True),
    _field("turnover", "Turnover", "number", "Annual turnover/revenue", "general", True),
    _field("balanceSheetSize", "Balance sheet size", "number", "Total balance sheet size", "general", True),

    # Environmental: energy and emissions
    _field("electricityRenewable", "Renewable electricity consumption", "number",
           "Consumption from renewable sources", "environmental", unit="MWh"),
    _field("electricityNonRenewable", "Non-renewable electricity consumption", "number",
           "Consumption from non-renewable sources", "environmental", unit="MWh"),
    _field("fuelsRenewable", "Renewable fuels consumption", "number",
           "Consumption from renewable fuels", "environmental", unit="MWh"),
    _field("fuelsNonRenewable", "Non-renewable fuels consumption", "number",
           "Consumption from non-renewable fuels", "environmental", unit="MWh"),
    _field("currentScope1", "Scope 1 GHG emissions", "number",
           "Direct GHG emissions", "environmental", unit="tonnes CO2e"),
    _field("currentScope2Location", "Scope 2 GHG emissions (location-based)", "number",
           "Indirect emissions from electricity (location-based)", "environmental", unit="tonnes CO2e"),
    _field("currentScope2Market", "Scope 2 GHG emissions (market-based)", "number",
           "Indirect emissions from electricity (market-based)", "environmental", unit="tonnes CO2e"),
    _field("currentScope3Emissions", "Scope 3 GHG emissions", "number",
           "Other indirect emissions", "environmental", unit="tonnes CO2e"),

    # Environmental: water and waste
    _field("waterConsumption", "Water consumption", "number",
           "Total water consumption", "environmental", unit="m³"),
    _field("hazardousWaste", "Hazardous waste", "number",
           "Hazardous waste generated", "environmental", unit="tonnes"),
    _field("nonHazardousWaste", "Non-hazardous waste", "number",
           "Non-hazardous waste generated", "environmental", unit="tonnes"),

    # Social: workforce
    _field("femaleEmployees", "Female employees", "number", "Number of female employees", "social"),
    _field("maleEmployees", "Male employees", "number", "Number of male employees", "social"),
    _field("temporaryEmployees", "Temporary employees", "number", "Number of temporary employees", "social"),
    _field("permanentEmployees", "Permanent employees", "number", "Number of permanent employees", "social"),
    _field("fatalitiesWorkRelated", "Work-related fatalities", "number",
           "Number of work-related fatalities", "social"),
    _field("recordableWorkInjuries", "Recordable work-related injuries", "number",
           "Number of recordable work-related injuries", "social"),
    _field("averageTrainingHours", "Average training hours", "number",
           "Average training hours per employee", "social", unit="hours"),

    # Governance
    _field("femaleBoardMembers", "Female board members", "number", "Number of female board members", "governance"),
    _field("totalBoardMembers", "Total board members", "number", "Total number of board members", "governance"),
    _field("corruptionConvictions", "Corruption convictions", "number",
           "Number of corruption-related convictions", "governance"),
    _field("briberyConvictions", "Bribery convictions", "number",
           "Number of bribery-related convictions", "governance"),
)

VSME_FIELD_NAMES: frozenset[str] = frozenset(f.name for f in VSME_CORE_FIELDS)


def get_field(name: str, schema: tuple[VSMEFormField, ...] = VSME_CORE_FIELDS) -> VSMEFormField | None:
    """Look up a schema entry by name."""
    for entry in schema:
        if entry.name == name:
            return entry
    return None
