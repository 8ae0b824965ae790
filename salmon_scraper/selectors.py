"""
Selectors configuration for the ADF&G Bristol Bay harvest summary page.

Pydantic models are used so that any missing or malformed selector simply
raises a validation error, making it easier to spot typos early. The page is
maintained by a third party; when its layout changes, the selectors below
are the only thing that should need updating.
"""

from typing import List

from pydantic import BaseModel, Field, field_validator

HARVEST_URL = "https://www.adfg.alaska.gov/index.cfm?adfg=commercialbyareabristolbay.harvestsummary"


class FormSelectors(BaseModel):
    """
    Selectors for the date dropdown and its submit button.

    The primary selector is tried first (and waited for); the fallbacks are
    probed once each, in order, when the primary never appears.
    """

    date_control: str = Field(
        'select[name="dateDropdown"]',
        description="The <select> whose option values are MM-DD-YYYY run dates.",
    )
    date_control_fallbacks: List[str] = Field(
        default_factory=lambda: [
            'select[name="rundate"]',
            'select[name="RunDate"]',
            'select[name="run_date"]',
            "select#dateDropdown",
            "select",
        ],
        description="Alternatives probed when the primary dropdown selector finds nothing.",
    )
    submit_control: str = Field(
        'input[type="submit"][value="Go!"]',
        description="Button that reloads the tables for the selected date.",
    )
    submit_fallbacks: List[str] = Field(
        default_factory=lambda: [
            'input[type="submit"]',
            'input[value="Go"]',
            "button",
        ],
        description="Alternatives probed when the primary submit selector finds nothing.",
    )

    @field_validator("date_control", "submit_control", mode="before")
    @classmethod
    def _strip_strings(cls, value: str) -> str:
        """Normalize accidental whitespace in selector definitions."""
        if isinstance(value, str):
            return value.strip()
        return value


class PageSelectors(BaseModel):
    """
    Top-level selectors for the harvest summary page.

    Attributes
    ----------
    url:
        Page URL to visit. Must be reachable without authentication.
    form:
        `FormSelectors` for choosing and submitting a run date.
    tables:
        Selector matching every data table; each match is classified by its
        text, so it is deliberately broad.
    """

    url: str = Field(HARVEST_URL, description="Target page URL.")
    form: FormSelectors = Field(default_factory=FormSelectors)
    tables: str = Field("table", description="Selector for the rendered data tables.")


def get_default_page() -> PageSelectors:
    return PageSelectors()
