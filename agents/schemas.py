from pydantic import BaseModel, Field
from typing import Optional

class ParsedOffer(BaseModel):
    """Offer fields extracted from a free-text /hire command."""
    role: str = Field(description="The job title, i.e. what comes after 'as a' or 'as'. Never the person's name.")
    salary: str = Field(description="Salary as a full number with a dollar sign and commas, e.g. '$130,000'.")
    equity: str = Field(description="Equity percentage with the exact decimal places from the input, e.g. '0.66%'.")
    shares: Optional[str] = Field(default=None, description="Number of shares out of 10,000,000 total, with commas.")
    start_date: str = Field(description="Full start date including the year, e.g. 'May 1, 2026'.")
    slack_handle: Optional[str] = Field(default=None, description="The new hire's Slack handle exactly as written in the input, or null.")
