import re
from datetime import date, datetime
from typing import Dict, Optional

from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate
from pydantic import ValidationError

from exceptions import ParseError
from logging_config import setup_logger
from .schemas import ParsedOffer

logger = setup_logger("OfferParser")

# <@U123>, <@U123|dan>, @dan, @dan.smith
HANDLE_PATTERN = re.compile(r"<@[^>\s]+>|(?<![\w.])@[\w.\-]+")
DATE_FORMATS = ["%B %d, %Y", "%B %d %Y", "%b %d, %Y", "%b %d %Y", "%Y-%m-%d", "%m/%d/%Y"]


def create_offer_parser_agent(llm):
    """
    Creates the chain that turns a /hire message into ParsedOffer JSON.

    Args:
        llm: The chat model used for extraction

    Returns:
        A chain that takes message and current_year, returns a dict
    """
    parser = JsonOutputParser(pydantic_object=ParsedOffer)

    prompt = ChatPromptTemplate.from_messages(
        [
            (
                "system",
                "You parse hiring messages into structured data.\n\n"
                "RULES:\n"
                "1. The role is what comes AFTER 'as a' or 'as'. It is the job title, NOT the person's name. Remove commas from it.\n"
                "2. Format the salary as a full number with a dollar sign and commas ('$130,000', not '$130k').\n"
                "3. NEVER round the equity percentage. Keep the exact decimal places from the input ('0.66%' stays '0.66%').\n"
                "4. Shares are computed from a total of 10,000,000 shares (0.66% is '66,000').\n"
                "5. Write the start date in full using the year {current_year} ('May 1' becomes 'May 1, {current_year}'). "
                "If the input names a different year, use {current_year} anyway.\n"
                "6. Keep the Slack handle in the exact format of the input, including '@' and any angle brackets "
                "('<@U1234>', '@dan', '@dan.smith'). Use null if there is no handle.\n"
                "7. Be flexible with phrasing; look for salary and equity regardless of wording.\n\n"
                "{format_instructions}",
            ),
            ("human", "Message: {message}"),
        ]
    )
    prompt = prompt.partial(format_instructions=parser.get_format_instructions())

    return prompt | llm | parser


class OfferParser:
    """Wraps the extraction chain with post-validation."""

    def __init__(self, agent, allow_future_years: bool = False, today=None):
        self.agent = agent
        self.allow_future_years = allow_future_years
        self._today = today or date.today

    def parse(self, text: str) -> Dict:
        """
        Returns OfferRecord fields (role, salary, equity_percent, start_date,
        candidate_handle). Raises ParseError when the text cannot be understood.
        """
        if not text or not text.strip():
            raise ParseError("Empty hire message")

        today = self._today()
        try:
            raw = self.agent.invoke({"message": text, "current_year": today.year})
        except Exception as e:
            logger.error(f"Extraction call failed: {e}", exc_info=True)
            raise ParseError("Extraction service failed") from e

        try:
            parsed = ParsedOffer.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Extraction returned an invalid result: {raw!r}")
            raise ParseError("Extraction result is missing required fields") from e

        role = parsed.role.replace(",", "").strip()
        if not role:
            raise ParseError("No role found in message")

        fields = {
            "role": role,
            "salary": normalize_salary(parsed.salary),
            "equity_percent": normalize_equity(parsed.equity),
            "start_date": normalize_start_date(parsed.start_date, today, self.allow_future_years),
            "candidate_handle": pick_handle(text, parsed.slack_handle),
        }
        logger.info(f"Parsed hire message: {fields}")
        return fields


def normalize_salary(salary: str) -> str:
    salary = (salary or "").strip()
    digits = re.sub(r"[^\d.]", "", salary)
    if not digits:
        raise ParseError(f"Could not read salary {salary!r}")
    return salary if salary.startswith("$") else f"${salary}"


def normalize_equity(equity: str) -> str:
    equity = (equity or "").replace(" ", "").strip()
    if not equity.endswith("%"):
        equity = f"{equity}%"
    if not re.match(r"^\d+(\.\d+)?%$", equity):
        raise ParseError(f"Could not read equity {equity!r}")
    return equity


def normalize_start_date(value: str, today: date, allow_future_years: bool = False) -> date:
    """Parses the start date and pins it to the current year unless future years are allowed."""
    value = (value or "").strip().rstrip(".")
    candidates = [value, f"{value}, {today.year}"]
    for candidate in candidates:
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(candidate, fmt).date()
            except ValueError:
                continue
            if allow_future_years and parsed.year >= today.year:
                return parsed
            try:
                return parsed.replace(year=today.year)
            except ValueError as e:
                raise ParseError(f"{value} does not exist in {today.year}") from e
    raise ParseError(f"Could not read start date {value!r}")


def pick_handle(text: str, extracted: Optional[str]) -> Optional[str]:
    """
    Returns the handle in the notation the input used.
    The extracted handle is trusted only if it appears verbatim in the text.
    """
    if extracted and extracted in text and HANDLE_PATTERN.fullmatch(extracted):
        return extracted
    match = HANDLE_PATTERN.search(text)
    if match:
        return match.group(0)
    return None
