"""Sample customer-support tools.

Edit or replace them to cover your business: a tool may call a CRM,
a booking system or any internal API and hand the result back to the model.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from loguru import logger

from chatpilot.agent.tools.base import Tool, ToolInvocation
from chatpilot.utils.helpers import parse_datetime

_DATE_PARAMETERS = {
    "type": "object",
    "properties": {
        "date": {"type": "string", "format": "date-time", "description": "Date of the meeting"},
    },
    "required": ["date"],
}


class PlanPricesTool(Tool):
    """Static plan and pricing summary."""

    @property
    def name(self) -> str:
        return "get_plan_prices"

    @property
    def description(self) -> str:
        return "Get available plans and prices information available in Wassenger"

    async def execute(self, invocation: ToolInvocation) -> str | None:
        return "\n".join([
            "*Send & Receive messages + API + Webhooks + Team Chat + Campaigns + CRM + Analytics*",
            "",
            "- Platform Professional: 30,000 messages + unlimited inbound messages + 10 campaigns / month",
            "- Platform Business: 60,000 messages + unlimited inbound messages + 20 campaigns / month",
            "- Platform Enterprise: unlimited messages + 30 campaigns",
            "",
            "Each plan is limited to one WhatsApp number. "
            "You can purchase multiple plans if you have multiple numbers.",
            "",
            "*Find more information about the different plan prices and features here:*",
            "https://wassenger.com/#pricing",
        ])


class UserInformationTool(Tool):
    @property
    def name(self) -> str:
        return "load_user_information"

    @property
    def description(self) -> str:
        return "Find user name and email from the CRM"

    async def execute(self, invocation: ToolInvocation) -> str | None:
        return "I am sorry, I am not able to access the CRM at the moment. Please try again later."


class MeetingAvailabilityTool(Tool):
    """Business hours check: weekdays, 9 am to 5 pm."""

    @property
    def name(self) -> str:
        return "verify_meeting_availability"

    @property
    def description(self) -> str:
        return "Verify if a given date and time is available for a meeting before booking it"

    @property
    def parameters(self) -> dict[str, Any]:
        return _DATE_PARAMETERS

    async def execute(self, invocation: ToolInvocation) -> str | None:
        logger.info(f"verify_meeting_availability parameters: {invocation.parameters}")
        date = parse_datetime(invocation.parameters.get("date"))
        if date is None:
            return "Invalid date: please provide the meeting date and time"
        if date.weekday() >= 5:
            return "Not available on weekends"
        if date.hour < 9 or date.hour > 17:
            return "Not available outside business hours: 9 am to 5 pm"
        return "Available"


class BookMeetingTool(Tool):
    @property
    def name(self) -> str:
        return "book_sales_meeting"

    @property
    def description(self) -> str:
        return "Book a sales or demo meeting with the customer on a specific date and time"

    @property
    def parameters(self) -> dict[str, Any]:
        return _DATE_PARAMETERS

    async def execute(self, invocation: ToolInvocation) -> str | None:
        logger.info(f"book_sales_meeting parameters: {invocation.parameters}")
        return "Meeting booked successfully. You will receive a confirmation email shortly."


class CurrentDateTimeTool(Tool):
    @property
    def name(self) -> str:
        return "current_date_and_time"

    @property
    def description(self) -> str:
        return "What is the current date and time"

    async def execute(self, invocation: ToolInvocation) -> str | None:
        return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")


def default_tools() -> list[Tool]:
    return [
        PlanPricesTool(),
        UserInformationTool(),
        MeetingAvailabilityTool(),
        BookMeetingTool(),
        CurrentDateTimeTool(),
    ]
