"""Bot behaviour configuration schema."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

# A metadata value is either a literal (``{now}`` is expanded) or a callable
# resolved right before the patch is sent.
MetadataValue = str | Callable[[], str]


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


DEFAULT_BOT_INSTRUCTIONS = """You are a smart virtual customer support assistant who works for Wassenger.
You can identify yourself as Molly, the Wassenger chatbot assistant.
You will be chatting with random customers who may contact you with general queries about the product.
Wassenger is a cloud solution that offers WhatsApp API and multi-user live communication services designed for businesses and developers.
Wassenger also enables customers to automate WhatsApp communication and build chatbots.
You are an expert customer support agent.
Be polite. Be gentle. Be helpful. Be emphatic. Be concise in your responses.
Politely reject any queries that are not related to customer support or Wassenger itself.
Strictly stick to your role as customer support virtual assistant for Wassenger.
If you can't help with something, ask the user to type *human* in order to talk with customer support."""

DEFAULT_WELCOME_MESSAGE = (
    "Hey there 👋 Welcome to this AI chatbot demo using *Wassenger API*! "
    "I can also speak many languages 😁"
)

DEFAULT_HELP_MESSAGE = """Don't be shy 😁 try asking anything to the AI chatbot, using natural language!

Example queries:

1️⃣ Explain me what is Wassenger
2️⃣ Can I use Wassenger to send automatic messages?
3️⃣ Can I schedule messages using Wassenger?
4️⃣ Is there a free trial available?

Type *human* to talk with a person. The chat will be assigned to an available member of the team.

Give it a try! 😁"""

DEFAULT_UNKNOWN_COMMAND_MESSAGE = """I'm sorry, I can only understand text. Can you please describe your query?

If you would like to chat with a human, just reply with *human*."""

DEFAULT_ASSIGNMENT_MESSAGE = (
    "This chat was assigned to a member of our support team. "
    "You will be contacted shortly."
)

DEFAULT_AUDIO_NOT_SUPPORTED_MESSAGE = (
    "Audio messages are not supported: please send your query as text."
)

DEFAULT_MEDIA_NOT_SUPPORTED_MESSAGE = (
    "This file type cannot be processed: please send your query as text."
)


class _Base(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


class MetadataEntry(_Base):
    """Contact metadata entry applied by the bot."""

    key: str
    value: MetadataValue

    def resolve(self) -> str:
        """Resolve the entry value at dispatch time."""
        value = self.value() if callable(self.value) else self.value
        if not isinstance(value, str):
            return ""
        if "{now}" in value:
            value = value.replace("{now}", _utc_now_iso())
        return value


class MessagesConfig(_Base):
    bot_instructions: str = DEFAULT_BOT_INSTRUCTIONS
    welcome_message: str = DEFAULT_WELCOME_MESSAGE
    default_message: str = DEFAULT_HELP_MESSAGE
    unknown_command_message: str = DEFAULT_UNKNOWN_COMMAND_MESSAGE
    assignment_message: str = DEFAULT_ASSIGNMENT_MESSAGE
    audio_not_supported_message: str = DEFAULT_AUDIO_NOT_SUPPORTED_MESSAGE
    media_not_supported_message: str = DEFAULT_MEDIA_NOT_SUPPORTED_MESSAGE


class FiltersConfig(_Base):
    skip_chat_with_labels: list[str] = Field(default_factory=lambda: ["no-bot"])
    # E164 numbers, no spaces or symbols
    numbers_whitelist: list[str] = Field(default_factory=list)
    numbers_blacklist: list[str] = Field(default_factory=lambda: ["1234567890"])
    skip_archived_chats: bool = True


class TeamConfig(_Base):
    enable_member_chat_assignment: bool = True
    assign_only_to_online_members: bool = False
    online_window_minutes: int = 30
    skip_team_roles_from_assignment: list[str] = Field(default_factory=lambda: ["admin"])
    # 24-char hexadecimal member ids
    team_whitelist: list[str] = Field(default_factory=list)
    team_blacklist: list[str] = Field(default_factory=list)
    cache_ttl_seconds: int = 600


class LabelsConfig(_Base):
    set_labels_on_bot_chats: list[str] = Field(default_factory=lambda: ["bot"])
    remove_labels_after_assignment: bool = True
    set_labels_on_user_assignment: list[str] = Field(default_factory=lambda: ["from-bot"])


class MetadataConfig(_Base):
    set_metadata_on_bot_chats: list[MetadataEntry] = Field(
        default_factory=lambda: [MetadataEntry(key="bot_start", value=_utc_now_iso)]
    )
    set_metadata_on_assignment: list[MetadataEntry] = Field(
        default_factory=lambda: [MetadataEntry(key="bot_stop", value=_utc_now_iso)]
    )
    quota_status_key: str = "bot:chatpilot:status"
    quota_exceeded_value: str = "too_many_messages"
    quota_cleared_value: str = "active"


class FeaturesConfig(_Base):
    audio_input: bool = True
    audio_output: bool = False
    # Always reply with voice, regardless of the inbound type
    audio_only: bool = False
    voice: str = "echo"
    voice_speed: float = 1.0
    image_input: bool = True


class LimitsConfig(_Base):
    max_input_characters: int = 1000
    max_output_tokens: int = 1000
    chat_history_limit: int = 20
    chat_history_limit_scan: int = 40
    history_backfill_size: int = 25
    max_messages_per_chat: int = 500
    max_messages_per_chat_window_seconds: int = 24 * 60 * 60
    max_audio_duration: int = 2 * 60
    max_image_size: int = 2 * 1024 * 1024
    max_tts_characters: int = 4096
    max_tool_rounds: int = 10


class GenerationConfig(_Base):
    temperature: float = 0.2
    # Tool names to expose; None exposes every registered tool
    tools: list[str] | None = None


class Config(_Base):
    """Root bot configuration."""

    messages: MessagesConfig = Field(default_factory=MessagesConfig)
    filters: FiltersConfig = Field(default_factory=FiltersConfig)
    team: TeamConfig = Field(default_factory=TeamConfig)
    labels: LabelsConfig = Field(default_factory=LabelsConfig)
    metadata: MetadataConfig = Field(default_factory=MetadataConfig)
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)

    @property
    def required_labels(self) -> list[str]:
        """Labels the bot writes and therefore needs to exist on the device."""
        labels = self.labels.set_labels_on_user_assignment + self.labels.set_labels_on_bot_chats
        return list(dict.fromkeys(labels))
