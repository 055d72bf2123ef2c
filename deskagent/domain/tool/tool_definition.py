from typing import Any, Dict, FrozenSet, List, Literal, Optional
from enum import Enum
import re

from pydantic import BaseModel, ConfigDict, Field

from deskagent.domain.models.agent_state import RunMode

# "(optional)" or "(optional, default is 12)" marks a parameter as not required
OPTIONAL_MARKER = re.compile(r"\(optional[),]", re.IGNORECASE)


class Capability(str, Enum):
    """Every custom function the completion service may call"""

    # Shared
    ESCALATE_TO_HUMAN = "escalate_to_human"
    SAVE_ANSWERED_QUESTION = "save_answered_question"

    # Knowledge management
    CREATE_CATEGORY = "create_category"
    GET_CATEGORIES = "get_categories"
    SEARCH_CATEGORIES = "search_categories"
    UPDATE_CATEGORY = "update_category"
    DELETE_CATEGORY = "delete_category"
    GET_ARTICLES = "get_articles"
    SEARCH_ARTICLES = "search_articles"
    GET_ARTICLE = "get_article"
    CREATE_ARTICLE = "create_article"
    UPDATE_ARTICLE = "update_article"
    DELETE_ARTICLE = "delete_article"

    # Customer support
    GET_SUPPORT_TICKETS = "get_support_tickets"
    GET_TICKET_MESSAGES = "get_ticket_messages"
    GET_TEMPLATES = "get_templates"
    CREATE_TEMPLATE = "create_template"
    UPDATE_TEMPLATE = "update_template"
    DELETE_TEMPLATE = "delete_template"
    OPEN_TICKET = "open_ticket"
    CLOSE_TICKET = "close_ticket"
    ENABLE_TICKET_AI = "enable_ticket_ai"
    DISABLE_TICKET_AI = "disable_ticket_ai"
    GET_EMAILS = "get_emails"
    SEND_EMAIL = "send_email"
    GET_HELPDESK_SETTINGS = "get_helpdesk_settings"
    UPDATE_HELPDESK_SETTINGS = "update_helpdesk_settings"
    UPDATE_HELPDESK_AI_SUGGESTIONS = "update_helpdesk_ai_suggestions"
    UPDATE_HELPDESK_AI_MESSAGES = "update_helpdesk_ai_messages"
    GET_DRAFTS = "get_drafts"
    CREATE_DRAFT = "create_draft"
    DELETE_DRAFT = "delete_draft"

    # Live chat and training
    GET_LIVE_CHAT_SESSIONS = "get_live_chat_sessions"
    GET_LIVE_CHAT_SESSION = "get_live_chat_session"
    GET_LIVE_CHAT_SETTINGS = "get_live_chat_settings"
    UPDATE_LIVE_CHAT_BASIC_SETTINGS = "update_live_chat_basic_settings"
    GET_TRAINING_RULES = "get_training_rules"
    ADD_TRAINING_RULE = "add_training_rule"
    UPDATE_TRAINING_RULE = "update_training_rule"
    DELETE_TRAINING_RULE = "delete_training_rule"
    REFRESH_KNOWLEDGE_BASE = "refresh_knowledge_base"
    GET_FAQS = "get_faqs"
    CREATE_FAQ = "create_faq"
    UPDATE_FAQ = "update_faq"
    DELETE_FAQ = "delete_faq"
    GET_SCENARIOS = "get_scenarios"
    ADD_SCENARIO = "add_scenario"
    DELETE_SCENARIO = "delete_scenario"
    GET_LIVE_VISITORS = "get_live_visitors"
    GET_METRICS_OVERVIEW = "get_metrics_overview"
    GET_TOP_PAGES = "get_top_pages"

    @classmethod
    def lookup(cls, name: str) -> Optional["Capability"]:
        try:
            return cls(name)
        except ValueError:
            return None


class ApiEndpoint(BaseModel):
    """Product API route a tool is backed by.

    Path placeholders like ``{articleId}`` are filled from the arguments.
    GET requests send the remaining arguments as query parameters, every
    other method sends them as a JSON body.
    """
    method: Literal["GET", "POST", "PUT", "DELETE"] = "GET"
    path: str


class ToolDefinition(BaseModel):
    """Declared call contract of one custom function"""
    model_config = ConfigDict(frozen=True)

    capability: Capability
    description: str
    parameters: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    endpoint: ApiEndpoint
    personas: FrozenSet[str] = Field(
        default_factory=frozenset, description="Owning personas, empty for shared tools"
    )
    modes: FrozenSet[RunMode] = frozenset({RunMode.DIRECT, RunMode.ACTION})

    @property
    def name(self) -> str:
        return self.capability.value

    @property
    def required(self) -> List[str]:
        """Parameters are required unless explicitly marked optional"""
        return [
            key for key, spec in self.parameters.items()
            if not OPTIONAL_MARKER.search(spec.get("description") or "")
        ]

    @property
    def is_shared(self) -> bool:
        return not self.personas

    def offered_to(self, persona_id: Optional[str], mode: RunMode) -> bool:
        if mode not in self.modes:
            return False
        return self.is_shared or (persona_id is not None and persona_id in self.personas)

    def to_schema(self) -> Dict[str, Any]:
        """Function schema in the shape the completion service accepts"""

        required = self.required
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": {key: dict(spec) for key, spec in self.parameters.items()},
                "required": required,
                "additionalProperties": False,
            },
            # Strict mode needs every property listed as required
            "strict": len(required) == len(self.parameters),
        }
