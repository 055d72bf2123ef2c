"""
Declared custom functions, grouped by the persona that owns them.

The business logic behind each entry lives in the product API; a tool is
only its schema plus the route it calls.
"""

from typing import Any, Dict, List

from deskagent.domain.models.agent_state import RunMode
from deskagent.domain.tool.tool_definition import ApiEndpoint, Capability, ToolDefinition

EMMA = frozenset({"emma"})
CHARLIE = frozenset({"charlie"})
MARQUAVIOUS = frozenset({"marquavious"})
TRAINING = frozenset({"marquavious", "sung-wen"})


def _string(description: str, **extra: Any) -> Dict[str, Any]:
    return {"type": "string", "description": description, **extra}


def _number(description: str) -> Dict[str, Any]:
    return {"type": "number", "description": description}


def _boolean(description: str) -> Dict[str, Any]:
    return {"type": "boolean", "description": description}


_PAGE_LIMIT = _number("Number of results to retrieve (optional, default is 12)")
_LAST_DOC_ID = _string("Last document ID for pagination (optional, used to get next page of results)")


SHARED_TOOLS: List[ToolDefinition] = [
    ToolDefinition(
        capability=Capability.ESCALATE_TO_HUMAN,
        description=(
            "Escalate the conversation to a human agent. Use this when you are not 100% certain "
            "about an answer, cannot find the information needed, or when the query is complex "
            "and requires human judgment. Honesty is critical - always escalate rather than guess."
        ),
        parameters={
            "reason": _string(
                "Brief explanation of why escalation is needed (e.g., 'Unable to find specific "
                "pricing information', 'Uncertain about the correct action to take')"
            ),
            "urgency": _string("Urgency level of the escalation", enum=["low", "medium", "high"]),
            "summary": _string("Brief summary of the issue or question for the human agent (optional)"),
        },
        endpoint=ApiEndpoint(method="POST", path="/api/notify/question"),
        modes=frozenset({RunMode.ACTION}),
    ),
    ToolDefinition(
        capability=Capability.SAVE_ANSWERED_QUESTION,
        description=(
            "Save a question and its answer to the answered collection in the knowledge base. "
            "Use this once a human has answered an escalated question."
        ),
        parameters={
            "question": _string("The question that was asked"),
            "answer": _string("The answer that was provided"),
            "ticket_id": _string("The ID of the support ticket associated with this question (optional)"),
            "session_id": _string("The ID of the chat session where this question was asked (optional)"),
            "more_info": _string("Additional information or context about the question and answer (optional)"),
        },
        endpoint=ApiEndpoint(method="POST", path="/api/answered"),
        personas=TRAINING,
        modes=frozenset({RunMode.DIRECT}),
    ),
]


KNOWLEDGE_TOOLS: List[ToolDefinition] = [
    ToolDefinition(
        capability=Capability.CREATE_CATEGORY,
        description="Create a new category in the knowledge base to organize articles.",
        parameters={
            "name": _string("The name of the category"),
            "description": _string("A description of what this category contains"),
            "link": _string("A URL-friendly identifier (only letters, numbers, hyphens, and underscores allowed)"),
        },
        endpoint=ApiEndpoint(method="POST", path="/api/category/create"),
        personas=EMMA,
    ),
    ToolDefinition(
        capability=Capability.GET_CATEGORIES,
        description="Retrieve categories from the knowledge base.",
        parameters={"limit": _PAGE_LIMIT, "lastDocId": _LAST_DOC_ID},
        endpoint=ApiEndpoint(path="/api/category"),
        personas=EMMA,
    ),
    ToolDefinition(
        capability=Capability.SEARCH_CATEGORIES,
        description="Search for categories by name or description.",
        parameters={
            "query": _string("Search query to find categories by name or description"),
            "limit": _PAGE_LIMIT,
            "lastDocId": _LAST_DOC_ID,
        },
        endpoint=ApiEndpoint(path="/api/category/search"),
        personas=EMMA,
    ),
    ToolDefinition(
        capability=Capability.UPDATE_CATEGORY,
        description="Update an existing category's name, description, or link.",
        parameters={
            "categoryId": _string("The ID of the category to update"),
            "name": _string("New name for the category (optional)"),
            "description": _string("New description for the category (optional)"),
            "link": _string("New URL-friendly identifier for the category (optional)"),
        },
        endpoint=ApiEndpoint(method="PUT", path="/api/category/update"),
        personas=EMMA,
    ),
    ToolDefinition(
        capability=Capability.DELETE_CATEGORY,
        description="Delete a category from the knowledge base permanently.",
        parameters={"categoryId": _string("The ID of the category to delete")},
        endpoint=ApiEndpoint(method="DELETE", path="/api/category/delete"),
        personas=EMMA,
    ),
    ToolDefinition(
        capability=Capability.GET_ARTICLES,
        description="Retrieve articles from the knowledge base, optionally filtered by category.",
        parameters={
            "categoryId": _string("Category ID or comma-separated list of category IDs to filter by (optional)"),
            "limit": _PAGE_LIMIT,
            "lastDocId": _LAST_DOC_ID,
        },
        endpoint=ApiEndpoint(path="/api/articles"),
        personas=EMMA,
    ),
    ToolDefinition(
        capability=Capability.SEARCH_ARTICLES,
        description="Search for articles by title, description, or content.",
        parameters={
            "query": _string("Search query to find articles by title, description, or content"),
            "categoryId": _string("Category ID or comma-separated list of category IDs to filter by (optional)"),
            "limit": _PAGE_LIMIT,
            "lastDocId": _LAST_DOC_ID,
        },
        endpoint=ApiEndpoint(path="/api/articles/search"),
        personas=EMMA,
    ),
    ToolDefinition(
        capability=Capability.GET_ARTICLE,
        description="Get a specific article by its ID.",
        parameters={"articleId": _string("The ID of the article to retrieve")},
        endpoint=ApiEndpoint(path="/api/articles/{articleId}"),
        personas=EMMA,
    ),
    ToolDefinition(
        capability=Capability.CREATE_ARTICLE,
        description="Create a new article in a category.",
        parameters={
            "categoryId": _string("The ID of the category where the article should be created"),
            "title": _string("The title of the article"),
            "description": _string("A brief description of the article"),
            "link": _string("A URL-friendly identifier for the article"),
            "content": _string("The HTML content of the article (optional)"),
            "rawText": _string("The plain text content of the article (optional)"),
            "published": _boolean("Whether the article should be published (optional, default is false)"),
        },
        endpoint=ApiEndpoint(method="POST", path="/api/articles/create"),
        personas=EMMA,
    ),
    ToolDefinition(
        capability=Capability.UPDATE_ARTICLE,
        description="Update an existing article or move it to a different category.",
        parameters={
            "categoryId": _string("The current category ID of the article"),
            "articleId": _string("The ID of the article to update"),
            "title": _string("New title for the article (optional)"),
            "description": _string("New description for the article (optional)"),
            "content": _string("New HTML content for the article (optional)"),
            "published": _boolean("Whether the article should be published (optional)"),
            "newCategoryId": _string("New category ID to move the article to (optional)"),
        },
        endpoint=ApiEndpoint(method="PUT", path="/api/articles/update"),
        personas=EMMA,
    ),
    ToolDefinition(
        capability=Capability.DELETE_ARTICLE,
        description="Delete an article from the knowledge base permanently.",
        parameters={
            "categoryId": _string("The category ID where the article is located"),
            "articleId": _string("The ID of the article to delete"),
        },
        endpoint=ApiEndpoint(method="DELETE", path="/api/articles/delete"),
        personas=EMMA,
    ),
]


SUPPORT_TOOLS: List[ToolDefinition] = [
    ToolDefinition(
        capability=Capability.GET_SUPPORT_TICKETS,
        description="Retrieve support tickets from the help desk and their status.",
        parameters={
            "limit": _number("Number of tickets to retrieve (optional, default is 10)"),
            "startAfter": _string("Timestamp in milliseconds for pagination (optional)"),
        },
        endpoint=ApiEndpoint(path="/api/inbox/tickets"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.GET_TICKET_MESSAGES,
        description="Get the conversation history of a support ticket.",
        parameters={"ticketId": _string("The ID of the ticket to get messages for")},
        endpoint=ApiEndpoint(path="/api/inbox/messages"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.GET_TEMPLATES,
        description="Retrieve all email response templates.",
        endpoint=ApiEndpoint(path="/api/inbox/templates"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.CREATE_TEMPLATE,
        description="Create a new email response template.",
        parameters={
            "title": _string("The title of the template"),
            "body": _string("The body/content of the template"),
        },
        endpoint=ApiEndpoint(method="POST", path="/api/inbox/templates"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.UPDATE_TEMPLATE,
        description="Update an existing response template's title or body.",
        parameters={
            "templateId": _string("The ID of the template to update"),
            "title": _string("New title for the template (optional)"),
            "body": _string("New body/content for the template (optional)"),
        },
        endpoint=ApiEndpoint(method="PUT", path="/api/inbox/templates/update"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.DELETE_TEMPLATE,
        description="Delete a response template permanently.",
        parameters={"templateId": _string("The ID of the template to delete")},
        endpoint=ApiEndpoint(method="DELETE", path="/api/inbox/templates/delete"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.OPEN_TICKET,
        description="Change a support ticket's status to Open.",
        parameters={"ticketId": _string("The ID of the ticket to open")},
        endpoint=ApiEndpoint(method="PUT", path="/api/inbox/ticket/open"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.CLOSE_TICKET,
        description="Change a support ticket's status to Closed.",
        parameters={"ticketId": _string("The ID of the ticket to close")},
        endpoint=ApiEndpoint(method="PUT", path="/api/inbox/ticket/close"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.ENABLE_TICKET_AI,
        description="Turn on AI assistance for a specific ticket.",
        parameters={"ticketId": _string("The ID of the ticket to enable AI for")},
        endpoint=ApiEndpoint(method="PUT", path="/api/inbox/ticket/ai/enable"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.DISABLE_TICKET_AI,
        description="Turn off AI assistance for a specific ticket.",
        parameters={"ticketId": _string("The ID of the ticket to disable AI for")},
        endpoint=ApiEndpoint(method="PUT", path="/api/inbox/ticket/ai/disable"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.GET_EMAILS,
        description="Retrieve the email addresses available for sending responses.",
        endpoint=ApiEndpoint(path="/api/inbox/emails"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.SEND_EMAIL,
        description="Send an email reply to a ticket.",
        parameters={
            "ticketId": _string("The ID of the ticket to send email for"),
            "to": _string("Recipient email address"),
            "subject": _string("Email subject line"),
            "message": _string("Email message body"),
            "replyToId": _string("Message ID to reply to (optional, for threading)"),
            "references": _string("Email references header for threading (optional)"),
        },
        endpoint=ApiEndpoint(method="POST", path="/api/inbox/emails/send"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.GET_HELPDESK_SETTINGS,
        description="Get helpdesk settings including subdomain, email forwarding and AI settings.",
        endpoint=ApiEndpoint(path="/api/settings/helpdesk"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.UPDATE_HELPDESK_SETTINGS,
        description="Update the default email forwarding address of the helpdesk.",
        parameters={
            "defaultForward": _string("Default email address for forwarding helpdesk tickets (optional)"),
        },
        endpoint=ApiEndpoint(method="PUT", path="/api/settings/helpdesk"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.UPDATE_HELPDESK_AI_SUGGESTIONS,
        description="Enable or disable AI response suggestions for the helpdesk.",
        parameters={"aiSuggestionsOn": _boolean("Whether to enable (true) or disable (false) AI suggestions")},
        endpoint=ApiEndpoint(method="PUT", path="/api/settings/helpdesk/ai-suggestions"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.UPDATE_HELPDESK_AI_MESSAGES,
        description="Enable or disable AI auto-response messages for the helpdesk.",
        parameters={"aiMessagesOn": _boolean("Whether to enable (true) or disable (false) AI auto-responses")},
        endpoint=ApiEndpoint(method="PUT", path="/api/settings/helpdesk/ai-messages"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.GET_DRAFTS,
        description="Retrieve AI-generated draft responses for tickets.",
        parameters={
            "limit": _number("Number of drafts to retrieve (optional, default is 20)"),
            "lastDocId": _LAST_DOC_ID,
        },
        endpoint=ApiEndpoint(path="/api/inbox/drafts"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.CREATE_DRAFT,
        description="Save an AI-generated draft response for a ticket so it can be reviewed later.",
        parameters={
            "ticketId": _string("The ID of the ticket this draft is for"),
            "aiResponse": _string("The response text to save as a draft (body only, no subject)"),
        },
        endpoint=ApiEndpoint(method="POST", path="/api/inbox/drafts"),
        personas=CHARLIE,
    ),
    ToolDefinition(
        capability=Capability.DELETE_DRAFT,
        description="Delete a draft response that is no longer needed.",
        parameters={"draftId": _string("The ID of the draft to delete")},
        endpoint=ApiEndpoint(method="DELETE", path="/api/inbox/drafts"),
        personas=CHARLIE,
    ),
]


LIVE_CHAT_TOOLS: List[ToolDefinition] = [
    ToolDefinition(
        capability=Capability.GET_LIVE_CHAT_SESSIONS,
        description="Get active or recent live chat conversations with customers.",
        parameters={
            "limit": _number("Number of sessions to retrieve (optional, default is 10)"),
            "startAfter": _string("Document ID for pagination (optional)"),
        },
        endpoint=ApiEndpoint(path="/api/livechat/sessions"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.GET_LIVE_CHAT_SESSION,
        description="Get a single live chat session with its messages.",
        parameters={"sessionId": _string("The ID of the live chat session")},
        endpoint=ApiEndpoint(path="/api/livechat/sessions/{sessionId}"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.GET_LIVE_CHAT_SETTINGS,
        description="Get all live chat widget settings.",
        endpoint=ApiEndpoint(path="/api/settings/live-chat"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.UPDATE_LIVE_CHAT_BASIC_SETTINGS,
        description="Update the basic live chat settings.",
        parameters={
            "enabled": _boolean("Whether the live chat widget is enabled (optional)"),
            "aiEnabled": _boolean("Whether the AI answers live chat messages (optional)"),
            "welcomeMessage": _string("Greeting shown when a chat opens (optional)"),
        },
        endpoint=ApiEndpoint(method="PUT", path="/api/settings/live-chat/basic"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.GET_TRAINING_RULES,
        description="Get all training rules that shape how the AI answers.",
        endpoint=ApiEndpoint(path="/api/training/rules"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.ADD_TRAINING_RULE,
        description="Add a new training rule.",
        parameters={"text": _string("The rule text")},
        endpoint=ApiEndpoint(method="POST", path="/api/training/rules"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.UPDATE_TRAINING_RULE,
        description="Update the text of a training rule or enable/disable it.",
        parameters={
            "ruleId": _string("The ID of the rule to update"),
            "text": _string("New rule text (optional)"),
            "enabled": _boolean("Whether the rule should be enabled (optional)"),
        },
        endpoint=ApiEndpoint(method="PUT", path="/api/training/rules"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.DELETE_TRAINING_RULE,
        description="Delete a training rule.",
        parameters={"ruleId": _string("The ID of the rule to delete")},
        endpoint=ApiEndpoint(method="DELETE", path="/api/training/rules"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.REFRESH_KNOWLEDGE_BASE,
        description=(
            "Refresh the knowledge base by regenerating and uploading training data. "
            "This can take some time."
        ),
        parameters={
            "forceRefresh": _boolean("Force a refresh even if data hasn't changed (optional, default is false)"),
            "waitForIndexing": _boolean("Wait for files to be indexed before returning (optional, default is true)"),
        },
        endpoint=ApiEndpoint(method="POST", path="/api/training/refreshknowledge"),
        personas=TRAINING,
    ),
    ToolDefinition(
        capability=Capability.GET_FAQS,
        description="Get all frequently asked questions and their answers.",
        endpoint=ApiEndpoint(path="/api/training/faq"),
        personas=TRAINING,
    ),
    ToolDefinition(
        capability=Capability.CREATE_FAQ,
        description="Add a frequently asked question and its answer.",
        parameters={
            "question": _string("The question text"),
            "answer": _string("The answer text"),
        },
        endpoint=ApiEndpoint(method="POST", path="/api/training/faq"),
        personas=TRAINING,
    ),
    ToolDefinition(
        capability=Capability.UPDATE_FAQ,
        description="Modify the question or answer of a FAQ, or enable/disable it.",
        parameters={
            "faqId": _string("The ID of the FAQ to update"),
            "question": _string("New question text (optional)"),
            "answer": _string("New answer text (optional)"),
            "enabled": _boolean("Whether the FAQ should be enabled (optional)"),
        },
        endpoint=ApiEndpoint(method="PUT", path="/api/training/faq"),
        personas=TRAINING,
    ),
    ToolDefinition(
        capability=Capability.DELETE_FAQ,
        description="Permanently remove a FAQ.",
        parameters={"faqId": _string("The ID of the FAQ to delete")},
        endpoint=ApiEndpoint(method="DELETE", path="/api/training/faq"),
        personas=TRAINING,
    ),
    ToolDefinition(
        capability=Capability.GET_SCENARIOS,
        description="Get all chat scenarios that define conditional logic for automated responses.",
        parameters={
            "page": _number("Page number for pagination (optional, default is 1)"),
            "limit": _number("Number of scenarios per page (optional, default is 20)"),
        },
        endpoint=ApiEndpoint(path="/api/scenarios/list"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.ADD_SCENARIO,
        description="Create a chat scenario that automates responses based on user messages.",
        parameters={
            "name": _string("The name of the scenario"),
            "condition": _string("Natural language description of when this scenario should trigger"),
            "thenAction": _string("Natural language description of what should happen when the condition is met"),
            "elseAction": _string("What should happen if the condition is not met (optional)"),
            "enabled": _boolean("Whether the scenario should be enabled (optional, default is true)"),
        },
        endpoint=ApiEndpoint(method="POST", path="/api/scenarios/add"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.DELETE_SCENARIO,
        description="Permanently remove a chat scenario.",
        parameters={"scenarioId": _string("The ID of the scenario to delete")},
        endpoint=ApiEndpoint(method="DELETE", path="/api/scenarios/delete"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.GET_LIVE_VISITORS,
        description="Get visitors currently browsing the knowledge base.",
        endpoint=ApiEndpoint(path="/api/metrics/live-visitors"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.GET_METRICS_OVERVIEW,
        description=(
            "Get unique visitors, page views, sessions and average visit duration. "
            "This can be slow for large date ranges."
        ),
        parameters={
            "startDate": _string("Start date in format 'yyyy-MM-dd' (e.g., '2024-01-01')"),
            "endDate": _string("End date in format 'yyyy-MM-dd' (e.g., '2024-01-31')"),
        },
        endpoint=ApiEndpoint(path="/api/metrics/overview"),
        personas=MARQUAVIOUS,
    ),
    ToolDefinition(
        capability=Capability.GET_TOP_PAGES,
        description="Get the most viewed pages.",
        parameters={
            "startDate": _string("Start date in format 'yyyy-MM-dd' (e.g., '2024-01-01')"),
            "endDate": _string("End date in format 'yyyy-MM-dd' (e.g., '2024-01-31')"),
            "limit": _number("Number of top pages to retrieve (optional, default is 5)"),
        },
        endpoint=ApiEndpoint(path="/api/metrics/top-pages"),
        personas=MARQUAVIOUS,
    ),
]


ALL_TOOLS: List[ToolDefinition] = SHARED_TOOLS + KNOWLEDGE_TOOLS + SUPPORT_TOOLS + LIVE_CHAT_TOOLS
