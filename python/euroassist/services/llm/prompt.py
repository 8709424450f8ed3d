"""Provider-agnostic prompt rendering.

Produces Turn lists; each adapter converts them to its own wire format.
Every request is a fixed system prompt followed by the (trimmed) user text.
There is no conversation history in the prompt.
"""

from euroassist.services.llm.types import Turn

SYSTEM_PROMPT = """You are EuroAssist.ai, a helpful AI assistant specializing in European university information.
You provide accurate, up-to-date information about:
- University rankings and comparisons across Europe
- Tuition fees and living costs
- Scholarship opportunities and financial aid
- Admission requirements and application deadlines
- Academic programs and specializations
- Student life and campus information

Always provide specific, actionable information when possible. If you don't have current data,
clearly state this and suggest where users might find the most recent information.

Format your responses in a clear, structured way using markdown when helpful.
Be encouraging and supportive to students planning their education journey."""

TITLE_PROMPT = (
    "Generate a concise, descriptive title (max 50 characters) for a chat conversation "
    "based on the user's first message. The title should capture the main topic they're "
    "asking about regarding European universities. Respond with only the title, no quotes "
    "or extra text."
)

# Generation parameters
ANSWER_MAX_TOKENS = 1000
ANSWER_TEMPERATURE = 0.7
TITLE_MAX_TOKENS = 20
TITLE_TEMPERATURE = 0.3

MAX_TITLE_CHARS = 50
DEFAULT_TITLE = "University Information"
EMPTY_ANSWER_FALLBACK = (
    "I apologize, but I couldn't generate a response. Please try asking your question again."
)

_QUOTE_CHARS = "\"'`“”‘’"


def render_prompt(user_content: str, system_prompt: str = SYSTEM_PROMPT) -> list[Turn]:
    """Build the turn list for an answer or title request.

    Example output:
        [
            Turn(role="system", content="You are EuroAssist.ai..."),
            Turn(role="user", content="What are Oxford's fees?"),
        ]
    """
    return [
        Turn(role="system", content=system_prompt),
        Turn(role="user", content=user_content.strip()),
    ]


def clean_title(raw: str) -> str:
    """Normalize model output into a chat title.

    Keeps the first non-empty line, strips surrounding quotes and caps the
    length. Returns DEFAULT_TITLE if nothing usable is left.
    """
    for line in raw.splitlines():
        line = line.strip().strip(_QUOTE_CHARS).strip()
        if line:
            return line[:MAX_TITLE_CHARS].rstrip()
    return DEFAULT_TITLE
