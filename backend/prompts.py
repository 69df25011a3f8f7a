"""Prompt templates and message assembly for the research professor."""

from typing import Dict, List, Sequence

SYSTEM_PROMPT = """
You are InventaLab's AI Research Professor.
You do NOT behave like a normal chatbot.

Your mission:
- Transform the learner's thinking
- Create productive doubt
- Ask micro-questions
- Guide invention-driven exploration

Rules:
- NEVER give direct answers
- ALWAYS ask a micro-question first
- Think in systems, not tutorials
- Be precise, calm, and probing
""".strip()

# Appended to the system prompt when the learner asks for an introduction
INTRO_PROMPT = """
When providing an INTRODUCTION to a topic:

1. Write a comprehensive 150+ word explanation covering:
   - What the concept is
   - Why it matters
   - Key components/layers
   - Real-world applications

2. Use the RAG context provided to cite specific sources
   - Reference sources naturally in your explanation
   - Be factually accurate

3. Generate a Mermaid mind map showing the topic structure
   - Use "graph TD" format
   - Show main concept and 3-5 key sub-concepts
   - Keep it clear and hierarchical

4. End with 2-3 micro-questions to guide further exploration

Format your response as:
- Introduction paragraph(s)
- Mermaid code block with ```mermaid
- Micro-questions at the end
""".strip()

NO_SOURCES_MARKER = "No external sources available."

# Last three exchanges (user + assistant) are replayed to the model
HISTORY_WINDOW = 6

INTRO_KEYWORDS = ("intro", "introduction", "start", "begin", "beginner", "explain", "what is")


def needs_introduction(message: str, topic: str) -> bool:
    """
    Decide whether a turn should be answered as a structured introduction.

    Keyword matching on the lowercased message; any topic whose title
    mentions "introduction" is always introduced.
    """
    msg = (message or "").lower()
    return any(kw in msg for kw in INTRO_KEYWORDS) or "introduction" in topic.lower()


def build_user_prompt(message: str, topic: str, introduction: bool) -> str:
    if introduction:
        return (
            f'User is requesting an introduction to: "{topic}"\n\n'
            f'User message: "{message}"\n\n'
            "Provide a comprehensive 150+ word introduction with a Mermaid mind map and micro-questions."
        )
    return (
        f'User message: "{message}"\n\n'
        "Respond with a micro-question that creates productive doubt. Guide them toward deeper thinking."
    )


def build_messages(
    topic: str,
    context: str,
    history: Sequence[Dict[str, str]],
    message: str,
    introduction: bool,
    system_prompt: str = SYSTEM_PROMPT,
    history_window: int = HISTORY_WINDOW,
) -> List[Dict[str, str]]:
    """
    Assemble the ordered chat messages for one generation call.

    Args:
        topic (str): Current agenda topic, stated verbatim to the model.
        context (str): Retrieved reference text, or "" when nothing was found.
        history (Sequence[Dict[str, str]]): Prior ``{role, content}`` entries, oldest first.
        message (str): The learner's latest message.
        introduction (bool): Whether to request the structured introduction format.
        system_prompt (str, optional): Base instructional text.
        history_window (int, optional): Number of trailing history entries kept.

    Returns:
        List[Dict[str, str]]: System entries, windowed history, then the user turn.
    """
    base = f"{system_prompt}\n\n{INTRO_PROMPT}" if introduction else system_prompt
    messages = [
        {"role": "system", "content": base},
        {"role": "system", "content": f"CURRENT RESEARCH TOPIC: {topic}"},
        {
            "role": "system",
            "content": (
                f"REFERENCE CONTEXT (use these sources in your response):\n{context}"
                if context
                else NO_SOURCES_MARKER
            ),
        },
    ]
    recent = list(history)[-history_window:] if history_window > 0 else []
    messages.extend({"role": h["role"], "content": h["content"]} for h in recent)
    messages.append({"role": "user", "content": build_user_prompt(message, topic, introduction)})
    return messages
