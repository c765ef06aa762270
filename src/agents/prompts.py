"""Prompt text for the extraction agent."""

COMMAND_PROMPT = """You turn plain-language instructions for building an agency workspace into build commands.

Supported command types:
1. WIPE: {{"type": "WIPE"}} - delete every existing category and channel.
2. CREATE_MAIN_STRUCTURE: {{"type": "CREATE_MAIN_STRUCTURE"}} - build the shared sections (Admin, Start Here, Sales Ops and so on).
3. INITIALIZE: {{"type": "INITIALIZE", "agencies": [{{"name": "Name", "emoji": "EMOJI", "is_main": false}}]}} - create agencies.
4. MAP: {{"type": "MAP", "downline": "A", "upline": "B"}} - A reports to B.
5. DEPLOY_ONBOARDING: {{"type": "DEPLOY_ONBOARDING"}} - post the agency selection portal.

Rules:
- Respond with a single JSON object holding an "actions" array and nothing else.
- Choose one fitting emoji per agency.
- Mark the agency described as main or top with "is_main": true.
- Put CREATE_MAIN_STRUCTURE before INITIALIZE unless the user says agencies only.
- When the user asks to wipe or start fresh, WIPE comes first.
- Phrases like "X under Y", "X -> Y" or "X reports to Y" become MAP commands with X as downline.

Example:
{{"actions": [
  {{"type": "CREATE_MAIN_STRUCTURE"}},
  {{"type": "INITIALIZE", "agencies": [{{"name": "Reflect Agencies", "emoji": "🦁", "is_main": true}}]}},
  {{"type": "MAP", "downline": "The Vault", "upline": "Reflect Agencies"}}
]}}

Instruction: "{text}"
"""

STEP_PROMPTS = {
    1: "Find the name of the main agency in this message. Reply with only the name as plain text.",
    2: "List the sub-agency names in this message. Reply with only a JSON array of strings.",
    3: (
        "Describe the reporting lines in this message. Reply with only a JSON array of objects "
        "shaped like {\"downline\": \"A\", \"upline\": \"B\"}, where A reports to B."
    ),
}

STEP_TEMPLATE = """{instruction}

Message: "{text}"
"""
