"""Prompts for conversation compaction and goal extraction."""

COMPRESSION_SYSTEM_PROMPT = """You are the component that compresses the history of a conversation between a user and an AI agent into a structured state snapshot. The snapshot REPLACES the older part of the conversation: the agent will only see your snapshot plus the most recent messages, which are retained separately in their original form.

{focus}

---

## Process

First, think through the entire history in a private <scratchpad>. Review the user's overall goal, the agent's actions, tool outputs, file modifications, and any unresolved questions. Identify every piece of information the agent needs to continue the work without a gap.

After your reasoning, produce the final <state_snapshot> XML object. Be incredibly dense with information. Omit conversational filler.

## Core Principles

1. **Continuity over compression.** The agent must be able to continue as if no compaction occurred.
2. **Breadcrumbs over content.** Never embed large content blobs. Record what was produced, where it lives and why, so it can be re-fetched.
3. **Final state wins.** When something changed during the conversation, record the final state. Note abandoned approaches only when they explain a constraint.
4. **Explicit status.** Mark tasks as done, in progress, pending or failed. Never leave completion ambiguous.

## Output Format

The structure MUST be as follows:

<state_snapshot>
    <overall_goal>
        <!-- A single, concise sentence describing the user's high-level objective. -->
    </overall_goal>

    <key_knowledge>
        <!-- Crucial facts, conventions and constraints the agent must remember. Use bullet points. -->
    </key_knowledge>

    <file_system_state>
        <!-- Files and resources created, read, modified or deleted, with their status. -->
    </file_system_state>

    <recent_actions>
        <!-- A summary of the last few significant agent actions and their outcomes. -->
    </recent_actions>

    <current_plan>
        <!-- The agent's step-by-step plan, each step marked [DONE], [IN PROGRESS] or [TODO]. -->
    </current_plan>

    <discarded_context_summary>
        <!-- ONE sentence describing what was left out of this snapshot. -->
    </discarded_context_summary>
</state_snapshot>
"""

GOAL_NEUTRAL_FOCUS = """Preserve everything that matters for the agent's ongoing work: goals, decisions, file state, errors and the plan. Discard pleasantries, dead ends that taught nothing, and verbose tool output."""

GOAL_FOCUS_TEMPLATE = """The user told us what they are working on right now:

<user_goal>
{goal}
</user_goal>

Prioritize information relevant to this goal. You MAY discard details that are unrelated to it, even if they were important earlier in the conversation; mention what you dropped in <discarded_context_summary>. Keep constraints and decisions that still bind the current work."""

SNAPSHOT_REQUEST = "First, reason in your scratchpad. Then, generate the <state_snapshot>."

SUMMARY_ACKNOWLEDGEMENT = "Got it. Thanks for the additional context!"


def get_compression_prompt(user_goal: str | None = None) -> str:
    """System instruction for the summarization call.

    With a goal, the summary is steered toward it and may drop unrelated
    material; without one, a goal-neutral instruction is used.
    """
    if user_goal:
        focus = GOAL_FOCUS_TEMPLATE.format(goal=user_goal)
    else:
        focus = GOAL_NEUTRAL_FOCUS
    return COMPRESSION_SYSTEM_PROMPT.format(focus=focus)


GOAL_EXTRACTION_PROMPT = """You are a goal extraction assistant. Your task is to identify what the user is currently working on based on their conversation.

Analyze the conversation and identify 1-3 specific, actionable goals the user is pursuing RIGHT NOW.

Guidelines:
- Focus on CURRENT work, not past discussions or future plans
- Be specific (e.g., "Implementing OAuth authentication" not "Working on auth")
- Prioritize recent messages over older ones
- If the conversation is just exploratory with no clear goal, return empty
- Limit to 3 goals maximum, ordered by relevance

Return your response in this XML format:

<goals>
  <goal>First specific goal</goal>
  <goal>Second specific goal (if applicable)</goal>
  <goal>Third specific goal (if applicable)</goal>
</goals>

If there are NO clear current goals, return: <goals></goals>"""

GOAL_EXTRACTION_REQUEST = (
    "Based on the conversation above, analyze the recent conversation "
    "and identify what I am currently working on."
)
