"""Action agent and the deterministic action policy.

The model proposes an action; enforce_policy() checks it against
decide_action() so the confidence thresholds don't depend on how a given
model reads its prompt.
"""

import logging

from pydantic import BaseModel

from agents.base import REASONING_MODEL, AgentSpec, load_prompt
from schemas.incident import NearbyIncident
from schemas.reasoning import ActionDecision, ActionType, Conclusion

logger = logging.getLogger(__name__)

MIN_ACTION_CONFIDENCE = 0.6
BENIGN_CLASSIFICATIONS = frozenset({"other", "noise", "benign", "none", "unknown"})


class ActionInput(BaseModel):
    conclusion: Conclusion
    nearby_incidents: list[NearbyIncident] = []


def build_prompt(payload: ActionInput) -> str:
    c = payload.conclusion
    if payload.nearby_incidents:
        nearby = "\n".join(f"- {i.id}: {i.type} in {i.city}" for i in payload.nearby_incidents)
    else:
        nearby = "- (none)"
    return (
        f"Conclusion:\n"
        f"- classification: {c.final_classification}\n"
        f"- confidence: {c.confidence_score:.2f}\n"
        f"- severity: {c.severity}\n"
        f"- title: {c.title}\n\n"
        f"Existing incidents nearby:\n{nearby}"
    )


def decide_action(
    conclusion: Conclusion,
    nearby: list[NearbyIncident],
    proposed: ActionDecision | None = None,
) -> ActionDecision:
    """Apply the action policy to a conclusion.

    Rules, in order: a benign classification is dismissed; confidence under
    0.6 waits for more data; otherwise merge into a nearby incident of the
    same type, or create a new one. A proposed MERGE into a known nearby
    incident is kept even if the types differ.

    Args:
        conclusion: Synthesizer output with the adjusted confidence applied.
        nearby: Open incidents near the bucket.
        proposed: The model's reply, if any. Its reason is kept when the
            policy agrees with it.

    Returns:
        The policy decision.
    """
    classification = conclusion.final_classification.strip().lower()
    if classification in BENIGN_CLASSIFICATIONS:
        decision = ActionDecision(
            action=ActionType.DISMISS,
            reason=f"classification '{classification}' is not a disaster",
        )
    elif conclusion.confidence_score < MIN_ACTION_CONFIDENCE:
        decision = ActionDecision(
            action=ActionType.WAIT_FOR_MORE_DATA,
            reason=f"confidence {conclusion.confidence_score:.2f} below {MIN_ACTION_CONFIDENCE}",
        )
    else:
        known_ids = {i.id for i in nearby}
        if (
            proposed is not None
            and proposed.action == ActionType.MERGE_INCIDENT
            and proposed.target_incident_id in known_ids
        ):
            return proposed
        similar = next((i for i in nearby if i.type.strip().lower() == classification), None)
        if similar is not None:
            decision = ActionDecision(
                action=ActionType.MERGE_INCIDENT,
                target_incident_id=similar.id,
                reason=f"similar {similar.type} incident {similar.id} nearby",
            )
        else:
            decision = ActionDecision(
                action=ActionType.CREATE_INCIDENT,
                reason="no similar incident nearby",
            )

    if proposed is not None and proposed.action == decision.action and decision.action != ActionType.MERGE_INCIDENT:
        return proposed
    return decision


def enforce_policy(
    proposed: ActionDecision,
    conclusion: Conclusion,
    nearby: list[NearbyIncident],
) -> ActionDecision:
    """Return the policy decision for a model reply, logging any override."""
    decision = decide_action(conclusion, nearby, proposed)
    if decision is not proposed:
        logger.warning(
            "Action override: model proposed %s (target=%s), policy chose %s (target=%s)",
            proposed.action.value,
            proposed.target_incident_id,
            decision.action.value,
            decision.target_incident_id,
        )
    return decision


ACTION = AgentSpec(
    role="Action",
    model=REASONING_MODEL,
    system_prompt=load_prompt("action"),
    build_prompt=build_prompt,
    output_schema=ActionDecision,
)
