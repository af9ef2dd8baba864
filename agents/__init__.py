"""Agent specs.

Every agent is an AgentSpec value run by agents.base.run_agent().
"""

from agents.action import ACTION, decide_action, enforce_policy
from agents.base import AgentExecutionError, AgentRun, AgentSpec, run_agent
from agents.classifier import CLASSIFIER
from agents.guide_assistant import GUIDE_ASSISTANT
from agents.incident_resolution import INCIDENT_RESOLUTION
from agents.location_matcher import LOCATION_MATCHER
from agents.news_analysis import NEWS_ANALYSIS
from agents.observer import OBSERVER
from agents.signal_enrichment import SIGNAL_ENRICHMENT, SIGNAL_ENRICHMENT_BATCH, enrich_batch
from agents.skeptic import SKEPTIC
from agents.synthesizer import SYNTHESIZER
from agents.user_report_analysis import USER_REPORT_ANALYSIS
from agents.video_analysis import VIDEO_ANALYSIS

__all__ = [
    "AgentSpec",
    "AgentRun",
    "AgentExecutionError",
    "run_agent",
    "OBSERVER",
    "CLASSIFIER",
    "SKEPTIC",
    "SYNTHESIZER",
    "ACTION",
    "decide_action",
    "enforce_policy",
    "SIGNAL_ENRICHMENT",
    "SIGNAL_ENRICHMENT_BATCH",
    "enrich_batch",
    "VIDEO_ANALYSIS",
    "NEWS_ANALYSIS",
    "USER_REPORT_ANALYSIS",
    "LOCATION_MATCHER",
    "GUIDE_ASSISTANT",
    "INCIDENT_RESOLUTION",
]
