"""
agentstream - reduce agent event streams into replies and thinking phases.
"""

__version__ = "0.1.0"

from .chat import AgentChat as AgentChat
from .client import AgentServerClient as AgentServerClient
from .config import AgentServerSettings as AgentServerSettings
from .content import ContentReducer as ContentReducer
from .driver import StreamDriver as StreamDriver
from .models import Phase as Phase
from .models import RunSnapshot as RunSnapshot
from .models import Step as Step
from .phases import PhaseAggregator as PhaseAggregator
from .steps import extract_steps as extract_steps
