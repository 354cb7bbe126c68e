from treehub.services.agents.base import AgentContext, AgentResult, BaseAgent, generate_execution_id
from treehub.services.agents.manager import AGENT_CLASSES, AgentManager, agent_manager
