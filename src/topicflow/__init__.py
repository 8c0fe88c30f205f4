"""topicflow - Compile instrument state machines into PlantUML diagrams.

topicflow turns topic graphs of states and transitions into PlantUML text
(per topic and for the whole instrument) and reports structural and naming
problems before export.
"""

__version__ = "0.1.0"
__author__ = "topicflow contributors"
__description__ = "Compile instrument state machines into PlantUML diagrams"

from topicflow.config import TopicflowConfig

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    "TopicflowConfig",
]
