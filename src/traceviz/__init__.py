"""traceviz - trace visualization engine.

Builds span hierarchies from flat span lists and projects them into flame and
waterfall layouts with zoom/pan/expand view state.
"""

__version__ = "0.1.0"
