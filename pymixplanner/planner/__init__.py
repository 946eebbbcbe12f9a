from pymixplanner.planner.graph import SetMode, TransitionGraph, energy_term
from pymixplanner.planner.optimizer import SetPlanner

__all__ = ['SetMode', 'SetPlanner', 'TransitionGraph', 'energy_term']
