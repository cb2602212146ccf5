"""
Aethel timeline core.

Story objects placed on a timeline, mutated at specific positions, edited
through a reversible command history.
"""
__version__ = "0.1.0"
