"""
Scoring pipeline: answer normalization, indicator and competency roll-up,
confidence intervals, response consistency, and goal-specific strategies.
"""
