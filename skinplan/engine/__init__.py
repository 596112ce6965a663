"""
Recommendation matching & 28-day plan engine.

Pure, synchronous stages: conditions -> rule_selector -> step_filler ->
assembler -> plan_builder, plus the progress tracker. The facade that wires
them to injected providers lives in `skinplan.engine.recommendation_engine`.
"""
